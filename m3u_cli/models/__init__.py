"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application, such as configuration,
persisted workflow state and progress statistics.
"""

from .config import DownloadConfig
from .result import Result
from .state import WorkflowState
from .stats import DownloadStats, ProgressSample, SegmentProgress

__all__ = [
    "DownloadConfig",
    "DownloadStats",
    "ProgressSample",
    "Result",
    "SegmentProgress",
    "WorkflowState",
]
