"""
Storage Layer.

This package handles all data persistence, including the configuration file,
the per-playlist workspace and the cached workflow state.
"""

from .cache import StateCache
from .config_manager import ConfigManager
from .workspace import Workspace

__all__ = ["ConfigManager", "StateCache", "Workspace"]
