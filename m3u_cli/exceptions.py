"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class M3uCliError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message: str = "", cause: BaseException | None = None):
        super().__init__(message or (str(cause) if cause else ""))
        self.cause = cause


class CacheError(M3uCliError):
    """
    Raised when a workspace file cannot be created, read, written or removed,
    or when the cached workflow state cannot be (de)serialized.
    """


class DownloadError(M3uCliError):
    """Raised when the transport fails while fetching a playlist or segment."""


class InvalidContentError(M3uCliError):
    """Raised when a playlist lists no segments or declares no segment sizes."""


class LogicError(M3uCliError):
    """Raised when a phase runs before the state it depends on exists."""


class CombineError(M3uCliError):
    """Raised when a segment cannot be read or the output cannot be written."""


class ConfigurationError(M3uCliError):
    """Raised for issues related to configuration loading or validation."""


class WorkflowConflictError(M3uCliError):
    """Raised when two workflows would share the same workspace directory."""
