"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_WORKSPACE = "~/Downloads/m3u-cli"


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    # Workspace
    workspace: str = DEFAULT_WORKSPACE
    keep_segments: bool = False

    # Playlist Parsing
    segment_prefix: str = "ts/"

    # Network Settings
    max_connections: int = 4
    connect_timeout: float = 15.0
    read_timeout: float = 90.0

    # Progress Reporting
    progress_interval: float = 1.0

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)
    source_urls: list[str] = Field(default_factory=list, repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("workspace")
    @classmethod
    def validate_workspace(cls, v: str) -> str:
        """Ensures a workspace directory is given."""
        if not v:
            raise ValueError("Workspace path cannot be empty.")
        return v

    @field_validator("segment_prefix")
    @classmethod
    def validate_segment_prefix(cls, v: str) -> str:
        """
        The prefix doubles as the segments directory name, so it has to be a
        single relative path component followed by '/'.
        """
        if not v.endswith("/") or v.startswith("/") or v.count("/") != 1:
            raise ValueError(
                f"Segment prefix must look like 'ts/' (one directory), got: {v!r}"
            )
        return v

    @field_validator("max_connections")
    @classmethod
    def validate_connections(cls, v: int) -> int:
        """Ensures a reasonable connection pool size."""
        if v < 1 or v > 32:
            raise ValueError("Max connections must be between 1 and 32.")
        return v

    @field_validator("connect_timeout", "read_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @field_validator("progress_interval")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        """Progress is sampled on a timer; keep it between instant and a minute."""
        if v <= 0 or v > 60:
            raise ValueError("Progress interval must be between 0 and 60 seconds.")
        return v

    @property
    def workspace_path(self) -> Path:
        return Path(self.workspace).expanduser()

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "source_urls"}
        return {key for key in cls.model_fields if key not in internal_fields}
