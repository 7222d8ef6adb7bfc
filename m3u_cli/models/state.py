"""
Pydantic model for the persisted state of a single playlist workflow.
"""

from pydantic import BaseModel, Field, field_validator

DEFAULT_SEGMENTS_DIR = "ts"


class WorkflowState(BaseModel):
    """
    Everything learned from a playlist during attach.

    This is what gets written to the resume marker, so a later run can skip
    straight to downloading.
    """

    source_url: str
    base_uri: str
    name: str
    segments: list[str] = Field(default_factory=list)
    total_size: int = 0

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @field_validator("base_uri")
    @classmethod
    def validate_base_uri(cls, v: str) -> str:
        """Segment paths are joined onto the base URI, so it must be a directory."""
        if not v.endswith("/"):
            raise ValueError(f"Base URI must end with '/', got: {v}")
        return v

    @field_validator("total_size")
    @classmethod
    def validate_total_size(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Total size cannot be negative.")
        return v

    @property
    def segments_dir_name(self) -> str:
        """Name of the local directory holding segments, taken from the first one."""
        if self.segments and "/" in self.segments[0]:
            return self.segments[0].split("/", 1)[0] or DEFAULT_SEGMENTS_DIR
        return DEFAULT_SEGMENTS_DIR

    @property
    def output_name(self) -> str:
        return f"{self.name}.ts"
