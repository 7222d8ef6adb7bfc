"""
Outcome object handed to every phase completion callback.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from m3u_cli.exceptions import M3uCliError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a success payload or the error that ended the phase.

    Attributes:
        value: The phase's payload (state, directory or file path) on success.
        error: The failure, if any.
    """

    value: T | None = None
    error: M3uCliError | None = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: M3uCliError) -> "Result[T]":
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Returns the payload or raises the stored error."""
        if self.error is not None:
            raise self.error
        return self.value
