"""
A file-based JSON cache for the workflow state of a single playlist.

The presence of the cache file is the resume marker: if it exists, attach
loads the state from it instead of fetching the playlist again.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from m3u_cli.exceptions import CacheError
from m3u_cli.models.state import WorkflowState

log = logging.getLogger(__name__)


class StateCache:
    """
    Loads, saves and deletes the serialized `WorkflowState` of a workspace.
    """

    def __init__(self, cache_path: Path):
        """
        Initializes the cache.

        Args:
            cache_path: The file the state is stored in (`<workspace>/m3uObj`).
        """
        self.cache_path = Path(cache_path)

    def exists(self) -> bool:
        return self.cache_path.is_file()

    def load(self) -> WorkflowState:
        """
        Reads and decodes the cached state.

        Raises:
            CacheError: If the file cannot be read or does not decode to a
            valid state. There is no migration: any mismatch is an error.
        """
        try:
            with open(self.cache_path, encoding="utf-8") as f:
                payload = json.load(f)
            state = WorkflowState.model_validate(payload)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            raise CacheError(f"Cache read failed for '{self.cache_path}': {e}", e) from e
        except ValidationError as e:
            raise CacheError(
                f"Cached state in '{self.cache_path}' is invalid: {e}", e
            ) from e
        log.debug(f"Loaded workflow state for '{state.name}' from cache.")
        return state

    def save(self, state: WorkflowState) -> None:
        """
        Serializes the state, replacing any previous cache file.

        Raises:
            CacheError: If the file cannot be written.
        """
        try:
            serialized_payload = state.model_dump_json()
            if self.cache_path.exists():
                self.cache_path.unlink()
            with open(self.cache_path, "w", encoding="utf-8") as f:
                f.write(serialized_payload)
        except OSError as e:
            raise CacheError(
                f"Cache write failed for '{self.cache_path}': {e}", e
            ) from e
        log.debug(
            f"Cached state for '{state.name}' ({len(state.segments)} segments)."
        )

    def delete(self) -> None:
        """Removes the cache file, ending the resumable state."""
        try:
            self.cache_path.unlink()
        except OSError as e:
            raise CacheError(
                f"Failed to remove cache file '{self.cache_path}': {e}", e
            ) from e
