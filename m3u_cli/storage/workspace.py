"""
Filesystem access for one playlist's working directory.

Every method raises CacheError on failure so the workflow can report it
without caring which OS call went wrong.
"""

import logging
import shutil
from pathlib import Path

from m3u_cli.exceptions import CacheError
from m3u_cli.utils.path import create_dir, segment_file_name

log = logging.getLogger(__name__)

URL_FILE_NAME = "URL"
CACHE_FILE_NAME = "m3uObj"
PLAYLIST_FILE_NAME = "m3u"


class Workspace:
    """
    Paths and file operations rooted at `<root>/<name>/`.
    """

    def __init__(self, root: Path, name: str):
        self.root = Path(root)
        self.name = name
        self.directory = self.root / name

    @property
    def url_file(self) -> Path:
        return self.directory / URL_FILE_NAME

    @property
    def cache_file(self) -> Path:
        return self.directory / CACHE_FILE_NAME

    @property
    def playlist_file(self) -> Path:
        return self.directory / PLAYLIST_FILE_NAME

    def segments_dir(self, dir_name: str) -> Path:
        return self.directory / dir_name

    def segment_path(self, dir_name: str, segment: str) -> Path:
        return self.segments_dir(dir_name) / segment_file_name(segment)

    def output_file(self, file_name: str) -> Path:
        return self.directory / file_name

    def exists(self, path: Path) -> bool:
        return path.exists()

    def ensure_dir(self, path: Path | None = None) -> None:
        """Creates the given directory (the workspace itself by default)."""
        target = path or self.directory
        try:
            create_dir(target)
        except OSError as e:
            raise CacheError(f"Could not create directory '{target}'", e) from e

    def write_text(self, path: Path, content: str) -> None:
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise CacheError(f"Could not write '{path}'", e) from e

    def read_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CacheError(f"Could not read '{path}'", e) from e

    def file_size(self, path: Path) -> int:
        try:
            return path.stat().st_size
        except OSError as e:
            raise CacheError(f"Could not stat '{path}'", e) from e

    def remove(self, path: Path) -> None:
        """Removes a file or a whole directory tree."""
        try:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise CacheError(f"Could not remove '{path}'", e) from e
        log.debug(f"Removed '{path}'.")

    def write_url_file(self, url: str) -> None:
        """Creates the workspace directory and records the playlist URL in it."""
        self.ensure_dir()
        self.write_text(self.url_file, url)
