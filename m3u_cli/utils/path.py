"""
Utilities for handling file paths and playlist URLs.
"""

from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urljoin, urlparse

from pathvalidate import sanitize_filename


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def playlist_name(url: str) -> str:
    """
    Derives the workspace name from a playlist URL: its last path component
    without the extension.

    e.g. http://example.com/123/hls/FromSoftware.m3u8 -> FromSoftware
    """
    stem = PurePosixPath(unquote(urlparse(url).path)).stem
    return sanitize_filename(stem, platform="auto") or "playlist"


def base_uri(url: str) -> str:
    """
    Strips the last path component from a playlist URL.

    e.g. http://example.com/123/hls/FromSoftware.m3u8 -> http://example.com/123/hls/
    """
    return urljoin(url, ".")


def segment_url(base: str, segment: str) -> str:
    """Resolves a relative segment path against the playlist's base URI."""
    return urljoin(base, segment)


def segment_file_name(segment: str) -> str:
    """The local file name of a segment: the final component of its path."""
    return segment.rstrip("/").rsplit("/", 1)[-1]
