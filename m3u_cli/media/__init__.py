"""
Media Transfer Layer.

This package is responsible for moving bytes: fetching playlists and
segments over HTTP and stitching segments together on disk.
"""

from .combiner import concatenate_segments
from .downloader import Downloader

__all__ = ["Downloader", "concatenate_segments"]
