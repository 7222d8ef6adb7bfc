"""
Line-scanning parser for media playlists.
"""

import re
from dataclasses import dataclass, field

from m3u_cli.exceptions import InvalidContentError

DEFAULT_SEGMENT_PREFIX = "ts/"
EXTINF_TAG = "#EXTINF:"

_SEGMENT_SIZE_PATTERN = re.compile(r"segment_size=(\d+)")


@dataclass(frozen=True)
class ParsedPlaylist:
    """Ordered segment paths and the sum of their declared sizes."""

    segments: list[str] = field(default_factory=list)
    total_size: int = 0


def parse_playlist(
    text: str, segment_prefix: str = DEFAULT_SEGMENT_PREFIX
) -> ParsedPlaylist:
    """
    Extracts the segment list and total size from playlist text.

    Lines starting with `segment_prefix` are segments, kept in file order.
    `#EXTINF:` lines may carry a `segment_size=<bytes>` token; those values
    are summed.

    Raises:
        InvalidContentError: If there are no segments or the sizes add up to 0.
    """
    segments = []
    total_size = 0
    for line in text.splitlines():
        line = line.rstrip()
        if line.startswith(segment_prefix):
            segments.append(line)
        elif line.startswith(EXTINF_TAG):
            if match := _SEGMENT_SIZE_PATTERN.search(line):
                total_size += int(match.group(1))

    if not segments or total_size == 0:
        raise InvalidContentError(
            f"Playlist has {len(segments)} segments and a declared size of "
            f"{total_size} bytes; both must be non-zero."
        )
    return ParsedPlaylist(segments=segments, total_size=total_size)
