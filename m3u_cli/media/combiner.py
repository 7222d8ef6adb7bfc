"""
Joins downloaded segments into a single transport stream file.
"""

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path

from m3u_cli.exceptions import CombineError

log = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1048576  # 1 MB


def concatenate_segments(segment_paths: Sequence[Path], output_path: Path) -> int:
    """
    Appends every segment, in the given order, into `output_path`.

    The output is truncated first. No container rewriting is done: the result
    is the raw bytes of each segment back to back. This is blocking I/O; run it
    in a worker thread.

    Args:
        segment_paths: Segment files in playback order.
        output_path: File to create.

    Returns:
        The number of bytes written.

    Raises:
        CombineError: If any segment cannot be read or the output cannot be
        written.
    """
    written = 0
    try:
        with open(output_path, "wb") as output:
            for segment_path in segment_paths:
                with open(segment_path, "rb") as segment:
                    shutil.copyfileobj(segment, output, COPY_BUFFER_SIZE)
                written = output.tell()
    except OSError as e:
        raise CombineError(
            f"Failed to combine segments into '{output_path.name}': {e}", e
        ) from e

    log.debug(f"Wrote {len(segment_paths)} segments ({written} bytes) to '{output_path}'.")
    return written
