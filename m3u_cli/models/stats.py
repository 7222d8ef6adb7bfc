"""
Dataclasses for progress samples and download session statistics.
"""

import time
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SegmentProgress:
    """Bytes received so far for one segment, out of its expected size."""

    completed: int = 0
    total: int = 0


@dataclass(frozen=True)
class ProgressSample:
    """
    One tick of aggregated progress.

    Attributes:
        completed: Cumulative bytes across every segment.
        total: Declared size of the whole playlist.
        delta: Bytes completed since the previous sample.
    """

    completed: int
    total: int
    delta: int

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(1.0, self.completed / self.total)


@dataclass
class DownloadStats:
    """Tracks statistics for a download session, including real-time speed."""

    playlists_attached: int = 0
    playlists_combined: int = 0
    playlists_failed: int = 0
    segments_downloaded: int = 0
    segments_skipped_exists: int = 0
    segment_retries: int = 0
    total_size_downloaded: int = 0

    # Real-time speed calculation fields
    current_speed_bps: float = 0.0
    peak_speed_bps: float = 0.0
    _speed_samples: list[float] = field(default_factory=list, repr=False)
    _last_progress_time: float = field(default=0.0, repr=False)

    def __post_init__(self):
        self._last_progress_time = time.monotonic()

    def record_sample(self, sample: ProgressSample) -> None:
        """
        Updates the transfer speed from one aggregated progress sample.

        Args:
            sample: The latest sample; only its delta is used.
        """
        now = time.monotonic()
        elapsed = now - self._last_progress_time
        self._last_progress_time = now
        if sample.delta <= 0 or elapsed <= 0:
            return

        self._speed_samples.append(sample.delta / elapsed)
        # Keep a sliding window of the last 10 speed samples
        if len(self._speed_samples) > 10:
            self._speed_samples.pop(0)

        self.current_speed_bps = sum(self._speed_samples) / len(self._speed_samples)
        self.peak_speed_bps = max(self.peak_speed_bps, self.current_speed_bps)
