"""
Aggregates per-segment byte counts into one progress signal, sampled on a timer.
"""

import asyncio
import logging
from collections.abc import Callable

from m3u_cli.exceptions import LogicError
from m3u_cli.models.stats import ProgressSample, SegmentProgress

log = logging.getLogger(__name__)

SampleHandler = Callable[[ProgressSample], None]
ErrorHandler = Callable[[LogicError], None]


class ProgressAggregator:
    """
    Keeps one progress record per segment and periodically reports their sum.

    Each sample carries the cumulative byte count and the delta since the
    previous sample, so the deltas of a whole run add up to the final total.
    """

    def __init__(
        self,
        interval: float = 1.0,
        on_sample: SampleHandler | None = None,
        on_error: ErrorHandler | None = None,
    ):
        """
        Args:
            interval: Seconds between two timer ticks.
            on_sample: Receives every sample produced by `tick`.
            on_error: Receives the error if a timer tick cannot sample.
        """
        self.interval = interval
        self.total_size: int | None = None
        self.on_sample = on_sample
        self.on_error = on_error
        self._records: dict[str, SegmentProgress] = {}
        self._previous_completed = 0
        self._timer_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def records(self) -> dict[str, SegmentProgress]:
        return dict(self._records)

    def update(self, segment: str, completed: int, total: int) -> None:
        """Records bytes received so far for one segment."""
        self._records[segment] = SegmentProgress(completed=completed, total=total)

    def mark_complete(self, segment: str, size: int) -> None:
        """Records a segment as fully present with the given size."""
        self._records[segment] = SegmentProgress(completed=size, total=size)

    def sample(self) -> ProgressSample:
        """
        Sums all records and computes the delta against the last sample.

        Raises:
            LogicError: If the playlist's total size is not known yet.
        """
        if self.total_size is None:
            raise LogicError("Cannot sample progress before the total size is known.")

        completed = sum(record.completed for record in self._records.values())
        delta = completed - self._previous_completed
        self._previous_completed = completed
        return ProgressSample(completed=completed, total=self.total_size, delta=delta)

    def tick(self) -> ProgressSample:
        """Takes a sample and hands it to the sample handler."""
        sample = self.sample()
        if self.on_sample:
            self.on_sample(sample)
        return sample

    def start(self) -> None:
        """Starts the repeating timer on the running event loop."""
        if not self.is_running:
            self._timer_task = asyncio.create_task(self._timer_loop())
            log.debug(f"Started progress timer ({self.interval}s).")

    def stop(self) -> None:
        """Stops the timer. Safe to call when it is not running."""
        if self._timer_task and not self._timer_task.done():
            self._timer_task.cancel()
            log.debug("Stopped progress timer.")
        self._timer_task = None

    def reset(self) -> None:
        """Forgets every record and the previous cumulative value."""
        self._records.clear()
        self._previous_completed = 0

    async def _timer_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.tick()
            except LogicError as e:
                log.error(f"[red]Progress timer stopped: {e}[/red]")
                self._timer_task = None
                if self.on_error:
                    self.on_error(e)
                return
