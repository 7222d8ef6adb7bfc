"""
A capacity-1 queue that runs phase-level units of work one after another.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

log = logging.getLogger(__name__)

WorkUnit = Callable[[], Awaitable[None]]


class WorkQueue:
    """
    Serializes units of work on the running event loop.

    At most one unit executes at a time. The queue can be suspended, which
    holds back pending units (the running one is unaffected) until it is
    resumed, and all pending units can be dropped at once.
    """

    def __init__(self, name: str = "work-queue"):
        self.name = name
        self._pending: deque[WorkUnit] = deque()
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._worker: asyncio.Task | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """True while a unit is executing."""
        return self._running

    @property
    def pending_count(self) -> int:
        """Units added but not started yet."""
        return len(self._pending)

    @property
    def operation_count(self) -> int:
        """Pending units plus the one executing, if any."""
        return len(self._pending) + (1 if self._running else 0)

    def suspend(self) -> None:
        self._resumed.clear()

    def resume(self) -> None:
        self._resumed.set()

    def add(self, unit: WorkUnit) -> None:
        """Appends a unit; it starts once every earlier unit has finished."""
        self._pending.append(unit)
        self._idle.clear()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain())

    def cancel_all(self) -> None:
        """
        Drops every pending unit. A unit that is already executing is left to
        finish on its own.
        """
        dropped = len(self._pending)
        self._pending.clear()
        if dropped:
            log.debug(f"{self.name}: dropped {dropped} pending unit(s).")
        if not self._running and self._worker and not self._worker.done():
            # The worker is parked on a suspended queue with nothing left to run.
            self._worker.cancel()
            self._worker = None
            self._idle.set()

    async def join(self) -> None:
        """Waits until nothing is pending or executing."""
        await self._idle.wait()

    async def _drain(self) -> None:
        try:
            while self._pending:
                await self._resumed.wait()
                if not self._pending:
                    break
                unit = self._pending.popleft()
                self._running = True
                try:
                    await unit()
                except Exception as e:
                    log.error(
                        f"[red]{self.name}: unit of work failed: {e}[/red]",
                        exc_info=log.getEffectiveLevel() == logging.DEBUG,
                    )
                finally:
                    self._running = False
        finally:
            if not self._pending:
                self._idle.set()
