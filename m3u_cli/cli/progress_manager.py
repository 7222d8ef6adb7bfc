"""
Manages a Rich Live display showing one progress bar per playlist and a
session header with real-time transfer speed.
"""

import asyncio
from datetime import datetime

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.text import Text


class ProgressManager:
    """
    Renders playlist progress fed from workflow progress samples.
    """

    def __init__(self, console: Console, live: bool = True):
        self.console = console
        self.live = live

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )

        self._live: Live | None = None
        self._tasks: dict[str, TaskID] = {}
        self._stats = {
            "playlists": 0,
            "combined": 0,
            "failed": 0,
            "start_time": None,
            "current_speed": 0.0,
            "peak_speed": 0.0,
        }

    def initialize_session(self, total_playlists: int):
        self._stats["playlists"] = total_playlists
        self._stats["start_time"] = datetime.now()

    def add_playlist_task(self, name: str, total_size: int) -> TaskID:
        """Adds (or returns the existing) bar for a playlist."""
        if name in self._tasks:
            return self._tasks[name]
        description = name if len(name) <= 40 else name[:39] + "…"
        task_id = self.progress.add_task(description, total=total_size, start=True)
        self._tasks[name] = task_id
        self._update_display()
        return task_id

    def update_task_progress(self, name: str, completed: int):
        if (task_id := self._tasks.get(name)) is not None:
            self.progress.update(task_id, completed=completed)
            self._update_display()

    def set_task_status(self, name: str, status: str):
        """Replaces a playlist bar's description with a status suffix."""
        if (task_id := self._tasks.get(name)) is not None:
            self.progress.update(task_id, description=f"{name} [dim]{status}[/dim]")
            self._update_display()

    def finish_task(self, name: str, success: bool = True):
        if success:
            self._stats["combined"] += 1
        else:
            self._stats["failed"] += 1
        if (task_id := self._tasks.get(name)) is not None:
            task = next((t for t in self.progress.tasks if t.id == task_id), None)
            if success and task is not None and task.total:
                self.progress.update(task_id, completed=task.total)
            self.progress.stop_task(task_id)
        self._update_display()

    def update_speed_stats(self, current_speed: float, peak_speed: float):
        self._stats["current_speed"] = current_speed
        self._stats["peak_speed"] = peak_speed

    def get_statistics(self) -> dict:
        return self._stats.copy()

    def _generate_header(self) -> Panel:
        if self._stats["start_time"]:
            elapsed = int((datetime.now() - self._stats["start_time"]).total_seconds())
            elapsed_str = (
                f"{elapsed // 3600:02d}:{(elapsed % 3600) // 60:02d}:{elapsed % 60:02d}"
            )
        else:
            elapsed_str = "00:00:00"
        header_text = Text()
        header_text.append("📼 m3u-cli ", style="bold cyan")
        header_text.append("│ ", style="dim")
        header_text.append(f"Session: {elapsed_str}", style="yellow")
        header_text.append(" │ ", style="dim")
        done = self._stats["combined"] + self._stats["failed"]
        header_text.append(f"Playlists: {done}/{self._stats['playlists']}")
        if self._stats["current_speed"] > 0:
            speed_mb = self._stats["current_speed"] / (1024 * 1024)
            header_text.append(" │ ", style="dim")
            header_text.append(f"⚡ {speed_mb:.1f} MB/s", style="magenta")
        return Panel(header_text, border_style="cyan")

    def _render(self) -> Group:
        return Group(
            self._generate_header(),
            Panel(
                self.progress,
                title=f"[bold]📥 Playlists ({len(self._tasks)})[/bold]",
                border_style="green",
            ),
        )

    def _update_display(self):
        """Pushes a fresh render to the Live object, which handles refresh rate."""
        if self._live:
            self._live.update(self._render())

    async def __aenter__(self):
        if not self.live:
            return self
        self._live = Live(
            self._render(),
            console=self.console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live:
            await asyncio.sleep(0.2)
            self._update_display()
            self._live.stop()
            self._live = None
