"""
The session orchestrator: expands the source URLs and runs one workflow per
playlist through attach, download and combine.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from rich.markup import escape

from m3u_cli.cli.progress_manager import ProgressManager
from m3u_cli.core.manager import WorkflowManager
from m3u_cli.core.workflow import DownloadClient, Workflow
from m3u_cli.exceptions import M3uCliError
from m3u_cli.models.config import DownloadConfig
from m3u_cli.models.result import Result
from m3u_cli.models.state import WorkflowState
from m3u_cli.models.stats import DownloadStats, ProgressSample

log = logging.getLogger(__name__)


@dataclass
class PlaylistOutcome:
    """What happened to one source URL during the session."""

    url: str
    output_path: Path | None = None
    error: M3uCliError | None = None

    @property
    def succeeded(self) -> bool:
        return self.output_path is not None and self.error is None


class DownloadManager:
    """Orchestrates the entire download session."""

    def __init__(
        self,
        config: DownloadConfig,
        client: DownloadClient,
        progress_manager: ProgressManager,
    ):
        self.config = config
        self.progress_manager = progress_manager
        self.workflow_manager = WorkflowManager(config, client)
        self.stats = DownloadStats()
        self.start_time = time.monotonic()
        self.outcomes: list[PlaylistOutcome] = []

    def save_session_stats(self):
        """Appends the current session's stats to a history file."""
        if not self.config.config_path:
            return
        stats_file = Path(self.config.config_path) / "session_history.jsonl"
        try:
            stats_file.parent.mkdir(parents=True, exist_ok=True)
            with open(stats_file, "a", encoding="utf-8") as f:
                elapsed_time = time.monotonic() - self.start_time
                session_data = {
                    "timestamp": int(time.time()),
                    "playlists_combined": self.stats.playlists_combined,
                    "playlists_failed": self.stats.playlists_failed,
                    "segments_downloaded": self.stats.segments_downloaded,
                    "segments_skipped_exists": self.stats.segments_skipped_exists,
                    "segment_retries": self.stats.segment_retries,
                    "total_size_downloaded": self.stats.total_size_downloaded,
                    "duration_seconds": round(elapsed_time, 2),
                }
                json.dump(session_data, f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save session stats:[/] {e}")

    def expand_source_urls(self) -> list[str]:
        """
        Resolves the configured sources into a de-duplicated URL list. A source
        that names an existing file contributes one URL per non-comment line.
        """
        expanded_urls = []
        for source in self.config.source_urls:
            if Path(source).is_file():
                log.info(f"Reading URLs from file: [dim]{escape(source)}[/dim]")
                try:
                    with open(source, encoding="utf-8") as f:
                        expanded_urls.extend(
                            line.strip()
                            for line in f
                            if line.strip() and not line.startswith("#")
                        )
                except (OSError, UnicodeDecodeError) as e:
                    log.error(f"[red]Could not read file {escape(source)}: {e}[/red]")
            else:
                expanded_urls.append(source)

        unique_urls = list(dict.fromkeys(expanded_urls))
        if len(unique_urls) < len(expanded_urls):
            log.info(f"Removed {len(expanded_urls) - len(unique_urls)} duplicate URLs.")
        return unique_urls

    async def execute_downloads(self) -> list[PlaylistOutcome]:
        """Processes every source URL and returns one outcome per playlist."""
        urls = self.expand_source_urls()
        if not urls:
            log.warning("[yellow]No playlist URLs to process. Nothing to do.[/yellow]")
            return []

        self.progress_manager.initialize_session(len(urls))
        try:
            self.outcomes = await asyncio.gather(
                *(self._process_playlist(url) for url in urls)
            )
        finally:
            # Anything still registered was interrupted; its files stay for resume.
            self.workflow_manager.cancel_all()
        return self.outcomes

    async def _process_playlist(self, url: str) -> PlaylistOutcome:
        """Runs attach, download and combine for one URL."""
        outcome = PlaylistOutcome(url=url)
        try:
            workflow = self.workflow_manager.attach(
                url, lambda result: self._on_attach(workflow, outcome, result)
            )
        except M3uCliError as e:
            log.error(f"[red]✗ {escape(url)}: {escape(str(e))}[/red]")
            outcome.error = e
            self.stats.playlists_failed += 1
            self.progress_manager.finish_task(url, success=False)
            return outcome

        workflow.download(
            progress=lambda sample: self._on_progress(workflow, sample),
            completion=lambda result: self._on_download(workflow, outcome, result),
        ).combine(lambda result: self._on_combine(workflow, outcome, result))

        await workflow.join()
        self._merge_stats(workflow.stats)
        return outcome

    def _on_attach(
        self, workflow: Workflow, outcome: PlaylistOutcome, result: Result[WorkflowState]
    ) -> None:
        if not result.is_success:
            self._fail(workflow, outcome, result.error)
            return
        state = result.value
        self.progress_manager.add_playlist_task(state.name, state.total_size)

    def _on_progress(self, workflow: Workflow, sample: ProgressSample) -> None:
        self.progress_manager.update_task_progress(workflow.name, sample.completed)
        self.progress_manager.update_speed_stats(
            workflow.stats.current_speed_bps, workflow.stats.peak_speed_bps
        )

    def _on_download(
        self, workflow: Workflow, outcome: PlaylistOutcome, result: Result[Path]
    ) -> None:
        if not result.is_success:
            self._fail(workflow, outcome, result.error)
            return
        self.progress_manager.set_task_status(workflow.name, "combining…")

    def _on_combine(
        self, workflow: Workflow, outcome: PlaylistOutcome, result: Result[Path]
    ) -> None:
        if not result.is_success:
            self._fail(workflow, outcome, result.error)
            return
        outcome.output_path = result.value
        self.stats.playlists_combined += 1
        self.progress_manager.set_task_status(workflow.name, "done")
        self.progress_manager.finish_task(workflow.name, success=True)

    def _fail(
        self, workflow: Workflow, outcome: PlaylistOutcome, error: M3uCliError | None
    ) -> None:
        outcome.error = error
        self.stats.playlists_failed += 1
        self.progress_manager.set_task_status(workflow.name, "failed")
        self.progress_manager.finish_task(workflow.name, success=False)

    def _merge_stats(self, workflow_stats: DownloadStats) -> None:
        self.stats.playlists_attached += workflow_stats.playlists_attached
        self.stats.segments_downloaded += workflow_stats.segments_downloaded
        self.stats.segments_skipped_exists += workflow_stats.segments_skipped_exists
        self.stats.segment_retries += workflow_stats.segment_retries
        self.stats.total_size_downloaded += workflow_stats.total_size_downloaded
        self.stats.peak_speed_bps = max(
            self.stats.peak_speed_bps, workflow_stats.peak_speed_bps
        )
