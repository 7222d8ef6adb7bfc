"""
The per-playlist state machine: attach, download and combine.

A `Workflow` owns one workspace directory. `attach` learns the segment list
(from the network or from the cached state of an earlier run), `download`
fetches every segment one at a time, skipping those already on disk, and
`combine` joins them into `<name>.ts`. Phases are scheduled on a capacity-1
work queue; `attach` holds that queue suspended until it succeeds, so
`download` and `combine` can be requested up front.
"""

import asyncio
import functools
import logging
import weakref
from collections import deque
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Protocol

from rich.markup import escape

from m3u_cli.core.parser import DEFAULT_SEGMENT_PREFIX, parse_playlist
from m3u_cli.core.progress import ProgressAggregator
from m3u_cli.core.work_queue import WorkQueue
from m3u_cli.exceptions import (
    CacheError,
    CombineError,
    DownloadError,
    LogicError,
    M3uCliError,
)
from m3u_cli.media.combiner import concatenate_segments
from m3u_cli.models.result import Result
from m3u_cli.models.state import WorkflowState
from m3u_cli.models.stats import DownloadStats, ProgressSample
from m3u_cli.storage.cache import StateCache
from m3u_cli.storage.workspace import Workspace
from m3u_cli.utils.path import base_uri, playlist_name, segment_url

log = logging.getLogger(__name__)

AttachCompletion = Callable[[Result[WorkflowState]], None]
DownloadProgress = Callable[[ProgressSample], None]
DownloadCompletion = Callable[[Result[Path]], None]
CombineCompletion = Callable[[Result[Path]], None]


class WorkflowPhase(Enum):
    """Lifecycle of a workflow."""

    DETACHED = "detached"
    ATTACHED = "attached"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    COMBINING = "combining"
    COMBINED = "combined"
    CANCELLED = "cancelled"
    FAILED = "failed"


class DownloadClient(Protocol):
    """Anything that can fetch a URL to a file while reporting progress."""

    async def fetch(
        self,
        url: str,
        destination_path: Path,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> Path: ...


class WorkflowListener(Protocol):
    """Notified when a workflow has no more work queued."""

    def workflow_did_finish(self, workflow: "Workflow") -> None: ...


class Workflow:
    """A single playlist download, from attach to the combined file."""

    def __init__(
        self,
        url: str,
        workspace_root: Path,
        client: DownloadClient,
        progress_interval: float = 1.0,
        segment_prefix: str = DEFAULT_SEGMENT_PREFIX,
        keep_segments: bool = False,
        listener: WorkflowListener | None = None,
    ):
        self.url = url
        self.client = client
        self.segment_prefix = segment_prefix
        self.keep_segments = keep_segments
        self.workspace = Workspace(Path(workspace_root), playlist_name(url))
        self.cache = StateCache(self.workspace.cache_file)
        self.state: WorkflowState | None = None
        self.phase = WorkflowPhase.DETACHED
        self.stats = DownloadStats()
        self.listener = listener

        self._queue = WorkQueue(name=f"workflow:{self.name}")
        self._aggregator = ProgressAggregator(
            interval=progress_interval,
            on_sample=self._on_progress_sample,
            on_error=self._on_progress_error,
        )
        self._segments_dir: Path | None = None
        self._waiting_segments: deque[str] = deque()
        self._current_request: asyncio.Future | None = None
        self._attach_task: asyncio.Task | None = None
        self._cancelled = False

        self._download_progress: DownloadProgress | None = None
        self._download_completion: DownloadCompletion | None = None
        self._download_reported = False
        self._combine_completion: CombineCompletion | None = None

    def __repr__(self) -> str:
        return f"Workflow(name={self.name!r}, phase={self.phase.value})"

    @property
    def name(self) -> str:
        return self.workspace.name

    @property
    def listener(self) -> WorkflowListener | None:
        return self._listener_ref() if self._listener_ref else None

    @listener.setter
    def listener(self, value: WorkflowListener | None) -> None:
        self._listener_ref = weakref.ref(value) if value is not None else None

    @property
    def segments_dir(self) -> Path | None:
        return self._segments_dir

    def cancel(self) -> None:
        """
        Stops everything in flight: the progress timer, the current request
        and any queued phases. Files on disk are left alone so a later run
        can resume.
        """
        self._cancelled = True
        self._aggregator.stop()
        if self._current_request and not self._current_request.done():
            self._current_request.cancel()
        self._current_request = None
        self._aggregator.reset()
        self._waiting_segments.clear()
        self._download_progress = None
        self._download_completion = None
        self._combine_completion = None
        self._queue.cancel_all()
        if self.phase not in (WorkflowPhase.COMBINED, WorkflowPhase.FAILED):
            self.phase = WorkflowPhase.CANCELLED
        log.debug(f"Workflow '{self.name}' cancelled.")

    async def join(self) -> None:
        """Waits until attach has reported and every queued phase has run."""
        if self._attach_task:
            await self._attach_task
        await self._queue.join()

    # Attach

    def attach(self, completion: AttachCompletion | None = None) -> "Workflow":
        """
        Loads the playlist's state, from the cache or from the network.

        Must be called with a running event loop. Returns immediately; the
        result is delivered to `completion`.
        """
        self._cancelled = False
        self._queue.suspend()
        self._attach_task = asyncio.create_task(self._attach(completion))
        return self

    async def _attach(self, completion: AttachCompletion | None) -> None:
        if self._cancelled:
            return
        if self.cache.exists():
            try:
                state = self.cache.load()
                self.workspace.ensure_dir(
                    self.workspace.segments_dir(state.segments_dir_name)
                )
            except CacheError as e:
                self._handle_completion(completion, Result.failure(e))
                return
            log.info(
                f"[cyan]↻ Resuming[/] {escape(state.name)} "
                f"[dim]({len(state.segments)} segments)[/dim]"
            )
            self._did_attach(state)
            self._handle_completion(completion, Result.success(state))
            return

        log.info(f"[cyan]▶ Attaching[/] {escape(self.url)}")
        try:
            if not self.workspace.directory.is_dir():
                self.workspace.write_url_file(self.url)

            await self._request(self.url, self.workspace.playlist_file)

            playlist_text = self.workspace.read_text(self.workspace.playlist_file)
            parsed = parse_playlist(playlist_text, self.segment_prefix)
            state = WorkflowState(
                source_url=self.url,
                base_uri=base_uri(self.url),
                name=self.name,
                segments=parsed.segments,
                total_size=parsed.total_size,
            )
            self.cache.save(state)
            self.workspace.ensure_dir(
                self.workspace.segments_dir(state.segments_dir_name)
            )
            self.workspace.remove(self.workspace.playlist_file)
        except asyncio.CancelledError:
            if not self._cancelled:
                raise
            log.debug(f"Attach of '{self.name}' cancelled.")
            return
        except M3uCliError as e:
            self._handle_completion(completion, Result.failure(e))
            return

        log.info(
            f"  [green]✓ Attached[/] {escape(state.name)} "
            f"[dim]({len(state.segments)} segments)[/dim]"
        )
        self._did_attach(state)
        self._handle_completion(completion, Result.success(state))

    def _did_attach(self, state: WorkflowState) -> None:
        self.state = state
        self._segments_dir = self.workspace.segments_dir(state.segments_dir_name)
        self.phase = WorkflowPhase.ATTACHED
        self.stats.playlists_attached += 1

    # Download

    def download(
        self,
        progress: DownloadProgress | None = None,
        completion: DownloadCompletion | None = None,
    ) -> "Workflow":
        """
        Queues the download of every segment.

        Args:
            progress: Called once per progress interval with a ProgressSample.
            completion: Called once with the segments directory or a failure.
        """
        self._cancelled = False
        self._download_progress = progress
        self._download_completion = completion
        self._queue.add(self._run_download)
        return self

    async def _run_download(self) -> None:
        self._download_reported = False
        state = self.state
        if state is None or self._segments_dir is None:
            self._finish_download(
                Result.failure(LogicError("Download requested before attach."))
            )
            return

        self.phase = WorkflowPhase.DOWNLOADING
        self._aggregator.total_size = state.total_size
        self._aggregator.reset()
        self._waiting_segments = deque(state.segments)
        self._aggregator.start()
        log.info(
            f"[cyan]▶ Downloading[/] {escape(state.name)} "
            f"[dim]({len(state.segments)} segments)[/dim]"
        )

        try:
            finished = await self._download_waiting_segments(state)
        except M3uCliError as e:
            self._finish_download(Result.failure(e))
            return

        if finished:
            self._all_downloads_did_finish()

    async def _download_waiting_segments(self, state: WorkflowState) -> bool:
        """
        Drains the waiting list one segment at a time.

        Returns False if the workflow was cancelled before the list emptied.
        """
        attempts: dict[str, int] = {}
        while self._waiting_segments:
            segment = self._waiting_segments.popleft()
            destination = self.workspace.segment_path(state.segments_dir_name, segment)

            if self.workspace.exists(destination):
                size = self.workspace.file_size(destination)
                self._aggregator.mark_complete(segment, size)
                self.stats.segments_skipped_exists += 1
                log.debug(f"Segment '{segment}' already on disk ({size} bytes).")
                continue

            try:
                await self._request(
                    segment_url(state.base_uri, segment),
                    destination,
                    functools.partial(self._aggregator.update, segment),
                )
            except asyncio.CancelledError:
                if not self._cancelled:
                    raise
                log.debug(f"Download of '{segment}' cancelled.")
                return False
            except (DownloadError, CacheError) as e:
                attempts[segment] = attempts.get(segment, 0) + 1
                self.stats.segment_retries += 1
                log.warning(
                    f"[yellow]Retrying '{escape(segment)}' "
                    f"(attempt {attempts[segment] + 1}): {escape(str(e))}[/yellow]"
                )
                self._waiting_segments.appendleft(segment)
                continue

            self.stats.segments_downloaded += 1
            self.stats.total_size_downloaded += self.workspace.file_size(destination)

        return not self._cancelled

    def _all_downloads_did_finish(self) -> None:
        if self._download_reported:
            return
        try:
            self._aggregator.tick()
        finally:
            self._aggregator.stop()
        self.phase = WorkflowPhase.DOWNLOADED
        log.info(
            f"  [green]✓ Downloaded[/] {escape(self.name)} "
            f"[dim]({self.stats.segments_downloaded} fetched, "
            f"{self.stats.segments_skipped_exists} already on disk)[/dim]"
        )
        self._finish_download(Result.success(self._segments_dir))

    def _finish_download(self, result: Result[Path]) -> None:
        if self._download_reported:
            return
        self._download_reported = True
        completion = self._download_completion
        self._download_completion = None
        self._download_progress = None
        if not result.is_success:
            # The request in flight, if any, is the last one.
            self._waiting_segments.clear()
        self._handle_completion(completion, result)

    def _on_progress_sample(self, sample: ProgressSample) -> None:
        self.stats.record_sample(sample)
        if self._download_progress:
            try:
                self._download_progress(sample)
            except Exception as e:
                log.error(
                    f"[red]Progress callback for '{escape(self.name)}' failed: {e}[/red]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )

    def _on_progress_error(self, error: LogicError) -> None:
        self._finish_download(Result.failure(error))

    # Combine

    def combine(self, completion: CombineCompletion | None = None) -> "Workflow":
        """
        Queues the concatenation of all segments into `<name>.ts`.

        Args:
            completion: Called once with the output path or a failure.
        """
        self._combine_completion = completion
        self._queue.add(self._run_combine)
        return self

    async def _run_combine(self) -> None:
        state = self.state
        segments_dir = self._segments_dir
        if state is None or segments_dir is None:
            self._finish_combine(
                Result.failure(LogicError("Combine requested before attach."))
            )
            return

        self.phase = WorkflowPhase.COMBINING
        output_path = self.workspace.output_file(state.output_name)
        segment_paths = [
            self.workspace.segment_path(state.segments_dir_name, segment)
            for segment in state.segments
        ]
        log.info(f"[cyan]▶ Combining[/] {escape(state.name)}")

        try:
            await asyncio.to_thread(concatenate_segments, segment_paths, output_path)
        except CombineError as e:
            self._finish_combine(Result.failure(e))
            return

        if not self.keep_segments:
            try:
                self.workspace.remove(segments_dir)
                self.cache.delete()
            except CacheError as e:
                self._finish_combine(Result.failure(e))
                return

        self.phase = WorkflowPhase.COMBINED
        log.info(f"  [green]✓ Saved[/] [dim]{escape(str(output_path))}[/dim]")
        self._finish_combine(Result.success(output_path))

    def _finish_combine(self, result: Result[Path]) -> None:
        completion = self._combine_completion
        self._combine_completion = None
        self._handle_completion(completion, result)

    # Helpers

    async def _request(
        self,
        url: str,
        destination: Path,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> Path:
        """Runs one fetch as the cancellable current request."""
        self._current_request = asyncio.ensure_future(
            self.client.fetch(url, destination, on_progress)
        )
        try:
            return await self._current_request
        except OSError as e:
            raise CacheError(f"Could not write '{destination}': {e}", e) from e
        finally:
            self._current_request = None

    def _handle_completion(self, completion: Callable | None, result: Result) -> None:
        if result.is_success:
            self._queue.resume()
        else:
            self.phase = WorkflowPhase.FAILED
            self._queue.cancel_all()
            self._aggregator.stop()
            self.stats.playlists_failed += 1
            log.error(f"[red]✗ {escape(self.name)}: {escape(str(result.error))}[/red]")

        if completion:
            completion(result)

        if self._queue.pending_count == 0:
            listener = self.listener
            if listener:
                listener.workflow_did_finish(self)
