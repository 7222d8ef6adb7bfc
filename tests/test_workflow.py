"""
Tests for the attach / download / combine workflow
"""

import asyncio

from m3u_cli.core.workflow import Workflow, WorkflowPhase
from m3u_cli.exceptions import (
    CacheError,
    CombineError,
    DownloadError,
    InvalidContentError,
    LogicError,
)
from m3u_cli.storage.cache import StateCache

from .conftest import BASE_URI, PLAYLIST_URL

EXPECTED_OUTPUT = b"AAAABBBBBBCC"


class Recorder:
    """Collects every callback a workflow makes."""

    def __init__(self):
        self.attach = []
        self.download = []
        self.combine = []
        self.samples = []
        self.finished = []

    def workflow_did_finish(self, workflow):
        self.finished.append(workflow)


def make_workflow(workspace_root, client, **kwargs) -> Workflow:
    kwargs.setdefault("progress_interval", 60)
    return Workflow(PLAYLIST_URL, workspace_root, client, **kwargs)


async def run_all(workflow: Workflow, recorder: Recorder) -> None:
    workflow.attach(recorder.attach.append)
    workflow.download(
        progress=recorder.samples.append, completion=recorder.download.append
    ).combine(recorder.combine.append)
    await workflow.join()


async def test_full_run_produces_combined_file(workspace_root, client):
    """Attach, download and combine concatenate the segments in playlist order."""
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    await run_all(workflow, recorder)

    directory = workspace_root / "FromSoftware"
    output = recorder.combine[0].unwrap()
    assert output == directory / "FromSoftware.ts"
    assert output.read_bytes() == EXPECTED_OUTPUT
    assert not (directory / "ts").exists()
    assert not (directory / "m3uObj").exists()
    assert (directory / "URL").read_text() == PLAYLIST_URL
    assert workflow.phase is WorkflowPhase.COMBINED
    assert workflow.stats.segments_downloaded == 3


async def test_attach_persists_state_and_removes_playlist(workspace_root, client):
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    workflow.attach(recorder.attach.append)
    await workflow.join()

    state = recorder.attach[0].unwrap()
    directory = workspace_root / "FromSoftware"
    assert state.name == "FromSoftware"
    assert state.base_uri == BASE_URI
    assert state.total_size == 12
    assert (directory / "m3uObj").is_file()
    assert (directory / "ts").is_dir()
    assert not (directory / "m3u").exists()
    assert workflow.segments_dir == directory / "ts"


async def test_second_attach_loads_from_cache(workspace_root, client):
    """A cached state is reused without fetching the playlist again."""
    first = Recorder()
    workflow = make_workflow(workspace_root, client)
    workflow.attach(first.attach.append)
    await workflow.join()

    second = Recorder()
    resumed = make_workflow(workspace_root, client)
    resumed.attach(second.attach.append)
    await resumed.join()

    assert client.count(PLAYLIST_URL) == 1
    assert second.attach[0].unwrap() == first.attach[0].unwrap()


async def test_existing_segment_is_skipped_but_counted(workspace_root, client):
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client, keep_segments=True)
    workflow.attach(recorder.attach.append)
    await workflow.join()
    (workspace_root / "FromSoftware" / "ts" / "seg1.ts").write_bytes(b"BBBBBB")

    workflow.download(
        progress=recorder.samples.append, completion=recorder.download.append
    )
    await workflow.join()

    assert recorder.download[0].is_success
    assert client.count(BASE_URI + "ts/seg1.ts") == 0
    assert recorder.samples[-1].completed == 12
    assert recorder.samples[-1].fraction == 1.0
    assert workflow.stats.segments_skipped_exists == 1
    assert workflow.stats.segments_downloaded == 2


async def test_failed_segment_is_retried_in_place(workspace_root, client):
    client.failures[BASE_URI + "ts/seg1.ts"] = 2
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    await run_all(workflow, recorder)

    assert client.count(BASE_URI + "ts/seg1.ts") == 3
    assert workflow.stats.segment_retries == 2
    assert recorder.combine[0].unwrap().read_bytes() == EXPECTED_OUTPUT


async def test_segment_write_error_is_retried(workspace_root, client):
    """A filesystem error while storing a segment is retried like a transport error."""
    client.errors[BASE_URI + "ts/seg1.ts"] = [OSError(28, "No space left on device")]
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    await run_all(workflow, recorder)

    assert recorder.download[0].is_success
    assert client.count(BASE_URI + "ts/seg1.ts") == 2
    assert workflow.stats.segment_retries == 1
    assert recorder.combine[0].unwrap().read_bytes() == EXPECTED_OUTPUT


async def test_raising_progress_callback_does_not_break_download(workspace_root, client):
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    def broken_progress(sample):
        raise RuntimeError("display went away")

    workflow.attach(recorder.attach.append)
    workflow.download(
        progress=broken_progress, completion=recorder.download.append
    ).combine(recorder.combine.append)
    await workflow.join()

    assert len(recorder.download) == 1
    assert recorder.download[0].is_success
    assert not workflow._aggregator.is_running
    assert workflow.phase is WorkflowPhase.COMBINED
    assert recorder.combine[0].unwrap().read_bytes() == EXPECTED_OUTPUT


async def test_progress_deltas_add_up_to_final_value(workspace_root, client):
    client.delay = 0.02
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client, progress_interval=0.01)

    await run_all(workflow, recorder)

    assert len(recorder.samples) > 1
    assert sum(sample.delta for sample in recorder.samples) == 12
    assert recorder.samples[-1].completed == 12
    assert all(sample.total == 12 for sample in recorder.samples)


async def test_cancel_keeps_files_for_resume(workspace_root, client):
    """Cancelling mid-download leaves cache and finished segments on disk."""
    blocked_url = BASE_URI + "ts/seg1.ts"
    client.blocking.add(blocked_url)
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)
    await_start = asyncio.create_task(client.started.wait())

    workflow.attach(recorder.attach.append)
    workflow.download(completion=recorder.download.append).combine(
        recorder.combine.append
    )
    await await_start
    workflow.cancel()
    await workflow.join()

    segments_dir = workspace_root / "FromSoftware" / "ts"
    assert workflow.phase is WorkflowPhase.CANCELLED
    assert recorder.download == []
    assert recorder.combine == []
    assert (workspace_root / "FromSoftware" / "m3uObj").is_file()
    assert (segments_dir / "seg0.ts").is_file()
    assert not (segments_dir / "seg1.ts").exists()

    client.blocking.clear()
    resumed_recorder = Recorder()
    resumed = make_workflow(workspace_root, client)
    await run_all(resumed, resumed_recorder)

    assert client.count(PLAYLIST_URL) == 1
    assert client.count(BASE_URI + "ts/seg0.ts") == 1
    assert resumed.stats.segments_skipped_exists == 1
    assert resumed_recorder.combine[0].unwrap().read_bytes() == EXPECTED_OUTPUT


async def test_cancel_twice_is_harmless(workspace_root, client):
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    workflow.attach(recorder.attach.append)
    workflow.download(completion=recorder.download.append)
    workflow.cancel()
    workflow.cancel()
    await workflow.join()

    assert workflow.phase is WorkflowPhase.CANCELLED
    assert recorder.attach == []
    assert recorder.download == []
    assert client.calls == []


async def test_keep_segments_leaves_workspace_intact(workspace_root, client):
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client, keep_segments=True)

    await run_all(workflow, recorder)

    directory = workspace_root / "FromSoftware"
    assert recorder.combine[0].unwrap().read_bytes() == EXPECTED_OUTPUT
    assert (directory / "ts" / "seg2.ts").is_file()
    assert (directory / "m3uObj").is_file()


async def test_download_before_attach_is_a_logic_error(workspace_root, client):
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    workflow.download(completion=recorder.download.append)
    await workflow.join()

    assert isinstance(recorder.download[0].error, LogicError)
    assert workflow.phase is WorkflowPhase.FAILED
    assert client.calls == []


async def test_corrupt_cache_fails_attach(workspace_root, client):
    directory = workspace_root / "FromSoftware"
    directory.mkdir()
    (directory / "m3uObj").write_text("{not json")
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    await run_all(workflow, recorder)

    assert isinstance(recorder.attach[0].error, CacheError)
    assert recorder.download == []
    assert recorder.combine == []
    assert client.calls == []


async def test_playlist_without_segments_is_rejected(workspace_root, client):
    client.bodies[PLAYLIST_URL] = b"#EXTM3U\n#EXT-X-ENDLIST\n"
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    await run_all(workflow, recorder)

    assert isinstance(recorder.attach[0].error, InvalidContentError)
    assert workflow.state is None
    assert not StateCache(workspace_root / "FromSoftware" / "m3uObj").exists()


async def test_unreachable_playlist_fails_attach(workspace_root, client):
    del client.bodies[PLAYLIST_URL]
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)

    workflow.attach(recorder.attach.append)
    await workflow.join()

    assert isinstance(recorder.attach[0].error, DownloadError)


async def test_missing_segment_fails_combine(workspace_root, client):
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)
    workflow.attach(recorder.attach.append)
    workflow.download(completion=recorder.download.append)
    await workflow.join()
    (workspace_root / "FromSoftware" / "ts" / "seg2.ts").unlink()

    workflow.combine(recorder.combine.append)
    await workflow.join()

    assert isinstance(recorder.combine[0].error, CombineError)
    assert (workspace_root / "FromSoftware" / "m3uObj").is_file()


async def test_cleanup_failure_after_combine_is_a_cache_error(workspace_root, client):
    """The combined file stays even when the segments cannot be removed."""
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client)
    workflow.attach(recorder.attach.append)
    workflow.download(completion=recorder.download.append)
    await workflow.join()

    def failing_remove(path):
        raise CacheError(f"Could not remove '{path}'")

    workflow.workspace.remove = failing_remove
    workflow.combine(recorder.combine.append)
    await workflow.join()

    output = workspace_root / "FromSoftware" / "FromSoftware.ts"
    assert len(recorder.combine) == 1
    assert isinstance(recorder.combine[0].error, CacheError)
    assert output.read_bytes() == EXPECTED_OUTPUT
    assert workflow.phase is WorkflowPhase.FAILED


async def test_listener_notified_once_when_idle(workspace_root, client):
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client, listener=recorder)

    await run_all(workflow, recorder)

    assert recorder.finished == [workflow]


async def test_listener_is_held_weakly(workspace_root, client):
    recorder = Recorder()
    workflow = make_workflow(workspace_root, client, listener=recorder)

    del recorder

    assert workflow.listener is None
