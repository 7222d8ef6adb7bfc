"""
Tests for the workspace layout, state cache and segment concatenation
"""

import pytest
from pydantic import ValidationError

from m3u_cli.exceptions import CacheError, CombineError
from m3u_cli.media.combiner import concatenate_segments
from m3u_cli.models.state import WorkflowState
from m3u_cli.storage.cache import StateCache
from m3u_cli.storage.workspace import Workspace
from m3u_cli.utils.path import base_uri, playlist_name, segment_url

from .conftest import BASE_URI, PLAYLIST_URL


@pytest.fixture
def state() -> WorkflowState:
    return WorkflowState(
        source_url=PLAYLIST_URL,
        base_uri=BASE_URI,
        name="FromSoftware",
        segments=["ts/seg0.ts", "ts/seg1.ts"],
        total_size=10,
    )


def test_playlist_name_and_base_uri():
    assert playlist_name(PLAYLIST_URL) == "FromSoftware"
    assert playlist_name("http://example.com/a%20b/My%20Show.m3u8?x=1") == "My Show"
    assert playlist_name("http://example.com/") == "playlist"
    assert base_uri(PLAYLIST_URL) == BASE_URI
    assert segment_url(BASE_URI, "ts/seg0.ts") == BASE_URI + "ts/seg0.ts"


def test_state_requires_directory_base_uri():
    with pytest.raises(ValidationError):
        WorkflowState(
            source_url=PLAYLIST_URL,
            base_uri="http://example.com/123/hls",
            name="FromSoftware",
        )


def test_state_derived_names(state):
    assert state.segments_dir_name == "ts"
    assert state.output_name == "FromSoftware.ts"
    assert state.model_copy(update={"segments": ["seg.ts"]}).segments_dir_name == "ts"


def test_cache_round_trip(tmp_path, state):
    cache = StateCache(tmp_path / "m3uObj")
    assert not cache.exists()

    cache.save(state)
    cache.save(state)

    assert cache.exists()
    assert cache.load() == state


def test_cache_rejects_mismatched_payload(tmp_path):
    cache_path = tmp_path / "m3uObj"
    cache_path.write_text('{"name": "FromSoftware"}')

    with pytest.raises(CacheError):
        StateCache(cache_path).load()


def test_cache_delete_of_missing_file_raises(tmp_path):
    with pytest.raises(CacheError):
        StateCache(tmp_path / "m3uObj").delete()


def test_workspace_paths(tmp_path):
    workspace = Workspace(tmp_path, "FromSoftware")

    assert workspace.cache_file == tmp_path / "FromSoftware" / "m3uObj"
    assert workspace.url_file == tmp_path / "FromSoftware" / "URL"
    assert workspace.segment_path("ts", "ts/seg0.ts") == (
        tmp_path / "FromSoftware" / "ts" / "seg0.ts"
    )


def test_workspace_remove_handles_files_and_trees(tmp_path):
    workspace = Workspace(tmp_path, "FromSoftware")
    workspace.write_url_file(PLAYLIST_URL)
    segments_dir = workspace.segments_dir("ts")
    workspace.ensure_dir(segments_dir)
    (segments_dir / "seg0.ts").write_bytes(b"x")

    workspace.remove(segments_dir)
    workspace.remove(workspace.url_file)

    assert not segments_dir.exists()
    assert not workspace.url_file.exists()
    with pytest.raises(CacheError):
        workspace.remove(workspace.url_file)


def test_concatenate_segments_in_order(tmp_path):
    paths = []
    for index, body in enumerate([b"one", b"two", b"three"]):
        path = tmp_path / f"{index}.ts"
        path.write_bytes(body)
        paths.append(path)
    output = tmp_path / "out.ts"
    output.write_bytes(b"stale contents")

    written = concatenate_segments(paths, output)

    assert output.read_bytes() == b"onetwothree"
    assert written == 11


def test_concatenate_missing_segment_raises(tmp_path):
    with pytest.raises(CombineError):
        concatenate_segments([tmp_path / "missing.ts"], tmp_path / "out.ts")
