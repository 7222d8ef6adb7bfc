"""
Pytest configuration and fixtures for m3u-cli tests
"""

import asyncio
from pathlib import Path

import pytest

from m3u_cli.exceptions import DownloadError

PLAYLIST_URL = "http://example.com/123/hls/FromSoftware.m3u8"
BASE_URI = "http://example.com/123/hls/"

SEGMENT_BODIES = {
    "ts/seg0.ts": b"AAAA",
    "ts/seg1.ts": b"BBBBBB",
    "ts/seg2.ts": b"CC",
}


def build_playlist(bodies: dict[str, bytes]) -> str:
    lines = ["#EXTM3U", "#EXT-X-VERSION:3", "#EXT-X-TARGETDURATION:10"]
    for segment, body in bodies.items():
        lines.append(f"#EXTINF:10.0,segment_size={len(body)}")
        lines.append(segment)
    lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"


class FakeClient:
    """
    Serves canned bodies by URL instead of going over the network.

    `failures` maps a URL to how many times it should fail before succeeding.
    `errors` maps a URL to exceptions raised, one per call, before succeeding.
    A URL in `blocking` waits on `release` before it writes anything.
    """

    def __init__(self, bodies: dict[str, bytes]):
        self.bodies = dict(bodies)
        self.calls: list[str] = []
        self.failures: dict[str, int] = {}
        self.errors: dict[str, list[Exception]] = {}
        self.blocking: set[str] = set()
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.delay = 0.0

    def count(self, url: str) -> int:
        return self.calls.count(url)

    async def fetch(self, url, destination_path: Path, on_progress=None) -> Path:
        self.calls.append(url)
        if url in self.blocking:
            self.started.set()
            await self.release.wait()
        if self.failures.get(url, 0) > 0:
            self.failures[url] -= 1
            raise DownloadError(f"Failed to fetch '{url}': connection reset")
        if self.errors.get(url):
            raise self.errors[url].pop(0)
        if url not in self.bodies:
            raise DownloadError(f"Failed to fetch '{url}': 404")
        if self.delay:
            await asyncio.sleep(self.delay)

        body = self.bodies[url]
        half = len(body) // 2
        if on_progress and half:
            on_progress(half, len(body))
        Path(destination_path).write_bytes(body)
        if on_progress:
            on_progress(len(body), len(body))
        return Path(destination_path)


@pytest.fixture
def playlist_bodies() -> dict[str, bytes]:
    bodies = {PLAYLIST_URL: build_playlist(SEGMENT_BODIES).encode()}
    for segment, body in SEGMENT_BODIES.items():
        bodies[BASE_URI + segment] = body
    return bodies


@pytest.fixture
def client(playlist_bodies) -> FakeClient:
    return FakeClient(playlist_bodies)


@pytest.fixture
def workspace_root(tmp_path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root
