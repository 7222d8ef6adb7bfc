"""
Handles the low-level downloading of playlists and segments over HTTP.
"""

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path

import aiofiles
import aiohttp

from m3u_cli.exceptions import DownloadError

log = logging.getLogger(__name__)

ProgressHandler = Callable[[int, int], None]

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(
    max_connections: int = 4,
    connect_timeout: float = 15.0,
    read_timeout: float = 90.0,
) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the application run.

    Args:
        max_connections: Maximum concurrent connections per host.
        connect_timeout: Seconds allowed to establish a connection.
        read_timeout: Seconds allowed between two reads of the body.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_connections * 2,
            limit_per_host=max_connections,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            force_close=False,
        )
        timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=connect_timeout, sock_read=read_timeout
        )
        _connection_pool = aiohttp.ClientSession(connector=connector, timeout=timeout)
        log.debug(f"Created download pool with limit_per_host={max_connections}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


class Downloader:
    """
    Fetches a URL to a file, reporting byte progress as chunks arrive.

    The body is streamed into `<destination>.part` and only renamed onto the
    destination once complete, so an interrupted fetch never leaves a file
    at the final path.
    """

    CHUNK_SIZE = 131072  # 128 KB

    def __init__(
        self,
        max_connections: int = 4,
        connect_timeout: float = 15.0,
        read_timeout: float = 90.0,
    ):
        self.max_connections = max_connections
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    async def fetch(
        self,
        url: str,
        destination_path: Path,
        on_progress: ProgressHandler | None = None,
    ) -> Path:
        """
        Downloads `url` to `destination_path`.

        Args:
            url: Absolute URL to fetch.
            destination_path: Final location of the file.
            on_progress: Called with (bytes so far, expected bytes) per chunk.

        Returns:
            The destination path.

        Raises:
            DownloadError: On any transport or HTTP status failure.
            asyncio.CancelledError: If the fetch was cancelled by the caller.
        """
        destination_path = Path(destination_path)
        part_path = destination_path.with_name(destination_path.name + ".part")
        try:
            session = await get_connection_pool(
                self.max_connections, self.connect_timeout, self.read_timeout
            )
            async with session.get(url, allow_redirects=True) as response:
                response.raise_for_status()
                expected_size = int(response.headers.get("Content-Length", 0))

                async with aiofiles.open(part_path, "wb") as f:
                    bytes_downloaded = 0
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        await f.write(chunk)
                        bytes_downloaded += len(chunk)
                        if on_progress:
                            on_progress(
                                bytes_downloaded, max(expected_size, bytes_downloaded)
                            )

            await asyncio.to_thread(os.replace, part_path, destination_path)
            log.debug(
                f"Fetched '{destination_path.name}' ({bytes_downloaded} bytes)."
            )
            return destination_path
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DownloadError(f"Failed to fetch '{url}': {e}", e) from e
        finally:
            if part_path.exists():
                try:
                    os.remove(part_path)
                except OSError:
                    pass
