"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import sys
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from m3u_cli import __version__
from m3u_cli.core.download_manager import DownloadManager
from m3u_cli.exceptions import M3uCliError
from m3u_cli.media.downloader import Downloader, close_connection_pool
from m3u_cli.storage.cache import StateCache
from m3u_cli.storage.config_manager import ConfigManager
from m3u_cli.storage.workspace import CACHE_FILE_NAME, Workspace

from .formatters import print_config, print_summary_panel, print_workspaces_table
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("m3u_cli")

app = typer.Typer(
    name="m3u-cli",
    help=(
        "A resumable downloader for segmented HLS playlists. Use 'm3u-cli"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "m3u-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """M3U Playlist Downloader CLI"""
    if version:
        console.print(f"[bold]m3u-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("m3u_cli").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]m3u-cli init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config = ConfigManager(CONFIG_FILE).load_config()
        print_config(CONFIG_FILE, config.model_dump(exclude={"config_path", "source_urls"}))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    workspace: str | None = typer.Option(
        None, "--workspace", "-d", help="Directory that holds playlist workspaces."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Write a configuration file with the default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {}
    if workspace:
        settings["workspace"] = workspace
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except M3uCliError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to download! Try: [cyan]m3u-cli download <URL>[/cyan]")


def _read_urls_from_stdin() -> list[str]:
    """Reads URLs from stdin, one per line."""
    if sys.stdin.isatty():
        console.print(
            "[yellow]⚠️  No input detected on stdin. Please pipe URLs or redirect"
            " a file.[/yellow]"
        )
        raise typer.Exit(code=1)

    urls = [
        line.strip()
        for line in sys.stdin
        if line.strip() and not line.startswith("#")
    ]
    if not urls:
        console.print("[yellow]⚠️  No valid URLs found in stdin.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Read {len(urls)} URLs from stdin.[/green]")
    return urls


@app.command(name="download")
def download_command(
    urls: list[str] | None = typer.Argument(  # noqa: B008
        None, help="One or more playlist URLs or paths to files containing URLs."
    ),
    workspace: str | None = typer.Option(
        None, "--workspace", "-d", help="Directory that holds playlist workspaces."
    ),
    keep_segments: bool | None = typer.Option(
        None,
        "--keep-segments/--no-keep-segments",
        help="Keep the segment files and cached state after combining.",
    ),
    interval: float | None = typer.Option(
        None, "--interval", "-i", help="Seconds between progress updates."
    ),
    stdin: bool = typer.Option(
        False, "--stdin", help="Read URLs from standard input, one URL per line."
    ),
):
    """Download one or more playlists and combine each into a single file."""
    if stdin:
        urls = _read_urls_from_stdin()
    elif not urls:
        console.print(
            "[red]✗ No URLs provided.[/red] "
            "Use: [cyan]m3u-cli download <URL>[/cyan] or [cyan]--stdin[/cyan]"
        )
        raise typer.Exit(code=1)

    cli_options = {
        key: value
        for key, value in {
            "source_urls": urls,
            "workspace": workspace,
            "keep_segments": keep_segments,
            "progress_interval": interval,
        }.items()
        if value is not None
    }

    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    except M3uCliError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    async def _download_async():
        manager = None
        duration = 0.0

        async with ProgressManager(console=console) as progress_manager:
            try:
                client = Downloader(
                    config.max_connections,
                    config.connect_timeout,
                    config.read_timeout,
                )
                manager = DownloadManager(config, client, progress_manager)
                console.print(
                    "[bold cyan]📼 Starting download session...[/bold cyan]"
                )
                start_time = time.monotonic()
                await manager.execute_downloads()
                duration = time.monotonic() - start_time
            finally:
                await close_connection_pool()

        return manager, duration

    manager, duration = asyncio.run(_download_async())
    if manager:
        print_summary_panel(manager.stats, duration, manager.outcomes)
        manager.save_session_stats()
        if any(not outcome.succeeded for outcome in manager.outcomes):
            raise typer.Exit(code=1)


@app.command(name="list")
def list_command(
    workspace: str | None = typer.Option(
        None, "--workspace", "-d", help="Directory that holds playlist workspaces."
    ),
):
    """List playlists that can be resumed."""
    cli_options = {"workspace": workspace} if workspace else None
    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    except M3uCliError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    root = config.workspace_path
    rows = []
    if root.is_dir():
        for cache_file in sorted(root.glob(f"*/{CACHE_FILE_NAME}")):
            try:
                state = StateCache(cache_file).load()
            except M3uCliError as e:
                log.warning(f"[yellow]Skipping '{cache_file.parent.name}': {e}[/yellow]")
                continue
            ws = Workspace(root, cache_file.parent.name)
            on_disk = sum(
                1
                for segment in state.segments
                if ws.segment_path(state.segments_dir_name, segment).is_file()
            )
            rows.append(
                {
                    "name": ws.name,
                    "segments": len(state.segments),
                    "segments_on_disk": on_disk,
                    "total_size": state.total_size,
                    "source_url": state.source_url,
                }
            )
    print_workspaces_table(rows)


@app.command()
def clean(
    name: str = typer.Argument(..., help="Name of the playlist workspace to delete."),
    workspace: str | None = typer.Option(
        None, "--workspace", "-d", help="Directory that holds playlist workspaces."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Delete a playlist workspace and everything downloaded into it."""
    cli_options = {"workspace": workspace} if workspace else None
    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    except M3uCliError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    ws = Workspace(config.workspace_path, name)
    if Path(name).name != name or not ws.directory.is_dir():
        console.print(f"[red]✗ No workspace named '{name}'.[/red]")
        raise typer.Exit(code=1)

    if not force and not typer.confirm(
        f"Delete '{ws.directory}' and all of its segments?"
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    try:
        ws.remove(ws.directory)
    except M3uCliError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Removed workspace '{name}'.[/green]")
