"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from m3u_cli.models.stats import DownloadStats
from m3u_cli.utils.formatting import format_duration, format_percentage, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "CacheError": [
            "• Check that the workspace directory is writable.",
            "• A corrupt `m3uObj` file can be removed with `m3u-cli clean NAME`.",
        ],
        "DownloadError": [
            "• The playlist URL may be wrong or no longer served.",
            "• Check your internet connection.",
        ],
        "InvalidContentError": [
            "• The URL did not return a playlist with sized segments.",
            "• Check the `segment_prefix` setting against the playlist lines.",
        ],
        "CombineError": [
            "• A segment file may have been removed from the workspace.",
            "• Run the same download again to fetch missing segments.",
            "• Check the free disk space.",
        ],
        "ConfigurationError": [
            "• Run `m3u-cli --show-config` to inspect the current settings.",
            "• Run `m3u-cli init --force` to write a fresh configuration.",
        ],
        "WorkflowConflictError": [
            "• Two URLs resolve to the same playlist name.",
            "• Download them in separate runs.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The server might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A download timed out, which may indicate network throttling.",
            "• Raise `read_timeout` in the configuration file.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if isinstance(value, list):
            value = ", ".join(value)
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip() or "[dim](defaults)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_workspaces_table(rows: list[dict[str, Any]]):
    """Displays the resumable playlists found in the workspace."""
    console = Console()
    if not rows:
        console.print("[dim]No resumable playlists in the workspace.[/dim]")
        return

    table = Table(title="Resumable Playlists", box=box.ROUNDED)
    table.add_column("Name", style="cyan")
    table.add_column("Segments", justify="right")
    table.add_column("Size", justify="right", style="green")
    table.add_column("Done", justify="right", style="magenta")
    table.add_column("Source", style="dim", overflow="fold")
    for row in rows:
        table.add_row(
            row["name"],
            f"{row['segments_on_disk']}/{row['segments']}",
            format_size(row["total_size"]),
            format_percentage(row["segments_on_disk"], row["segments"]),
            row["source_url"],
        )
    console.print(table)


def print_summary_panel(
    stats: DownloadStats, duration_s: float, outcomes: list | None = None
):
    """Displays the final summary of the download session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Combined:", f"[bold green]{stats.playlists_combined}[/bold green]"
    )
    if stats.playlists_failed > 0:
        stats_table.add_row(
            "✗ Failed:", f"[bold red]{stats.playlists_failed}[/bold red]"
        )

    stats_table.add_row("", "")
    stats_table.add_row("Segments:", f"{stats.segments_downloaded} downloaded")
    if stats.segments_skipped_exists > 0:
        stats_table.add_row(
            "○ Resumed:",
            f"[yellow]{stats.segments_skipped_exists} already on disk[/yellow]",
        )
    if stats.segment_retries > 0:
        stats_table.add_row(
            "↻ Retries:", f"[yellow]{stats.segment_retries}[/yellow]"
        )

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )

    avg_speed = stats.total_size_downloaded / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    if stats.peak_speed_bps > 0:
        stats_table.add_row(
            "Peak Speed:",
            f"[magenta]{format_size(int(stats.peak_speed_bps))}/s[/magenta]",
        )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if outcomes:
        stats_table.add_row("", "")
        for outcome in outcomes:
            if outcome.succeeded:
                stats_table.add_row("[green]✓[/green]", str(outcome.output_path))
            else:
                stats_table.add_row("[red]✗[/red]", f"{outcome.url} [dim]({outcome.error})[/dim]")

    if stats.playlists_failed:
        title = "⚠ [bold]Finished with Errors[/bold]"
        border_color = "yellow"
    else:
        title = "📼 [bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
