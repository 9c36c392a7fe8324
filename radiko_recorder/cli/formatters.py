"""
Rich renderings for the CLI: error panels, the station table, the recording
plan and the post-recording summary.
"""

from pathlib import Path

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from radiko_recorder.models.config import RecorderConfig, get_available_stations
from radiko_recorder.models.request import RecordingRequest
from radiko_recorder.models.stats import RecordingStats
from radiko_recorder.utils.formatting import format_duration, format_minutes, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Renders an error with hints keyed on the exception type."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "HandshakeRejected": [
            "• radiko may be blocking requests from outside Japan.",
            "• Try again later; the service may be temporarily unavailable.",
        ],
        "MissingCredential": [
            "• radiko did not return the expected handshake headers.",
            "• The web player protocol may have changed.",
        ],
        "InvalidRange": [
            "• The shared key no longer matches the key coordinates.",
            "• The web player's shared key may have been rotated.",
        ],
        "ManifestFetchFailed": [
            "• Check the station ID with `radiko-recorder stations`.",
            "• Timefree programmes are only available for 7 days.",
            "• Your area may not be allowed to play this station.",
        ],
        "EmptySegmentList": [
            "• The programme may not be available yet. Check the start time.",
        ],
        "SegmentFetchFailed": [
            "• A media segment could not be downloaded; the partial file was kept.",
            "• Run the command again to retry the whole recording.",
        ],
        "ExternalEncoderFailed": [
            "• Check that ffmpeg is installed and supports HLS input.",
            "• Try `--retriever segments` to download without ffmpeg.",
        ],
        "TransportError": [
            "• A network connection issue occurred.",
            "• Check your internet connection and try again.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `radiko-recorder init --force` to write a fresh one.",
        ],
        "InvalidRequestError": [
            "• Use the start time format 'YYYY-MM-DD HH:MM'.",
            "• Timefree only covers the past 7 days.",
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
        title="[bold red]radiko-recorder error[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config: RecorderConfig):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key in sorted(RecorderConfig.get_ini_keys()):
        content += f"{key} = {getattr(config, key)}\n"
    aliases = ", ".join(f"{a}={c}" for a, c in sorted(config.station_aliases.items()))
    content += f"aliases = {aliases or '-'}"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_stations_table(console: Console | None = None):
    """Displays the available stations."""
    console = console or Console()
    table = Table(title="Available Stations", box=box.ROUNDED)
    table.add_column("Code", style="bold magenta", no_wrap=True)
    table.add_column("Name", style="cyan")
    for code, name in sorted(get_available_stations().items()):
        table.add_row(code, name)
    console.print(table)


def print_recording_plan(
    request: RecordingRequest, retriever: str, console: Console | None = None
):
    """Displays what is about to be recorded."""
    console = console or Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    start = "live" if request.is_live else f"{request.start_time:%Y-%m-%d %H:%M}"
    table.add_row("Station:", request.station_id)
    table.add_row("Start:", start)
    table.add_row("Duration:", format_minutes(request.duration_minutes))
    table.add_row("Retriever:", retriever)
    table.add_row("Output:", f"[dim]{request.output_path}[/dim]")

    console.print(
        Panel(table, title="[bold]Recording Settings[/bold]", border_style="cyan")
    )


def print_summary_panel(stats: RecordingStats, output_path: Path):
    """Displays the final summary of a recording."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=16)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("Output:", f"[green]{output_path}[/green]")
    if stats.segments_total:
        stats_table.add_row(
            "Segments:", f"{stats.segments_completed}/{stats.segments_total}"
        )
    stats_table.add_row("Total Size:", f"[cyan]{format_size(stats.bytes_written)}[/cyan]")
    stats_table.add_row(
        "Avg. Speed:",
        f"[magenta]{format_size(int(stats.average_speed_bps))}/s[/magenta]",
    )
    stats_table.add_row(
        "Time Elapsed:", f"[blue]{format_duration(stats.elapsed)}[/blue]"
    )

    console.print()
    console.print(
        Panel(
            stats_table,
            title="📻 [bold]Recording Complete![/bold]",
            border_style="green",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
