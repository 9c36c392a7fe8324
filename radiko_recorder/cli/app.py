"""
The radiko-recorder command line: config bootstrap, station listing and
the `record` command that drives a RecordingOrchestrator.
"""

import asyncio
import logging
import os
from datetime import datetime
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from radiko_recorder import __version__
from radiko_recorder.core.recorder import RecordingOrchestrator
from radiko_recorder.exceptions import InvalidRequestError, RecorderError
from radiko_recorder.models.config import RETRIEVERS
from radiko_recorder.models.request import (
    RADIKO_TZ,
    RecordingRequest,
    validate_timefree_window,
)
from radiko_recorder.storage.config_manager import ConfigManager
from radiko_recorder.utils.path import build_output_path
from radiko_recorder.utils.structured_logger import create_structured_logger

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_recording_plan,
    print_stations_table,
    print_summary_panel,
)
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
log = logging.getLogger("radiko_recorder")

app = typer.Typer(
    name="radiko-recorder",
    help=(
        "Record radiko live streams and timefree programmes. Use 'radiko-recorder"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

START_FORMAT = "%Y-%m-%d %H:%M"


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "radiko-recorder"


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
    """radiko Recorder CLI"""
    if version:
        console.print(
            f"[bold]radiko-recorder[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("radiko_recorder").setLevel(log_level)

    if show_config:
        try:
            config = ConfigManager(CONFIG_FILE).load_config()
        except RecorderError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        print_config(CONFIG_FILE, config)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    try:
        ConfigManager(CONFIG_FILE).save_config()
    except RecorderError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")


@app.command()
def stations():
    """List the stations that can be recorded."""
    print_stations_table(console)


def _parse_start(start: str | None) -> datetime | None:
    if not start:
        return None
    try:
        parsed = datetime.strptime(start.strip(), START_FORMAT)
    except ValueError as e:
        raise InvalidRequestError(
            f"Invalid start time '{start}'. Expected 'YYYY-MM-DD HH:MM'."
        ) from e
    return parsed.replace(tzinfo=RADIKO_TZ)


@app.command()
def record(
    station: str = typer.Option(
        ..., "-s", "--station", help="Station code or alias (e.g. TBS, LFR, jwave)."
    ),
    start: str | None = typer.Option(
        None,
        "--start",
        help=(
            "Programme start 'YYYY-MM-DD HH:MM' in Japan time (timefree)."
            " Omit to record live."
        ),
    ),
    duration: int | None = typer.Option(
        None, "-d", "--duration", help="Recording length in minutes."
    ),
    output: str | None = typer.Option(
        None, "-o", "--output", help="Output file. Defaults to the configured template."
    ),
    retriever: str | None = typer.Option(
        None,
        "-r",
        "--retriever",
        help=f"Retrieval method: {', '.join(RETRIEVERS)}.",
    ),
    log_dir: Path | None = typer.Option(  # noqa: B008
        None, "--log-dir", help="Write a JSON-lines event log into this directory."
    ),
):
    """Record a live stream or a timefree programme."""
    cli_options = {"retriever": retriever} if retriever else {}

    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
        station_id = config.resolve_station(station)
        if station_id.lower() != station.lower():
            log.debug(f"Station alias: {station} -> {station_id}")

        start_time = _parse_start(start)
        duration_minutes = (
            duration if duration is not None else config.default_duration
        )
        if start_time is not None:
            validate_timefree_window(start_time, duration_minutes=duration_minutes)

        output_path = build_output_path(config, station_id, output, start_time)
        try:
            request = RecordingRequest(
                station_id=station_id,
                start_time=start_time,
                duration_minutes=duration_minutes,
                output_path=output_path,
            )
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid recording request:\n{e}") from e
    except RecorderError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    structured, recording_log = create_structured_logger(
        log_dir, enable_json=log_dir is not None
    )

    async def _record_async():
        progress = ProgressManager(console, description=f"Recording {station_id}")
        async with RecordingOrchestrator(
            config, on_progress=progress.update
        ) as orchestrator:
            selected = orchestrator.select_retriever(live=request.is_live)
            print_recording_plan(request, selected.name, console)
            recording_log.recording_started(
                station_id,
                f"{start_time:{START_FORMAT}}" if start_time else None,
                request.duration_minutes,
                str(request.output_path),
                selected.name,
            )
            with progress:
                path = await orchestrator.resolve_and_fetch(request, selected)
            return orchestrator.stats, path

    try:
        stats, path = asyncio.run(_record_async())
        recording_log.recording_completed(
            station_id, str(path), stats.bytes_written, stats.elapsed
        )
    except RecorderError as e:
        recording_log.recording_failed(station_id, e)
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    finally:
        structured.close()

    print_summary_panel(stats, path)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
    except RecorderError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_config(CONFIG_FILE, config)
    console.print("[bold green]✓ Configuration is valid.[/bold green]")
