"""
Utilities for building recording output paths from the configured template.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from pathvalidate import sanitize_filename, sanitize_filepath

from radiko_recorder.models.config import RecorderConfig, get_station_name
from radiko_recorder.models.request import RADIKO_TZ, to_radiko_time


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


class PathFormatter:
    """
    Formats an output file name template.

    Placeholders: ``{station}``, ``{station_name}``, ``{date}`` (YYYYMMDD),
    ``{time}`` (HHMM) and ``{ext}``.
    """

    def __init__(self, template: str) -> None:
        self.template = template

    def format_name(self, station_id: str, start: datetime, ext: str) -> str:
        start = to_radiko_time(start)
        template_vars = {
            "station": sanitize_filename(station_id),
            "station_name": sanitize_filename(get_station_name(station_id) or station_id),
            "date": start.strftime("%Y%m%d"),
            "time": start.strftime("%H%M"),
            "ext": ext,
        }
        return self.template.format(**template_vars)


def build_output_path(
    config: RecorderConfig,
    station_id: str,
    output: Optional[str] = None,
    start: Optional[datetime] = None,
    create: bool = True,
) -> Path:
    """
    Decides where a recording is written.

    Without an explicit ``output`` the name comes from the template. Relative
    paths are placed under ``config.output_dir``; the configured extension is
    appended when missing, and the parent directory is created.
    """
    start = start or datetime.now(RADIKO_TZ)
    ext = config.output_extension

    if output:
        file_str = output
    else:
        file_str = PathFormatter(config.output_template).format_name(
            station_id, start, ext
        )

    path = Path(sanitize_filepath(file_str, platform="auto")).expanduser()
    if not path.is_absolute() and config.output_dir:
        path = Path(config.output_dir).expanduser() / path

    if path.suffix.lstrip(".").lower() != ext.lower():
        path = path.with_name(f"{path.name}.{ext}")

    if create:
        create_dir(path.parent)
    return path
