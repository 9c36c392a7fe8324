"""
The recording request handed to the orchestrator by its callers.
"""

from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic import BaseModel, field_validator

from radiko_recorder.exceptions import InvalidRequestError

TIMEFREE_WINDOW = timedelta(days=7)

# radiko schedules and timefree windows are expressed in Japan time
RADIKO_TZ = ZoneInfo("Asia/Tokyo")


def to_radiko_time(value: datetime) -> datetime:
    """Converts an aware datetime to Japan time; naive values are taken as JST."""
    if value.tzinfo is None:
        return value.replace(tzinfo=RADIKO_TZ)
    return value.astimezone(RADIKO_TZ)


def validate_timefree_window(
    start: datetime,
    now: datetime | None = None,
    duration_minutes: int | None = None,
) -> None:
    """
    Timefree playback only covers the past week, and only programmes that
    have already finished.

    Naive datetimes (both ``start`` and ``now``) are read as Japan time.

    Raises:
        InvalidRequestError: If the window starts too early, starts in the
            future, or ends after ``now``.
    """
    start = to_radiko_time(start)
    now = to_radiko_time(now) if now is not None else datetime.now(RADIKO_TZ)
    if start < now - TIMEFREE_WINDOW:
        raise InvalidRequestError(
            "Start time is too old. Timefree only covers the past 7 days."
        )
    if start > now:
        raise InvalidRequestError("Start time cannot be in the future.")
    if duration_minutes is not None:
        end = start + timedelta(minutes=duration_minutes)
        if end > now:
            raise InvalidRequestError(
                f"The programme ends at {end:%Y-%m-%d %H:%M} JST, which is still "
                "in the future. Record it live or wait until it has finished."
            )


class RecordingRequest(BaseModel):
    """
    One recording to perform. ``start_time`` of ``None`` means "record live now".
    """

    station_id: str
    start_time: datetime | None = None
    duration_minutes: int
    output_path: Path

    class Config:
        """Pydantic model configuration."""

        frozen = True
        str_strip_whitespace = True

    @field_validator("station_id")
    @classmethod
    def validate_station(cls, v: str) -> str:
        if not v:
            raise ValueError("Station ID cannot be empty.")
        return v.upper()

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Duration must be a positive number of minutes.")
        return v

    @property
    def is_live(self) -> bool:
        return self.start_time is None

    @property
    def end_time(self) -> datetime | None:
        if self.start_time is None:
            return None
        return self.start_time + timedelta(minutes=self.duration_minutes)
