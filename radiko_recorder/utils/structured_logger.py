"""
Event logging for recordings: console lines through the stdlib logger plus an
optional JSON-lines file that can be grepped or loaded after a failed run.

Also defines ``LogSink``, the minimal logger interface the recording core
accepts in place of its module loggers.
"""

import json
import logging
import os
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, TextIO


class LogSink(Protocol):
    """
    Anything the recording core can log to.

    A stdlib ``logging.Logger`` satisfies it, and so does ``StructuredLogger``.
    """

    def debug(self, msg: str, /) -> Any: ...

    def info(self, msg: str, /) -> Any: ...

    def error(self, msg: str, /) -> Any: ...


class StructuredLogger:
    """
    Writes each event to the console logger and, when a log directory is
    given, appends it as one JSON object per line.

    Usage:
        with StructuredLogger("radiko_recorder", log_dir=Path("logs")) as events:
            events.bind(station="TBS")
            events.info("segment_stored", index=12, size=48213)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        self._console = logging.getLogger(name) if enable_console else None
        self._context: dict[str, Any] = {
            "run_id": uuid.uuid4().hex[:12],
            "pid": os.getpid(),
        }
        self._stream: TextIO | None = None
        self.json_log_path: Path | None = None

        if enable_json and log_dir is not None:
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            stamp = f"{datetime.now():%Y%m%d_%H%M%S}"
            self.json_log_path = log_dir / f"radiko_recorder_{stamp}.jsonl"
            self._stream = self.json_log_path.open("a", encoding="utf-8")

    def bind(self, **context: Any) -> None:
        """Adds fields repeated on every later JSON entry."""
        self._context.update(context)

    def _emit(self, level: int, event: str, context: dict[str, Any]) -> None:
        if self._console is not None:
            fields = " ".join(f"{k}={v}" for k, v in context.items())
            self._console.log(level, f"{event} {fields}".rstrip())

        if self._stream is None or self._stream.closed:
            return
        record = {
            "ts": datetime.now().isoformat(timespec="milliseconds"),
            "level": logging.getLevelName(level),
            "event": event,
            **self._context,
            **context,
        }
        try:
            self._stream.write(json.dumps(record, ensure_ascii=False, default=str))
            self._stream.write("\n")
            self._stream.flush()
        except (OSError, ValueError) as e:
            print(f"Could not write event log: {e}", file=sys.stderr)

    def debug(self, event: str, **context: Any) -> None:
        self._emit(logging.DEBUG, event, context)

    def info(self, event: str, **context: Any) -> None:
        self._emit(logging.INFO, event, context)

    def warning(self, event: str, **context: Any) -> None:
        self._emit(logging.WARNING, event, context)

    def error(self, event: str, **context: Any) -> None:
        self._emit(logging.ERROR, event, context)

    def close(self) -> None:
        if self._stream is not None and not self._stream.closed:
            self._stream.close()

    def __enter__(self) -> "StructuredLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class RecordingLogger:
    """Lifecycle events of one recording."""

    def __init__(self, events: StructuredLogger):
        self.events = events

    def recording_started(
        self,
        station: str,
        start: str | None,
        duration_minutes: int,
        output_path: str,
        retriever: str,
    ) -> None:
        self.events.bind(station=station)
        self.events.info(
            "recording_started",
            start=start or "live",
            duration_minutes=duration_minutes,
            output_path=output_path,
            retriever=retriever,
        )

    def recording_completed(
        self, station: str, output_path: str, size_bytes: int, elapsed_s: float
    ) -> None:
        self.events.info(
            "recording_completed",
            station=station,
            output_path=output_path,
            size_bytes=size_bytes,
            elapsed_s=round(elapsed_s, 2),
        )

    def recording_failed(self, station: str, error: Exception) -> None:
        details = {
            key: getattr(error, key)
            for key in ("stage", "status", "index", "url", "field")
            if getattr(error, key, None) is not None
        }
        self.events.error(
            "recording_failed",
            station=station,
            error_type=type(error).__name__,
            error=str(error),
            **details,
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, RecordingLogger]:
    """
    Returns the event logger and the recording lifecycle wrapper around it.
    Console output is left to the regular logging setup.
    """
    events = StructuredLogger(
        "radiko_recorder.events",
        log_dir=log_dir,
        enable_json=enable_json,
        enable_console=False,
    )
    return events, RecordingLogger(events)
