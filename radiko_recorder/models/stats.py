"""
Dataclass for tracking the statistics of a single recording.
"""

import time
from dataclasses import dataclass, field


@dataclass
class RecordingStats:
    """Tracks segment progress and transfer speed for one recording."""

    segments_total: int = 0
    segments_completed: int = 0
    bytes_written: int = 0
    retriever: str = ""
    _start_time: float = field(default=0.0, repr=False)
    _end_time: float | None = field(default=None, repr=False)

    def __post_init__(self):
        self._start_time = time.monotonic()

    def record_segment(self, size: int) -> None:
        self.segments_completed += 1
        self.bytes_written += size

    def finish(self) -> None:
        self._end_time = time.monotonic()

    @property
    def elapsed(self) -> float:
        end = self._end_time if self._end_time is not None else time.monotonic()
        return end - self._start_time

    @property
    def average_speed_bps(self) -> float:
        elapsed = self.elapsed
        return self.bytes_written / elapsed if elapsed > 0 else 0.0
