"""
Wraps a Rich progress bar for segment-by-segment recordings.
"""

import logging

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

log = logging.getLogger("radiko_recorder")


class ProgressManager:
    """
    Displays segment progress. Its ``update`` method is the progress callback
    handed to the orchestrator.
    """

    def __init__(self, console: Console, description: str = "Recording"):
        self.console = console
        self.description = description
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            MofNCompleteColumn(),
            "segments",
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None

    def __enter__(self) -> "ProgressManager":
        self.progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()

    def update(self, completed: int, total: int) -> None:
        """Progress callback: ``(completed, total)`` segments."""
        if self._task_id is None:
            self._task_id = self.progress.add_task(
                f"[cyan]{self.description}[/cyan]", total=total
            )
        self.progress.update(self._task_id, completed=completed, total=total)
