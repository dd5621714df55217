"""Rich progress display for a postbuild run.

The orchestrator emits ``(event, payload)`` pairs; ProgressReporter turns
them into one progress bar per pass. Unknown events are ignored.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

_PASS_LABELS = {
    "html": "HTML files",
    "css": "CSS files",
}


class ProgressReporter:
    def __init__(self, console: Console | None = None, *, transient: bool = False) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=transient,
        )
        self._tasks: dict[str, Any] = {}
        self._totals: dict[str, int] = {}
        self.failures: int = 0

    def __enter__(self) -> ProgressReporter:
        self._progress.start()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self._progress.stop()

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        kind, _, phase = event.partition(":")
        if kind not in _PASS_LABELS:
            return
        if phase == "start":
            total = int(payload.get("files", 0))
            self._totals[kind] = total
            self._tasks[kind] = self._progress.add_task(_PASS_LABELS[kind], total=total)
        elif phase == "file":
            task = self._tasks.get(kind)
            if task is not None:
                self._progress.advance(task)
            if payload.get("status") == "failed":
                self.failures += 1
        elif phase == "done":
            task = self._tasks.pop(kind, None)
            if task is not None:
                self._progress.update(task, completed=self._totals.get(kind, 0))
                self._progress.remove_task(task)


__all__ = ["ProgressReporter"]
