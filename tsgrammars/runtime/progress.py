"""Rich-based progress display for multi-language compile sweeps."""

from __future__ import annotations

import logging
import threading
from typing import Optional

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

logger = logging.getLogger("tsgrammars.runtime.progress")


class SweepProgress:
    """Progress bar over the languages of one sweep.

    Disabled instances accept every call and render nothing, so the pipeline
    does not need to branch on whether a display is attached.

    Usage:
        with SweepProgress(total=len(languages), enabled=True) as progress:
            for language in languages:
                progress.start(language)
                ...
                progress.advance(language, ok=True)
    """

    def __init__(
        self,
        total: int,
        enabled: bool = True,
        console: Optional[Console] = None,
        description: str = "Compiling grammars",
    ) -> None:
        self.total = total
        self.enabled = enabled
        self.description = description
        self.failed = 0
        self._lock = threading.Lock()
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        if enabled:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                TextColumn("{task.fields[current]}"),
                console=console,
                transient=False,
            )

    def __enter__(self) -> "SweepProgress":
        if self._progress is not None:
            self._progress.start()
            self._task = self._progress.add_task(
                self.description, total=self.total, current=""
            )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._progress is not None:
            self._progress.stop()

    def start(self, language: str) -> None:
        with self._lock:
            if self._progress is not None and self._task is not None:
                self._progress.update(self._task, current=language)

    def advance(self, language: str, ok: bool) -> None:
        with self._lock:
            if not ok:
                self.failed += 1
                logger.debug("%s failed (%d failures so far)", language, self.failed)
            if self._progress is not None and self._task is not None:
                self._progress.advance(self._task)
