# Path: core/tasks/context.py
# Purpose: Define the per-job context handed to pipeline jobs.
# Layer: core/tasks.
# Details: Carries the project/kind identity, the cooperative cancellation signal, and a polled progress tracker.

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

from core.errors import JobCancelled
from core.models.domain import Progress, TaskKind


class ProgressTracker:
    """Thread-safe counters behind the ``{total, processed, current_item}`` snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0
        self._processed = 0
        self._current: Optional[str] = None

    def reset(self, total: int) -> None:
        with self._lock:
            self._total = total
            self._processed = 0
            self._current = None

    def add_total(self, count: int) -> None:
        with self._lock:
            self._total += count

    def advance(self, current_item: Optional[str] = None, count: int = 1) -> None:
        with self._lock:
            self._processed += count
            if current_item is not None:
                self._current = current_item

    def snapshot(self) -> Progress:
        with self._lock:
            return Progress(total=self._total, processed=self._processed, current_item=self._current)


@dataclass
class TaskContext:
    """Lightweight context object shared between the task manager and a running job.

    Jobs call :meth:`raise_if_cancelled` at the start of each record they process.
    """

    project_id: int
    kind: TaskKind
    cancel_event: threading.Event = field(default_factory=threading.Event)
    progress: ProgressTracker = field(default_factory=ProgressTracker)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise JobCancelled(f"{self.kind.value} job for project {self.project_id} was cancelled")
