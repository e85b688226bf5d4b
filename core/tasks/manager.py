# Path: core/tasks/manager.py
# Purpose: Own the background jobs of every project, one per (project, kind).
# Layer: core/tasks.
# Details: Starts jobs on threads, replaces and cancels them cooperatively, and exposes running state and progress.

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from core.errors import JobCancelled
from core.models.domain import Progress, TaskKind

from .context import ProgressTracker, TaskContext

logger = logging.getLogger(__name__)

Job = Callable[[TaskContext], Any]
TaskKey = Tuple[int, TaskKind]


@dataclass
class _RunningTask:
    ctx: TaskContext
    thread: threading.Thread


class TaskManager:
    """Keep at most one live job per (project, kind).

    Starting a job on an occupied key cancels the previous job and installs the new
    one immediately; the new job only begins executing once its predecessor has
    exited, so two jobs never write the same project's results concurrently. Kinds
    that write the same results are passed as ``supersedes`` and handed off the same
    way. A key is released when its job function returns, whatever the outcome.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tasks: Dict[TaskKey, _RunningTask] = {}
        self._progress: Dict[TaskKey, ProgressTracker] = {}

    def start(self, project_id: int, kind: TaskKind, job: Job, supersedes: Iterable[TaskKind] = ()) -> TaskContext:
        """Launch ``job`` for the key, replacing any job already there.

        Jobs of the same project listed in ``supersedes`` are cancelled too, and the
        new job waits for them to exit before it starts.
        """

        key = (project_id, kind)
        ctx = TaskContext(project_id=project_id, kind=kind)

        with self._lock:
            predecessors: List[_RunningTask] = []
            for other in (kind, *supersedes):
                running = self._tasks.pop((project_id, other), None)
                if running is None:
                    continue
                running.ctx.cancel()
                predecessors.append(running)
                logger.info("Replacing running %s task for project %d", other.value, project_id)

            thread = threading.Thread(
                target=self._run,
                args=(key, ctx, job, predecessors),
                name=f"{kind.value}-{project_id}",
                daemon=True,
            )
            self._tasks[key] = _RunningTask(ctx=ctx, thread=thread)
            self._progress[key] = ctx.progress
            thread.start()

        logger.info("Started %s task for project %d", kind.value, project_id)
        return ctx

    def _run(self, key: TaskKey, ctx: TaskContext, job: Job, predecessors: List[_RunningTask]) -> None:
        project_id, kind = key
        try:
            for predecessor in predecessors:
                predecessor.thread.join()
            ctx.raise_if_cancelled()
            job(ctx)
        except JobCancelled:
            logger.info("%s task for project %d cancelled", kind.value.capitalize(), project_id)
        except Exception:
            logger.exception("%s task for project %d failed", kind.value.capitalize(), project_id)
        finally:
            with self._lock:
                current = self._tasks.get(key)
                if current is not None and current.ctx is ctx:
                    del self._tasks[key]

    def cancel(self, project_id: int, kind: TaskKind) -> bool:
        """Signal cancellation; returns True if a job was running."""

        with self._lock:
            task = self._tasks.get((project_id, kind))
        if task is None:
            return False
        task.ctx.cancel()
        logger.info("Cancellation requested for %s task of project %d", kind.value, project_id)
        return True

    def cancel_all(self, project_id: int) -> List[TaskKind]:
        """Signal cancellation to every job of a project; returns the kinds signalled."""

        with self._lock:
            tasks = [(key, task) for key, task in self._tasks.items() if key[0] == project_id]
        for _, task in tasks:
            task.ctx.cancel()
        kinds = [key[1] for key, _ in tasks]
        if kinds:
            logger.info("Cancellation requested for project %d: %s", project_id, ", ".join(k.value for k in kinds))
        return kinds

    def is_running(self, project_id: int, kind: TaskKind) -> bool:
        with self._lock:
            return (project_id, kind) in self._tasks

    def wait(self, project_id: int, kind: TaskKind, timeout: Optional[float] = None) -> bool:
        """Block until the current job for the key exits. Returns False on timeout."""

        with self._lock:
            task = self._tasks.get((project_id, kind))
        if task is None:
            return True
        task.thread.join(timeout)
        return not task.thread.is_alive()

    def progress(self, project_id: int, kind: TaskKind) -> Progress:
        """Latest progress of the running job, or of the last one that ran for the key."""

        with self._lock:
            tracker = self._progress.get((project_id, kind))
        return tracker.snapshot() if tracker is not None else Progress()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Cancel every job and wait for them to exit."""

        with self._lock:
            tasks = list(self._tasks.values())
        for task in tasks:
            task.ctx.cancel()
        for task in tasks:
            task.thread.join(timeout)
