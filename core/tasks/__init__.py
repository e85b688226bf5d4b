# Path: core/tasks/__init__.py
# Purpose: Provide background job management and bounded worker execution.
# Layer: core/tasks.
# Details: Exposes TaskContext, progress tracking, the TaskManager, and the WorkerPool.

from .context import ProgressTracker, TaskContext
from .manager import TaskManager
from .worker_pool import Outcome, WorkerPool

__all__ = [
    "ProgressTracker",
    "TaskContext",
    "TaskManager",
    "Outcome",
    "WorkerPool",
]
