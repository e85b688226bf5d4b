"""
Tests for per-project job ownership, replacement and cancellation.
"""
import threading

import pytest

from core.models import TaskKind
from core.tasks import TaskManager


@pytest.fixture
def manager():
    tm = TaskManager()
    yield tm
    tm.shutdown(timeout=5)


def test_job_runs_and_key_is_released(manager):
    done = threading.Event()

    manager.start(1, TaskKind.INDEXING, lambda ctx: done.set())

    assert manager.wait(1, TaskKind.INDEXING, timeout=5)
    assert done.is_set()
    assert not manager.is_running(1, TaskKind.INDEXING)


def test_failing_job_releases_key(manager):
    def job(ctx):
        raise RuntimeError("boom")

    manager.start(1, TaskKind.COMPARISON, job)

    assert manager.wait(1, TaskKind.COMPARISON, timeout=5)
    assert not manager.is_running(1, TaskKind.COMPARISON)


def test_starting_again_cancels_and_replaces(manager):
    started = threading.Event()
    events = []

    def first(ctx):
        started.set()
        if ctx.cancel_event.wait(5):
            events.append("first-cancelled")
        ctx.raise_if_cancelled()
        events.append("first-finished")

    def second(ctx):
        events.append("second-ran")

    first_ctx = manager.start(1, TaskKind.COMPARISON, first)
    assert started.wait(5)
    second_ctx = manager.start(1, TaskKind.COMPARISON, second)

    assert first_ctx.cancelled
    assert not second_ctx.cancelled
    assert manager.wait(1, TaskKind.COMPARISON, timeout=5)
    assert events == ["first-cancelled", "second-ran"]
    assert not manager.is_running(1, TaskKind.COMPARISON)


def test_superseding_kind_cancels_and_waits_for_other_job(manager):
    started = threading.Event()
    events = []

    def indexing(ctx):
        started.set()
        ctx.cancel_event.wait(5)
        events.append("indexing-exited")
        ctx.raise_if_cancelled()

    def comparison(ctx):
        events.append("comparison-ran")

    indexing_ctx = manager.start(1, TaskKind.INDEXING, indexing)
    assert started.wait(5)
    manager.start(1, TaskKind.COMPARISON, comparison, supersedes=(TaskKind.INDEXING,))

    assert indexing_ctx.cancelled
    assert not manager.is_running(1, TaskKind.INDEXING)
    assert manager.wait(1, TaskKind.COMPARISON, timeout=5)
    assert events == ["indexing-exited", "comparison-ran"]


def test_cancel_stops_running_job(manager):
    started = threading.Event()

    def job(ctx):
        started.set()
        ctx.cancel_event.wait(5)
        ctx.raise_if_cancelled()

    manager.start(2, TaskKind.EXPORT, job)
    assert started.wait(5)

    assert manager.cancel(2, TaskKind.EXPORT)
    assert manager.wait(2, TaskKind.EXPORT, timeout=5)
    assert not manager.is_running(2, TaskKind.EXPORT)


def test_cancel_unknown_key_returns_false(manager):
    assert not manager.cancel(99, TaskKind.INDEXING)


def test_kinds_and_projects_are_independent(manager):
    release = threading.Event()

    def blocking(ctx):
        release.wait(5)

    manager.start(1, TaskKind.INDEXING, blocking)
    manager.start(1, TaskKind.EXPORT, blocking)
    manager.start(2, TaskKind.INDEXING, blocking)

    assert manager.is_running(1, TaskKind.INDEXING)
    assert manager.is_running(1, TaskKind.EXPORT)
    assert manager.is_running(2, TaskKind.INDEXING)
    assert sorted(k.value for k in manager.cancel_all(1)) == ["export", "indexing"]
    release.set()


def test_progress_survives_job_exit(manager):
    def job(ctx):
        ctx.progress.reset(3)
        for item in ("a", "b", "c"):
            ctx.progress.advance(item)

    manager.start(1, TaskKind.INDEXING, job)
    manager.wait(1, TaskKind.INDEXING, timeout=5)

    progress = manager.progress(1, TaskKind.INDEXING)
    assert (progress.total, progress.processed, progress.current_item) == (3, 3, "c")


def test_progress_of_unknown_key_is_empty(manager):
    progress = manager.progress(5, TaskKind.EXPORT)

    assert (progress.total, progress.processed) == (0, 0)
