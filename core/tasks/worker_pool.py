# Path: core/tasks/worker_pool.py
# Purpose: Bounded-concurrency execution of independent work items.
# Layer: core/tasks.
# Details: Thread pool that never has more than max_workers items in flight and stops feeding work once told to.

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterable, Iterator, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_WORKERS = 4


@dataclass
class Outcome(Generic[T, R]):
    """Result of one work item: either ``value`` or ``error`` is set."""

    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WorkerPool:
    """Run a function over items on at most ``max_workers`` threads.

    Items are pulled lazily from the input, so a generator of paths is never
    materialized. ``should_stop`` is polled before each item is submitted; once it
    returns True no further items start, the ones in flight finish, and iteration ends.
    The pool is joined before :meth:`imap_unordered` returns, including when the
    caller stops iterating early.
    """

    def __init__(self, max_workers: int = DEFAULT_WORKERS, name: str = "worker") -> None:
        if max_workers <= 0:
            max_workers = DEFAULT_WORKERS
        self.max_workers = max_workers
        self.name = name

    def imap_unordered(
        self,
        fn: Callable[[T], R],
        items: Iterable[T],
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> Iterator[Outcome[T, R]]:
        """Yield an Outcome per item in completion order."""

        iterator = iter(items)
        exhausted = False
        pending: Dict[Future, T] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=self.name) as executor:
            while True:
                while not exhausted and len(pending) < self.max_workers:
                    if should_stop is not None and should_stop():
                        exhausted = True
                        break
                    try:
                        item = next(iterator)
                    except StopIteration:
                        exhausted = True
                        break
                    pending[executor.submit(fn, item)] = item

                if not pending:
                    return

                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    item = pending.pop(future)
                    error = future.exception()
                    if error is not None:
                        yield Outcome(item=item, error=error)
                    else:
                        yield Outcome(item=item, value=future.result())
