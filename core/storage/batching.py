# Path: core/storage/batching.py
# Purpose: Accumulate pipeline results and write them to the store in batches.
# Layer: core/storage.
# Details: A single lock serializes appends and flushes; a failed flush is logged and its batch dropped.

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Iterable, List, TypeVar

from core.errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 100


class BatchWriter(Generic[T]):
    """Collect items and hand them to ``flush_fn`` once ``batch_size`` is reached.

    ``size_of`` weighs each item (for example the number of candidates a
    comparison result carries); the default counts items. Call :meth:`flush`
    at the end of a run to write the remainder.
    """

    def __init__(
        self,
        flush_fn: Callable[[List[T]], None],
        batch_size: int = DEFAULT_BATCH_SIZE,
        label: str = "items",
        size_of: Callable[[T], int] = lambda _item: 1,
    ) -> None:
        self._flush_fn = flush_fn
        self._size_of = size_of
        self.batch_size = batch_size
        self.label = label
        self._lock = threading.Lock()
        self._items: List[T] = []
        self._pending_size = 0
        self.flushed = 0
        self.lost = 0

    def add(self, items: Iterable[T]) -> None:
        with self._lock:
            for item in items:
                self._items.append(item)
                self._pending_size += self._size_of(item)
            if self._pending_size >= self.batch_size:
                self._flush_locked()

    def flush(self) -> None:
        with self._lock:
            self._flush_locked()

    def _flush_locked(self) -> None:
        if not self._items:
            return
        batch, self._items, self._pending_size = self._items, [], 0
        try:
            self._flush_fn(batch)
        except PersistenceError as exc:
            self.lost += len(batch)
            logger.error("Dropped batch of %d %s: %s", len(batch), self.label, exc)
            return
        self.flushed += len(batch)
        logger.debug("Flushed batch of %d %s", len(batch), self.label)
