# Path: core/indexing/index_builder.py
# Purpose: Turn newly discovered image files into fingerprinted records.
# Layer: core/indexing.
# Details: Lazily yields records for files not yet known, extracting features on the worker pool.

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Iterable, Iterator, Optional

from core.errors import DecodeError, JobCancelled
from core.fingerprint.extractor import FeatureExtractor
from core.models.domain import ImageRecord, RecordKind, RecordStatus
from core.tasks.context import TaskContext
from core.tasks.worker_pool import WorkerPool

from .scanner import SUPPORTED_EXTENSIONS, ImageScanner

logger = logging.getLogger(__name__)


@dataclass
class RootReport:
    """Counts gathered while indexing one root."""

    root: Path
    found: int = 0
    new: int = 0
    failed: int = 0
    total: int = 0


class IndexBuilder:
    """Produce ImageRecords for the files of a root that are not indexed yet."""

    def __init__(
        self,
        extractor: FeatureExtractor,
        pool: WorkerPool,
        extensions: Iterable[str] = SUPPORTED_EXTENSIONS,
    ) -> None:
        self.extractor = extractor
        self.pool = pool
        self.extensions = set(extensions)

    def iter_records(
        self,
        root: Path,
        known_relative_paths: AbstractSet[str],
        kind: RecordKind,
        owner_id: int,
        ctx: Optional[TaskContext] = None,
        report: Optional[RootReport] = None,
    ) -> Iterator[ImageRecord]:
        """Yield one ``indexed`` record per new file under ``root``, in completion order.

        Files that cannot be decoded are logged and skipped. When ``ctx`` is cancelled no
        further files are started and JobCancelled is raised once in-flight work drains.
        Raises PathError if ``root`` does not exist.
        """

        report = report if report is not None else RootReport(root=Path(root))
        scanner = ImageScanner(root, self.extensions, role=kind.value)

        pending = []
        for path in scanner.iter_image_files():
            report.found += 1
            relative = scanner.relative_path(path)
            if relative not in known_relative_paths:
                pending.append((path, relative))

        logger.info("[%s] %s: %d images found, %d new", kind.value.upper(), root, report.found, len(pending))
        if ctx is not None:
            ctx.progress.add_total(len(pending))

        def build(entry: tuple) -> ImageRecord:
            path, relative = entry
            if ctx is not None:
                ctx.raise_if_cancelled()
            fingerprint = self.extractor.extract(path)
            try:
                size_bytes = path.stat().st_size
            except OSError as exc:
                raise DecodeError(path, str(exc)) from exc
            return ImageRecord(
                kind=kind,
                relative_path=relative,
                path=path.resolve(),
                width=fingerprint.width,
                height=fingerprint.height,
                size_bytes=size_bytes,
                fingerprint=fingerprint,
                status=RecordStatus.INDEXED,
                project_id=owner_id if kind is RecordKind.SOURCE else None,
                target_id=owner_id if kind is RecordKind.TARGET else None,
            )

        should_stop = (lambda: ctx.cancelled) if ctx is not None else None
        for outcome in self.pool.imap_unordered(build, pending, should_stop=should_stop):
            path, relative = outcome.item
            if ctx is not None:
                ctx.progress.advance(relative)
            if outcome.ok:
                report.new += 1
                yield outcome.value
            elif isinstance(outcome.error, JobCancelled):
                continue
            elif isinstance(outcome.error, DecodeError):
                report.failed += 1
                logger.warning("Skipping %s: %s", path, outcome.error.reason)
            else:
                raise outcome.error

        if ctx is not None:
            ctx.raise_if_cancelled()
