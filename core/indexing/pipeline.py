# Path: core/indexing/pipeline.py
# Purpose: Index a project's source root and every target group into the store.
# Layer: core/indexing.
# Details: Streams new records from IndexBuilder into a batched writer and reports per-root counts.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from core.errors import PathError
from core.models.domain import ProjectStatus, RecordKind
from core.storage.base import MatchStore
from core.storage.batching import DEFAULT_BATCH_SIZE, BatchWriter
from core.tasks.context import TaskContext

from .index_builder import IndexBuilder, RootReport

logger = logging.getLogger(__name__)


@dataclass
class IndexingReport:
    """Outcome of one indexing run.

    ``is_empty`` is the condition comparison must refuse to run on: no indexed
    source records, or no indexed target records in any group.
    """

    source: RootReport
    targets: Dict[int, RootReport] = field(default_factory=dict)

    @property
    def new_records(self) -> int:
        return self.source.new + sum(r.new for r in self.targets.values())

    @property
    def empty_groups(self) -> List[int]:
        return [target_id for target_id, report in self.targets.items() if report.total == 0]

    @property
    def is_empty(self) -> bool:
        return self.source.total == 0 or all(r.total == 0 for r in self.targets.values())


class IndexingPipeline:
    """Run indexing for a whole project.

    Re-running picks up files added since the previous run; files already indexed
    are skipped by relative path, so no duplicate records are written. When a
    target group gains files, analyzed sources go back to indexed so the next
    comparison scores them against the new targets too.
    """

    def __init__(self, store: MatchStore, builder: IndexBuilder, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self.store = store
        self.builder = builder
        self.batch_size = batch_size

    def run(self, project_id: int, ctx: TaskContext) -> IndexingReport:
        project = self.store.get_project(project_id)
        logger.info("Indexing project %d (%s), source %s", project.id, project.name, project.source_path)

        # Fail before doing any work when a root is missing.
        if not project.source_path.is_dir():
            raise PathError(project.source_path, "source")
        for group in project.targets:
            if not group.path.is_dir():
                raise PathError(group.path, f"target '{group.name}'")

        self.store.set_project_status(project_id, ProjectStatus.INDEXING)
        ctx.progress.reset(0)

        source_report = self._index_root(project.id, RecordKind.SOURCE, project.id, project.source_path, ctx)
        report = IndexingReport(source=source_report)
        for group in project.targets:
            report.targets[group.id] = self._index_root(project.id, RecordKind.TARGET, group.id, group.path, ctx)

        self.store.set_project_status(project_id, ProjectStatus.INDEXED)
        logger.info(
            "Indexing of project %d finished: %d new record(s), %d source(s) total",
            project_id,
            report.new_records,
            report.source.total,
        )
        return report

    def _index_root(
        self, project_id: int, kind: RecordKind, owner_id: int, root: Path, ctx: TaskContext
    ) -> RootReport:
        report = RootReport(root=root)
        known = self.store.known_relative_paths(kind, owner_id)
        writer = BatchWriter(self.store.insert_records, self.batch_size, label=f"{kind.value} records")
        try:
            for record in self.builder.iter_records(root, known, kind, owner_id, ctx=ctx, report=report):
                writer.add([record])
        finally:
            writer.flush()
            if kind is RecordKind.TARGET and report.new:
                # New targets invalidate earlier results; queue analyzed sources for comparison again.
                reset = self.store.reset_analyzed_sources(project_id)
                if reset:
                    logger.info("%d analyzed source(s) queued for rescoring after new targets in %s", reset, root)

        if kind is RecordKind.SOURCE:
            report.total = self.store.count_sources(owner_id)
        else:
            report.total = self.store.count_targets(owner_id)
        if report.failed:
            logger.warning("[%s] %s: %d file(s) could not be decoded", kind.value.upper(), root, report.failed)
        return report
