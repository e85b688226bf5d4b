# Path: core/service.py
# Purpose: Job submission surface used by scripts and any front-end.
# Layer: core.
# Details: Wires store, pipelines, and TaskManager together and owns the project status policy.

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from config.settings import AppSettings
from core.errors import EmptyResultError, JobCancelled
from core.export.exporter import Exporter, ExportOptions, ExportReport
from core.fingerprint.extractor import FeatureExtractor
from core.indexing.index_builder import IndexBuilder
from core.indexing.pipeline import IndexingPipeline, IndexingReport
from core.matching.dimension_filter import AdaptiveDimensionFilter, NoFilter
from core.matching.pipeline import ComparisonPipeline, ComparisonReport
from core.matching.scoring import SimilarityScorer
from core.models.domain import Progress, Project, ProjectStatus, Selection, SourceMatches, TaskKind
from core.storage.base import MatchStore
from core.storage.sqlite_store import SQLiteMatchStore
from core.tasks.context import TaskContext
from core.tasks.manager import TaskManager
from core.tasks.worker_pool import WorkerPool

logger = logging.getLogger(__name__)

TargetSpec = Union[Mapping[str, Path], Sequence[Tuple[str, Path]]]

# Statuses a cancelled phase falls back to.
_RESTING_STATUSES = {ProjectStatus.PENDING, ProjectStatus.INDEXED, ProjectStatus.COMPLETED}


class MatchingService:
    """High-level service bridging callers with the matching pipelines.

    Every long-running operation is started through the TaskManager and returns
    immediately; callers poll :meth:`progress` and :meth:`is_running`, or block on
    :meth:`wait`.
    """

    def __init__(
        self,
        store: MatchStore,
        settings: Optional[AppSettings] = None,
        task_manager: Optional[TaskManager] = None,
        extractor: Optional[FeatureExtractor] = None,
    ) -> None:
        self.settings = settings or AppSettings()
        self.store = store
        self.tasks = task_manager or TaskManager()
        self.extractor = extractor or FeatureExtractor(compute_histogram=self.settings.indexing.compute_histogram)

        pool = WorkerPool(self.settings.worker_count, name="lookalike")
        comparison = self.settings.comparison
        candidate_filter = (
            AdaptiveDimensionFilter(comparison.dimension_tolerances) if comparison.use_dimension_filter else NoFilter()
        )
        self.indexing = IndexingPipeline(
            store,
            IndexBuilder(self.extractor, pool, self.settings.indexing.extensions),
            batch_size=self.settings.batch_size,
        )
        self.comparison = ComparisonPipeline(
            store,
            pool,
            scorer=SimilarityScorer(comparison.weights),
            candidate_filter=candidate_filter,
            thresholds=comparison.thresholds,
            max_candidates=comparison.max_candidates,
            batch_size=self.settings.batch_size,
        )
        self.exporter = Exporter(store)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "MatchingService":
        return cls(SQLiteMatchStore(settings.database_path), settings)

    # Projects
    def create_project(self, name: str, source_path: Path | str, targets: TargetSpec) -> Project:
        items = list(targets.items()) if isinstance(targets, Mapping) else list(targets)
        return self.store.create_project(name, Path(source_path), [(n, Path(p)) for n, p in items])

    def get_project(self, project_id: int) -> Project:
        return self.store.get_project(project_id)

    # Jobs
    def start_indexing(self, project_id: int, compare: bool = True) -> TaskContext:
        """Index the project and, unless ``compare`` is False, hand off to comparison.

        Replaces a running comparison of the same project.
        """

        def job(ctx: TaskContext) -> None:
            report = self.run_indexing(ctx)
            if compare:
                self._require_comparable(ctx.project_id, report)
                self.run_comparison(ctx)

        return self.tasks.start(project_id, TaskKind.INDEXING, job, supersedes=(TaskKind.COMPARISON,))

    def start_comparison(self, project_id: int, rescore: bool = False) -> TaskContext:
        """Compare the project, indexing it first when it has not been indexed yet.

        Replaces a running indexing job of the same project.
        """

        def job(ctx: TaskContext) -> None:
            status = self.store.get_project(ctx.project_id).status
            if status not in (ProjectStatus.INDEXED, ProjectStatus.COMPLETED):
                self._require_comparable(ctx.project_id, self.run_indexing(ctx))
            self.run_comparison(ctx, rescore=rescore)

        return self.tasks.start(project_id, TaskKind.COMPARISON, job, supersedes=(TaskKind.INDEXING,))

    def start_export(self, project_id: int, options: Optional[ExportOptions] = None) -> TaskContext:
        export_options = options or ExportOptions()
        return self.tasks.start(
            project_id,
            TaskKind.EXPORT,
            lambda ctx: self.exporter.run(ctx.project_id, export_options, ctx),
        )

    def cancel_project(self, project_id: int) -> List[TaskKind]:
        return self.tasks.cancel_all(project_id)

    def is_running(self, project_id: int, kind: TaskKind) -> bool:
        return self.tasks.is_running(project_id, kind)

    def wait(self, project_id: int, kind: TaskKind, timeout: Optional[float] = None) -> bool:
        return self.tasks.wait(project_id, kind, timeout)

    def progress(self, project_id: int, kind: TaskKind) -> Progress:
        return self.tasks.progress(project_id, kind)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self.tasks.shutdown(timeout)

    # Phases, runnable synchronously with any TaskContext
    def run_indexing(self, ctx: TaskContext) -> IndexingReport:
        previous = self.store.get_project(ctx.project_id).status
        try:
            return self.indexing.run(ctx.project_id, ctx)
        except JobCancelled:
            self._restore(ctx.project_id, previous)
            raise
        except Exception as exc:
            self._fail(ctx.project_id, exc)
            raise

    def run_comparison(self, ctx: TaskContext, rescore: bool = False) -> ComparisonReport:
        try:
            report = self.comparison.run(ctx.project_id, ctx, rescore=rescore)
        except JobCancelled:
            self._restore(ctx.project_id, ProjectStatus.INDEXED)
            raise
        except Exception as exc:
            self._fail(ctx.project_id, exc)
            raise
        self.store.set_project_status(ctx.project_id, ProjectStatus.COMPLETED)
        return report

    def run_export(self, ctx: TaskContext, options: Optional[ExportOptions] = None) -> ExportReport:
        return self.exporter.run(ctx.project_id, options or ExportOptions(), ctx)

    def _require_comparable(self, project_id: int, report: IndexingReport) -> None:
        if not report.is_empty:
            return
        if report.source.total == 0:
            exc = EmptyResultError(f"No source images found in {report.source.root}")
        else:
            exc = EmptyResultError("No target images found in any target group")
        self._fail(project_id, exc)
        raise exc

    def _restore(self, project_id: int, status: ProjectStatus) -> None:
        resting = status if status in _RESTING_STATUSES else ProjectStatus.PENDING
        self.store.set_project_status(project_id, resting)
        logger.info("Project %d returned to '%s' after cancellation", project_id, resting.value)

    def _fail(self, project_id: int, exc: BaseException) -> None:
        message = str(exc) or exc.__class__.__name__
        logger.error("Project %d failed: %s", project_id, message)
        self.store.set_project_status(project_id, ProjectStatus.ERROR, message)

    # Review
    def get_matches(self, source_id: int) -> SourceMatches:
        matches = SourceMatches(source=self.store.get_source(source_id))
        for candidate in self.store.list_candidates(source_id):
            matches.candidates.setdefault(candidate.target_id, []).append(candidate)
        for selection in self.store.list_selections(source_id):
            matches.selections[selection.target_id] = selection
        return matches

    def iter_matches(self, project_id: int) -> Iterator[SourceMatches]:
        for source in self.store.list_sources(project_id):
            yield self.get_matches(source.id)

    def select_candidate(self, source_id: int, target_id: int, candidate_id: int) -> Selection:
        return self.store.select_candidate(source_id, target_id, candidate_id)

    def mark_no_match(self, source_id: int, target_id: int) -> Selection:
        return self.store.mark_no_match(source_id, target_id)

    def confirm_source(self, source_id: int, confirmed: bool = True) -> None:
        self.store.set_source_confirmed(source_id, confirmed)

    def compare_files(self, path_a: Path | str, path_b: Path | str) -> float:
        """Score two arbitrary files with the configured weights."""

        return self.comparison.scorer.score(self.extractor.extract(path_a), self.extractor.extract(path_b))
