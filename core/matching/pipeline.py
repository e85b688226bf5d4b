# Path: core/matching/pipeline.py
# Purpose: Score every pending source against every target group and persist ranked candidates.
# Layer: core/matching.
# Details: Sources are compared on the worker pool; results are batched under one lock, then rank-1 matches are auto-selected.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from core.errors import EmptyResultError, JobCancelled
from core.models.domain import CandidateMatch, ImageRecord, Project, ProjectStatus, RecordStatus
from core.storage.base import MatchStore
from core.storage.batching import DEFAULT_BATCH_SIZE, BatchWriter
from core.tasks.context import TaskContext
from core.tasks.worker_pool import WorkerPool

from .dimension_filter import CandidateFilter, NoFilter
from .scoring import SimilarityScorer
from .threshold import DEFAULT_MAX_CANDIDATES, DEFAULT_THRESHOLDS, ScoredTarget, select_candidates, to_candidates

logger = logging.getLogger(__name__)


@dataclass
class SourceResult:
    source_id: int
    candidates: List[CandidateMatch]


@dataclass
class ComparisonReport:
    pending_sources: int = 0
    processed_sources: int = 0
    candidates: int = 0
    lost_results: int = 0
    auto_selected: int = 0
    skipped_groups: List[int] = field(default_factory=list)


class ComparisonPipeline:
    """Produce ranked CandidateMatches for every (source, target group) pair.

    Only sources in status ``indexed`` are compared; each becomes ``analyzed`` in the
    same write as its candidates, so an interrupted run resumes where it stopped.
    ``rescore=True`` compares analyzed sources again from scratch.
    """

    def __init__(
        self,
        store: MatchStore,
        pool: WorkerPool,
        scorer: Optional[SimilarityScorer] = None,
        candidate_filter: Optional[CandidateFilter] = None,
        thresholds: Sequence[float] = DEFAULT_THRESHOLDS,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.store = store
        self.pool = pool
        self.scorer = scorer or SimilarityScorer()
        self.candidate_filter = candidate_filter or NoFilter()
        self.thresholds = tuple(thresholds)
        self.max_candidates = max_candidates
        self.batch_size = batch_size

    def load_target_groups(self, project: Project) -> Dict[int, List[ImageRecord]]:
        """Return the non-empty target groups, raising EmptyResultError if comparison is meaningless."""

        indexed = self.store.count_sources(project.id, [RecordStatus.INDEXED, RecordStatus.ANALYZED])
        if indexed == 0:
            raise EmptyResultError(f"No indexed source files found for project '{project.name}'")

        groups: Dict[int, List[ImageRecord]] = {}
        for group in project.targets:
            targets = [t for t in self.store.list_targets(group.id) if t.fingerprint is not None]
            if targets:
                groups[group.id] = targets
            else:
                logger.warning("Target group '%s' has no indexed files, skipping it", group.name)

        if not groups:
            raise EmptyResultError(f"No indexed target files found for project '{project.name}'")
        return groups

    def run(self, project_id: int, ctx: TaskContext, rescore: bool = False) -> ComparisonReport:
        project = self.store.get_project(project_id)
        groups = self.load_target_groups(project)
        report = ComparisonReport(skipped_groups=[g.id for g in project.targets if g.id not in groups])

        if rescore:
            reset = self.store.reset_analyzed_sources(project_id)
            logger.info("Rescoring %d analyzed source(s) of project %d", reset, project_id)

        pending = [s for s in self.store.list_sources(project_id, [RecordStatus.INDEXED]) if s.fingerprint is not None]
        # Candidates left behind for a pending source are stale.
        self.store.clear_candidates([s.id for s in pending])

        self.store.set_project_status(project_id, ProjectStatus.COMPARING)
        report.pending_sources = len(pending)
        ctx.progress.reset(len(pending))
        logger.info(
            "Comparing %d source(s) against %d target group(s) for project %d",
            len(pending),
            len(groups),
            project_id,
        )

        writer: BatchWriter[SourceResult] = BatchWriter(
            self._save,
            self.batch_size,
            label="comparison results",
            size_of=lambda result: max(1, len(result.candidates)),
        )

        def compare(source: ImageRecord) -> SourceResult:
            ctx.raise_if_cancelled()
            return SourceResult(source_id=source.id, candidates=self.compare_source(source, groups))

        try:
            for outcome in self.pool.imap_unordered(compare, pending, should_stop=lambda: ctx.cancelled):
                ctx.progress.advance(outcome.item.relative_path)
                if outcome.ok:
                    writer.add([outcome.value])
                    report.processed_sources += 1
                    report.candidates += len(outcome.value.candidates)
                elif not isinstance(outcome.error, JobCancelled):
                    raise outcome.error
        finally:
            writer.flush()
            report.lost_results = writer.lost

        ctx.raise_if_cancelled()

        report.auto_selected = self.store.create_auto_selections(project_id)
        logger.info(
            "Comparison of project %d finished: %d source(s), %d candidate(s), %d auto-selection(s)",
            project_id,
            report.processed_sources,
            report.candidates,
            report.auto_selected,
        )
        return report

    def compare_source(self, source: ImageRecord, groups: Dict[int, List[ImageRecord]]) -> List[CandidateMatch]:
        """Ranked candidates of one source across all groups."""

        candidates: List[CandidateMatch] = []
        for target_id, targets in groups.items():
            subset = self.candidate_filter.filter(source, targets)
            scored = [ScoredTarget(record=t, score=self.scorer.score(source.fingerprint, t.fingerprint)) for t in subset]
            kept = select_candidates(scored, self.thresholds, self.max_candidates)
            candidates.extend(to_candidates(source.id, target_id, kept))
            logger.debug("Found %d candidate(s) for %s in group %d", len(kept), source.relative_path, target_id)
        return candidates

    def _save(self, batch: List[SourceResult]) -> None:
        self.store.save_results(
            [candidate for result in batch for candidate in result.candidates],
            [result.source_id for result in batch],
        )
