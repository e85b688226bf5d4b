# Path: core/matching/threshold.py
# Purpose: Rank scored targets and keep an adaptive, bounded candidate set.
# Layer: core/matching.
# Details: Relaxes the similarity cutoff until something qualifies; never returns an empty set for non-empty input.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from core.models.domain import CandidateMatch, ImageRecord

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS = (50.0, 40.0, 30.0, 20.0, 10.0, 0.0)
DEFAULT_MAX_CANDIDATES = 50


@dataclass(frozen=True)
class ScoredTarget:
    record: ImageRecord
    score: float


def rank_targets(scored: Sequence[ScoredTarget]) -> List[ScoredTarget]:
    """Sort by score descending; equal scores keep discovery order."""

    return sorted(scored, key=lambda item: item.score, reverse=True)


def select_candidates(
    scored: Sequence[ScoredTarget],
    thresholds: Sequence[float] = DEFAULT_THRESHOLDS,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
) -> List[ScoredTarget]:
    """Return the kept candidates, best first.

    The first cutoff with at least one score strictly above it wins and the kept set is
    capped at ``max_candidates``. If nothing clears any cutoff the single best target
    is kept anyway.
    """

    ranked = rank_targets(scored)
    if not ranked:
        return []

    for threshold in thresholds:
        kept = [item for item in ranked if item.score > threshold]
        if kept:
            return kept[:max_candidates]

    logger.debug("No candidate above any threshold, forcing best score %.2f", ranked[0].score)
    return ranked[:1]


def to_candidates(source_id: int, target_id: int, kept: Sequence[ScoredTarget]) -> List[CandidateMatch]:
    """Build CandidateMatch rows with dense 1-based ranks."""

    return [
        CandidateMatch(
            source_id=source_id,
            target_id=target_id,
            file_path=item.record.path,
            score=item.score,
            rank=rank,
            width=item.record.width,
            height=item.record.height,
        )
        for rank, item in enumerate(kept, start=1)
    ]
