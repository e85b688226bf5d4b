# Path: core/matching/dimension_filter.py
# Purpose: Optional stage narrowing the targets scored against a source.
# Layer: core/matching.
# Details: NoFilter passes everything; AdaptiveDimensionFilter widens a size/width/height tolerance until something matches.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from core.models.domain import ImageRecord

DEFAULT_TOLERANCES = (0.10, 0.15, 0.20, 0.30)


class CandidateFilter(ABC):
    """Interface for pre-scoring target selection."""

    @abstractmethod
    def filter(self, source: ImageRecord, targets: Sequence[ImageRecord]) -> Sequence[ImageRecord]:
        """Return the targets worth scoring against ``source``."""


class NoFilter(CandidateFilter):
    """Score every target."""

    def filter(self, source: ImageRecord, targets: Sequence[ImageRecord]) -> Sequence[ImageRecord]:
        return targets


def within_tolerance(a: int, b: int, tolerance: float) -> bool:
    """True when a/b lies in [1 - tolerance, 1 + tolerance]. Zero never matches."""

    if a <= 0 or b <= 0:
        return False
    ratio = a / b
    return (1.0 - tolerance) <= ratio <= (1.0 + tolerance)


class AdaptiveDimensionFilter(CandidateFilter):
    """Keep targets whose file size, width and height are all close to the source's.

    Tolerances are tried narrowest first; the first one yielding any target wins.
    When none does, all targets are returned unfiltered.
    """

    def __init__(self, tolerances: Sequence[float] = DEFAULT_TOLERANCES) -> None:
        self.tolerances = tuple(tolerances)

    def matches(self, source: ImageRecord, target: ImageRecord, tolerance: float) -> bool:
        return (
            within_tolerance(source.size_bytes, target.size_bytes, tolerance)
            and within_tolerance(source.width, target.width, tolerance)
            and within_tolerance(source.height, target.height, tolerance)
        )

    def filter(self, source: ImageRecord, targets: Sequence[ImageRecord]) -> Sequence[ImageRecord]:
        for tolerance in self.tolerances:
            narrowed: List[ImageRecord] = [t for t in targets if self.matches(source, t, tolerance)]
            if narrowed:
                return narrowed
        return targets
