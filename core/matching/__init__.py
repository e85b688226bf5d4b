# Path: core/matching/__init__.py
# Purpose: Package initializer for similarity scoring and candidate ranking.
# Layer: core/matching.
# Details: Exposes the scorer, adaptive threshold helpers, dimension filters, and the comparison pipeline.

from .dimension_filter import AdaptiveDimensionFilter, CandidateFilter, NoFilter
from .pipeline import ComparisonPipeline, ComparisonReport
from .scoring import SimilarityScorer, hamming_distance, hamming_similarity, histogram_similarity
from .threshold import ScoredTarget, rank_targets, select_candidates, to_candidates

__all__ = [
    "AdaptiveDimensionFilter",
    "CandidateFilter",
    "NoFilter",
    "ComparisonPipeline",
    "ComparisonReport",
    "SimilarityScorer",
    "hamming_distance",
    "hamming_similarity",
    "histogram_similarity",
    "ScoredTarget",
    "rank_targets",
    "select_candidates",
    "to_candidates",
]
