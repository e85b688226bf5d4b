# Path: core/matching/scoring.py
# Purpose: Score the visual similarity of two fingerprints on a 0-100 scale.
# Layer: core/matching.
# Details: Hamming similarity of pHashes, Bhattacharyya coefficient of histograms, and a weighted blend.

from __future__ import annotations

import math
from typing import Optional, Sequence

from config.settings import ScoreWeights
from core.models.domain import HASH_BITS, Fingerprint

_HASH_MASK = (1 << HASH_BITS) - 1


def hamming_distance(a: int, b: int) -> int:
    """Number of differing bits between two 64-bit hashes."""

    return bin((a ^ b) & _HASH_MASK).count("1")


def hamming_similarity(a: int, b: int) -> float:
    """(1 - distance / 64) * 100."""

    return (1.0 - hamming_distance(a, b) / HASH_BITS) * 100.0


def histogram_similarity(h1: Optional[Sequence[float]], h2: Optional[Sequence[float]]) -> float:
    """Bhattacharyya coefficient of two histograms, scaled to 0-100.

    Returns 0.0 when either histogram is missing or the lengths differ.
    """

    if h1 is None or h2 is None or len(h1) != len(h2):
        return 0.0
    return sum(math.sqrt(a * b) for a, b in zip(h1, h2)) * 100.0


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


class SimilarityScorer:
    """Weighted blend of hash and histogram similarity.

    The default weights use the perceptual hash only; the histogram is not
    even looked at unless its weight is non-zero.
    """

    def __init__(self, weights: Optional[ScoreWeights] = None) -> None:
        self.weights = weights or ScoreWeights()

    def score(self, a: Fingerprint, b: Fingerprint) -> float:
        total = 0.0
        if self.weights.phash_weight:
            total += self.weights.phash_weight * hamming_similarity(a.phash, b.phash)
        if self.weights.histogram_weight:
            total += self.weights.histogram_weight * histogram_similarity(a.histogram, b.histogram)
        return clamp_score(total)
