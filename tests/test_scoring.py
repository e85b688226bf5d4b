"""
Tests for hash/histogram similarity and the weighted scorer.
"""
import pytest
from pydantic import ValidationError

from config import ScoreWeights
from core.matching import SimilarityScorer, hamming_distance, hamming_similarity, histogram_similarity
from core.matching.scoring import clamp_score
from core.models import Fingerprint

RED = tuple([0.0] * 15 + [1 / 3] + [1 / 3] + [0.0] * 15 + [1 / 3] + [0.0] * 15)
BLUE = tuple([1 / 3] + [0.0] * 15 + [1 / 3] + [0.0] * 15 + [0.0] * 15 + [1 / 3])


def test_hamming_similarity_bounds():
    assert hamming_similarity(0x1234, 0x1234) == 100.0
    assert hamming_similarity(0, (1 << 64) - 1) == 0.0
    assert hamming_similarity(0, 1) == pytest.approx(100.0 * 63 / 64)


def test_hamming_distance_ignores_bits_above_64():
    assert hamming_distance(1 << 64, 0) == 0
    assert hamming_distance(0b1011, 0b0001) == 2


def test_histogram_similarity_identical_is_100():
    assert histogram_similarity(RED, RED) == pytest.approx(100.0)


def test_histogram_similarity_is_symmetric():
    assert histogram_similarity(RED, BLUE) == pytest.approx(histogram_similarity(BLUE, RED))
    assert histogram_similarity(RED, BLUE) == pytest.approx(100.0 / 3)


def test_histogram_similarity_missing_or_mismatched_is_zero():
    assert histogram_similarity(None, RED) == 0.0
    assert histogram_similarity(RED, RED[:47]) == 0.0


def test_clamp_score():
    assert clamp_score(-3.0) == 0.0
    assert clamp_score(100.5) == 100.0
    assert clamp_score(42.0) == 42.0


def test_weights_must_sum_to_one():
    with pytest.raises(ValidationError):
        ScoreWeights(phash_weight=0.7, histogram_weight=0.2)


def test_weights_must_be_non_negative():
    with pytest.raises(ValidationError):
        ScoreWeights(phash_weight=1.5, histogram_weight=-0.5)


def test_default_scorer_uses_hash_only():
    a = Fingerprint(phash=1 << 63, width=1, height=1, histogram=RED)
    b = Fingerprint(phash=1 << 63, width=1, height=1, histogram=BLUE)

    assert SimilarityScorer().score(a, b) == 100.0


def test_weighted_scorer_blends_hash_and_histogram():
    scorer = SimilarityScorer(ScoreWeights(phash_weight=0.5, histogram_weight=0.5))
    red = Fingerprint(phash=1 << 63, width=64, height=64, histogram=RED)
    blue = Fingerprint(phash=1 << 63, width=64, height=64, histogram=BLUE)

    assert scorer.score(red, red) == pytest.approx(100.0)
    assert scorer.score(red, blue) == pytest.approx(50.0 + 50.0 / 3)


def test_fingerprint_validates_hash_and_histogram():
    with pytest.raises(ValueError):
        Fingerprint(phash=1 << 64, width=1, height=1)
    with pytest.raises(ValueError):
        Fingerprint(phash=0, width=1, height=1, histogram=(0.5, 0.5))
