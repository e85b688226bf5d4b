"""
Tests for decoding, pHash and histogram extraction.
"""
import imagehash
import numpy as np
import pytest

from core.errors import DecodeError
from core.fingerprint import FeatureExtractor, color_histogram, dct_2d, hash_bits, perceptual_hash, to_image_hash
from core.matching import hamming_distance


@pytest.fixture
def extractor():
    return FeatureExtractor()


def test_extract_is_deterministic(extractor, noise_image, tmp_path):
    path = noise_image(tmp_path / "a.png", seed=3)

    first = extractor.extract(path)
    second = extractor.extract(path)

    assert first == second


def test_identical_pixels_give_identical_hash(extractor, noise_image, tmp_path):
    a = extractor.extract(noise_image(tmp_path / "a.png", seed=7))
    b = extractor.extract(noise_image(tmp_path / "nested" / "b.png", seed=7))
    c = extractor.extract(noise_image(tmp_path / "c.png", seed=8))

    assert a.phash == b.phash
    assert a.phash != c.phash


def test_native_dimensions_are_reported(extractor, solid_image, tmp_path):
    fp = extractor.extract(solid_image(tmp_path / "wide.png", size=(40, 20)))

    assert (fp.width, fp.height) == (40, 20)


def test_histogram_channels_each_sum_to_a_third(extractor, noise_image, tmp_path):
    fp = extractor.extract(noise_image(tmp_path / "a.png", seed=1))

    assert len(fp.histogram) == 48
    for channel in range(3):
        assert sum(fp.histogram[channel * 16 : (channel + 1) * 16]) == pytest.approx(1 / 3)


def test_histogram_of_solid_red(extractor, solid_image, tmp_path):
    fp = extractor.extract(solid_image(tmp_path / "red.png", color=(255, 0, 0)))

    assert fp.histogram[15] == pytest.approx(1 / 3)
    assert fp.histogram[16] == pytest.approx(1 / 3)
    assert fp.histogram[32] == pytest.approx(1 / 3)
    assert sum(fp.histogram) == pytest.approx(1.0)


def test_histogram_can_be_skipped(solid_image, tmp_path):
    fp = FeatureExtractor(compute_histogram=False).extract(solid_image(tmp_path / "red.png"))

    assert fp.histogram is None


def test_missing_file_raises_decode_error(extractor, tmp_path):
    with pytest.raises(DecodeError) as excinfo:
        extractor.extract(tmp_path / "missing.png")

    assert excinfo.value.path == tmp_path / "missing.png"


def test_corrupt_file_raises_decode_error(extractor, tmp_path):
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"definitely not a jpeg")

    with pytest.raises(DecodeError):
        extractor.extract(broken)


def test_constant_grid_sets_only_the_first_bit():
    assert perceptual_hash(np.full((32, 32), 128.0)) == 1 << 63


def test_dct_first_index_is_horizontal_frequency():
    ramp = np.tile(np.arange(32, dtype=np.float64), (32, 1))

    coefficients = dct_2d(ramp)

    assert abs(coefficients[1][0]) > 1.0
    assert coefficients[0][1] == pytest.approx(0.0, abs=1e-9)


def test_dct_rejects_wrong_grid_size():
    with pytest.raises(ValueError):
        dct_2d(np.zeros((16, 16)))


def test_color_histogram_rejects_non_rgb():
    with pytest.raises(ValueError):
        color_histogram(np.zeros((4, 4), dtype=np.uint8))


def test_stored_hash_interoperates_with_imagehash(extractor, noise_image, tmp_path):
    a = extractor.extract(noise_image(tmp_path / "a.png", seed=1)).phash
    b = extractor.extract(noise_image(tmp_path / "b.png", seed=2)).phash

    assert to_image_hash(a) - to_image_hash(b) == hamming_distance(a, b)


def test_hash_matches_imagehash_bit_order():
    grid = np.random.default_rng(3).integers(0, 256, size=(32, 32)).astype(np.float64)

    assert to_image_hash(perceptual_hash(grid)) == imagehash.ImageHash(hash_bits(grid))
