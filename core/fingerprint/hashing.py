# Path: core/fingerprint/hashing.py
# Purpose: Numerical kernels behind the image fingerprint: DCT pHash and RGB colour histogram.
# Layer: core/fingerprint.
# Details: Pure numpy functions plus the hex codec used to store hashes, shared by the extractor and stores.

from __future__ import annotations

from typing import Tuple

import imagehash
import numpy as np

GRID_SIZE = 32
HASH_SIZE = 8
HISTOGRAM_BINS_PER_CHANNEL = 16


def _dct_basis(n: int) -> np.ndarray:
    """Return C with C[k, x] = cos((2x + 1) * k * pi / 2n)."""

    k = np.arange(n, dtype=np.float64).reshape(-1, 1)
    x = np.arange(n, dtype=np.float64).reshape(1, -1)
    return np.cos((2.0 * x + 1.0) * k * np.pi / (2.0 * n))


_BASIS = _dct_basis(GRID_SIZE)
_NORM = np.ones(GRID_SIZE, dtype=np.float64)
_NORM[0] = 1.0 / np.sqrt(2.0)
_SCALE = 0.25 * np.outer(_NORM, _NORM)


def dct_2d(pixels: np.ndarray) -> np.ndarray:
    """DCT-II of a GRID_SIZE x GRID_SIZE luminance grid indexed ``pixels[y][x]``.

    The result is indexed ``[u][v]`` where u is the horizontal (x) frequency and v the
    vertical one: D[u][v] = 0.25 * Cu * Cv * sum_x sum_y P[y][x] * C[u, x] * C[v, y].
    """

    grid = np.asarray(pixels, dtype=np.float64)
    if grid.shape != (GRID_SIZE, GRID_SIZE):
        raise ValueError(f"Expected a {GRID_SIZE}x{GRID_SIZE} grid, got {grid.shape}")
    return _SCALE * (_BASIS @ grid.T @ _BASIS.T)


def hash_bits(pixels: np.ndarray) -> np.ndarray:
    """Return the 8x8 boolean matrix of low-frequency coefficients above their mean."""

    low = dct_2d(pixels)[:HASH_SIZE, :HASH_SIZE]
    values = low.flatten().tolist()
    # Sequential summation keeps the mean bit-identical across platforms.
    mean = sum(values) / len(values)
    return low > mean


def perceptual_hash(pixels: np.ndarray) -> int:
    """64-bit pHash of a luminance grid, MSB first in row-major coefficient order."""

    value = 0
    for bit in hash_bits(pixels).flatten():
        value = (value << 1) | int(bit)
    return value


def color_histogram(rgb: np.ndarray) -> Tuple[float, ...]:
    """48-bin histogram of an (H, W, 3) uint8 array; each channel's 16 bins sum to 1/3."""

    arr = np.asarray(rgb, dtype=np.uint8)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError(f"Expected an RGB array, got shape {arr.shape}")
    total = arr.shape[0] * arr.shape[1]
    if total == 0:
        raise ValueError("Cannot build a histogram for an empty image")

    bins = arr // (256 // HISTOGRAM_BINS_PER_CHANNEL)
    counts = [
        np.bincount(bins[..., channel].ravel(), minlength=HISTOGRAM_BINS_PER_CHANNEL)
        for channel in range(3)
    ]
    normalized = np.concatenate(counts).astype(np.float64) / float(total * 3)
    return tuple(float(v) for v in normalized)


def phash_to_hex(value: int) -> str:
    """Encode a 64-bit hash as the 16-digit hex string used by imagehash."""

    return f"{value:016x}"


def phash_from_hex(text: str) -> int:
    return int(text, 16)


def to_image_hash(value: int) -> imagehash.ImageHash:
    """Wrap a stored 64-bit hash as an imagehash.ImageHash (supports ``a - b`` Hamming distance)."""

    return imagehash.hex_to_hash(phash_to_hex(value))


__all__ = [
    "GRID_SIZE",
    "HASH_SIZE",
    "dct_2d",
    "hash_bits",
    "perceptual_hash",
    "color_histogram",
    "phash_to_hex",
    "phash_from_hex",
    "to_image_hash",
]
