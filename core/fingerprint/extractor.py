# Path: core/fingerprint/extractor.py
# Purpose: Compute the perceptual fingerprint of an image file.
# Layer: core/fingerprint.
# Details: Probe dimensions, force-fit to 32x32 with Lanczos, DCT pHash, optional 48-bin RGB histogram.

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image

from core.errors import DecodeError
from core.models.domain import Fingerprint

from .decoder import ImageDecoder, PillowDecoder
from .hashing import GRID_SIZE, color_histogram, perceptual_hash

logger = logging.getLogger(__name__)


class FeatureExtractor:
    """Turn image files into immutable Fingerprints.

    The resize filter, luminance conversion and DCT constants are part of the hash
    contract: changing any of them changes every stored hash.
    """

    def __init__(self, decoder: Optional[ImageDecoder] = None, compute_histogram: bool = True) -> None:
        self.decoder = decoder or PillowDecoder()
        self.compute_histogram = compute_histogram

    def extract(self, path: Path | str) -> Fingerprint:
        """Return the Fingerprint of ``path`` or raise DecodeError."""

        image_path = Path(path)
        if not image_path.is_file():
            raise DecodeError(image_path, "file not found")

        width, height = self.decoder.probe_dimensions(image_path)
        rgb = self.decoder.decode(image_path)
        if rgb.width == 0 or rgb.height == 0:
            raise DecodeError(image_path, "image has no pixels")

        phash = perceptual_hash(self._luminance_grid(rgb))
        histogram = color_histogram(np.asarray(rgb)) if self.compute_histogram else None
        logger.debug("Fingerprinted %s: phash=%016x size=%dx%d", image_path, phash, width, height)
        return Fingerprint(phash=phash, width=width, height=height, histogram=histogram)

    @staticmethod
    def _luminance_grid(rgb: Image.Image) -> np.ndarray:
        """Resize in colour, then convert to 8-bit luminance."""

        resized = rgb.resize((GRID_SIZE, GRID_SIZE), Image.Resampling.LANCZOS)
        return np.asarray(resized.convert("L"), dtype=np.float64)
