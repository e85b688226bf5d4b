# Path: core/fingerprint/__init__.py
# Purpose: Package initializer for image fingerprinting.
# Layer: core/fingerprint.
# Details: Exposes the decoder collaborator, the feature extractor, and the hash codec helpers.

from .decoder import ImageDecoder, PillowDecoder
from .extractor import FeatureExtractor
from .hashing import color_histogram, dct_2d, hash_bits, perceptual_hash, phash_from_hex, phash_to_hex, to_image_hash

__all__ = [
    "ImageDecoder",
    "PillowDecoder",
    "FeatureExtractor",
    "color_histogram",
    "dct_2d",
    "hash_bits",
    "perceptual_hash",
    "phash_from_hex",
    "phash_to_hex",
    "to_image_hash",
]
