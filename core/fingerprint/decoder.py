# Path: core/fingerprint/decoder.py
# Purpose: Decode raster images from disk for feature extraction.
# Layer: core/fingerprint.
# Details: Wraps Pillow behind a small protocol so extractors can be tested with other decoders.

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Tuple

from PIL import Image

from core.errors import DecodeError


class ImageDecoder(Protocol):
    """Turn a file path into pixels, or fail with DecodeError."""

    def probe_dimensions(self, path: Path) -> Tuple[int, int]:
        """Return native (width, height) without decoding pixel data where possible."""

    def decode(self, path: Path) -> Image.Image:
        """Return the fully decoded image in RGB mode."""


class PillowDecoder:
    """ImageDecoder backed by Pillow."""

    def probe_dimensions(self, path: Path) -> Tuple[int, int]:
        # Image.open only parses the header; pixel data is read lazily.
        try:
            with Image.open(path) as img:
                return img.size
        except FileNotFoundError as exc:
            raise DecodeError(path, "file not found") from exc
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise DecodeError(path, str(exc)) from exc

    def decode(self, path: Path) -> Image.Image:
        try:
            with Image.open(path) as img:
                img.load()
                # Alpha is dropped, not composited.
                return img.copy() if img.mode == "RGB" else img.convert("RGB")
        except FileNotFoundError as exc:
            raise DecodeError(path, "file not found") from exc
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise DecodeError(path, str(exc)) from exc
