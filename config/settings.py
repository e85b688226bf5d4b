# Path: config/settings.py
# Purpose: Provide typed application configuration models.
# Layer: config.
# Details: Centralizes settings for indexing, scoring weights, comparison thresholds, and concurrency.

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field, model_validator

DEFAULT_EXTENSIONS = [".jpg", ".jpeg", ".png", ".webp", ".bmp", ".gif", ".tiff", ".tif"]


class ScoreWeights(BaseModel):
    """Weight split between perceptual-hash and colour-histogram similarity."""

    phash_weight: float = Field(default=1.0, ge=0.0, description="Weight applied to perceptual-hash similarity.")
    histogram_weight: float = Field(default=0.0, ge=0.0, description="Weight applied to histogram similarity.")

    @model_validator(mode="after")
    def _check_sum(self) -> "ScoreWeights":
        total = self.phash_weight + self.histogram_weight
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Score weights must sum to 1.0, got {total:.6f}.")
        return self


class IndexingSettings(BaseModel):
    """Settings controlling which files are indexed and which features are extracted."""

    extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS), description="Lower-case file suffixes to index.")
    compute_histogram: bool = Field(default=True, description="Compute the 48-bin RGB histogram alongside the pHash.")


class ComparisonSettings(BaseModel):
    """Settings for adaptive candidate selection and the optional dimension pre-filter."""

    thresholds: List[float] = Field(
        default_factory=lambda: [50.0, 40.0, 30.0, 20.0, 10.0, 0.0],
        description="Similarity cutoffs tried in descending strictness.",
    )
    max_candidates: int = Field(default=50, gt=0, description="Upper bound on ranked candidates per source and target group.")
    use_dimension_filter: bool = Field(default=False, description="Narrow targets by size/width/height before scoring.")
    dimension_tolerances: List[float] = Field(
        default_factory=lambda: [0.10, 0.15, 0.20, 0.30],
        description="Relative tolerances tried by the dimension pre-filter, narrowest first.",
    )
    weights: ScoreWeights = Field(default_factory=ScoreWeights)


class AppSettings(BaseModel):
    """Top-level application settings shared across services and scripts."""

    database_path: Path = Field(default=Path("storage/db/lookalike.sqlite3"), description="Path to the project database.")
    worker_count: int = Field(default=4, gt=0, description="Concurrency limit per pipeline stage.")
    batch_size: int = Field(default=100, gt=0, description="Number of results accumulated before a flush.")
    indexing: IndexingSettings = Field(default_factory=IndexingSettings)
    comparison: ComparisonSettings = Field(default_factory=ComparisonSettings)
    log_level: str = Field(default="INFO", description="Verbosity level for application logs.")

    @classmethod
    def from_env(cls) -> "AppSettings":
        """Instantiate settings, applying ``LOOKALIKE_*`` environment overrides when present."""

        overrides = {}
        if "LOOKALIKE_DB" in os.environ:
            overrides["database_path"] = Path(os.environ["LOOKALIKE_DB"])
        if "LOOKALIKE_WORKERS" in os.environ:
            overrides["worker_count"] = int(os.environ["LOOKALIKE_WORKERS"])
        if "LOOKALIKE_BATCH_SIZE" in os.environ:
            overrides["batch_size"] = int(os.environ["LOOKALIKE_BATCH_SIZE"])
        if "LOOKALIKE_LOG_LEVEL" in os.environ:
            overrides["log_level"] = os.environ["LOOKALIKE_LOG_LEVEL"]
        return cls(**overrides)


__all__ = ["AppSettings", "ComparisonSettings", "IndexingSettings", "ScoreWeights"]
