# Path: config/__init__.py
# Purpose: Package initializer for configuration module.
# Layer: config.
# Details: Exposes settings models and the logging bootstrap for application-wide configuration.

from .log_setup import setup_logging
from .settings import AppSettings, ComparisonSettings, IndexingSettings, ScoreWeights

__all__ = ["AppSettings", "ComparisonSettings", "IndexingSettings", "ScoreWeights", "setup_logging"]
