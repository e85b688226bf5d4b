# Path: core/indexing/__init__.py
# Purpose: Package initializer for indexing utilities.
# Layer: core/indexing.
# Details: Exposes scanning, record building, and the project indexing pipeline.

from .index_builder import IndexBuilder, RootReport
from .pipeline import IndexingPipeline, IndexingReport
from .scanner import SUPPORTED_EXTENSIONS, ImageScanner

__all__ = ["ImageScanner", "IndexBuilder", "IndexingPipeline", "IndexingReport", "RootReport", "SUPPORTED_EXTENSIONS"]
