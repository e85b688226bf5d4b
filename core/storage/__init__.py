# Path: core/storage/__init__.py
# Purpose: Package initializer for persistence.
# Layer: core/storage.
# Details: Exposes the MatchStore interface, its SQLite implementation, and the batch writer.

from .base import MatchStore
from .batching import BatchWriter
from .sqlite_store import SQLiteMatchStore

__all__ = ["MatchStore", "BatchWriter", "SQLiteMatchStore"]
