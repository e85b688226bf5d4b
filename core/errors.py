# Path: core/errors.py
# Purpose: Define the error taxonomy shared by the matching engine.
# Layer: core.
# Details: Separates per-file, per-run, persistence, and cancellation outcomes so callers can react differently.

from __future__ import annotations

from pathlib import Path


class LookalikeError(Exception):
    """Base class for all engine errors."""


class DecodeError(LookalikeError):
    """An image file is missing, corrupt, or not a supported raster format.

    Per-file: the pipelines log it and skip the file.
    """

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Cannot decode {self.path}: {reason}")


class PathError(LookalikeError):
    """A source or target root does not exist. Aborts the run."""

    def __init__(self, path: Path | str, role: str = "root") -> None:
        self.path = Path(path)
        self.role = role
        super().__init__(f"{role.capitalize()} path does not exist: {self.path}")


class EmptyResultError(LookalikeError):
    """Comparison has nothing to work with on one side. Aborts the run."""


class PersistenceError(LookalikeError):
    """A batch could not be written to the store."""


class JobCancelled(LookalikeError):
    """Raised inside a job when its cancellation signal has been set.

    Not a failure: the job exits and the project keeps its last good status.
    """


__all__ = [
    "LookalikeError",
    "DecodeError",
    "PathError",
    "EmptyResultError",
    "PersistenceError",
    "JobCancelled",
]
