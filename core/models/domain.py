# Path: core/models/domain.py
# Purpose: Define domain models shared across indexing, comparison, export, and storage.
# Layer: core/models.
# Details: Lightweight dataclasses keep the pipelines independent of the persistence backend.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

HASH_BITS = 64
HISTOGRAM_BINS = 48


class ProjectStatus(str, Enum):
    PENDING = "pending"
    INDEXING = "indexing"
    INDEXED = "indexed"
    COMPARING = "comparing"
    COMPLETED = "completed"
    ERROR = "error"


class RecordKind(str, Enum):
    SOURCE = "source"
    TARGET = "target"


class RecordStatus(str, Enum):
    PENDING = "pending"
    INDEXED = "indexed"
    ANALYZED = "analyzed"


class TaskKind(str, Enum):
    INDEXING = "indexing"
    COMPARISON = "comparison"
    EXPORT = "export"


@dataclass(frozen=True)
class Fingerprint:
    """Perceptual summary of one image.

    ``phash`` is a 64-bit unsigned integer, bit 63 holding the first DCT coefficient.
    ``histogram`` has 48 bins (R, G, B x 16) with each channel summing to 1/3.
    """

    phash: int
    width: int
    height: int
    histogram: Optional[Tuple[float, ...]] = None

    def __post_init__(self) -> None:
        if not 0 <= self.phash < (1 << HASH_BITS):
            raise ValueError(f"phash must fit in {HASH_BITS} bits, got {self.phash}")
        if self.histogram is not None and len(self.histogram) != HISTOGRAM_BINS:
            raise ValueError(f"histogram must have {HISTOGRAM_BINS} bins, got {len(self.histogram)}")


@dataclass
class ImageRecord:
    """An indexed source or target file."""

    kind: RecordKind
    relative_path: str
    path: Path
    width: int
    height: int
    size_bytes: int
    fingerprint: Optional[Fingerprint] = None
    status: RecordStatus = RecordStatus.PENDING
    id: Optional[int] = None
    project_id: Optional[int] = None
    target_id: Optional[int] = None
    confirmed: bool = False


@dataclass
class TargetGroup:
    """A named target directory belonging to a project."""

    id: int
    project_id: int
    name: str
    path: Path


@dataclass
class Project:
    """A source tree matched against one or more target groups."""

    id: int
    name: str
    source_path: Path
    status: ProjectStatus = ProjectStatus.PENDING
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    targets: List[TargetGroup] = field(default_factory=list)


@dataclass(frozen=True)
class CandidateMatch:
    """A ranked target file proposed for a source file within one target group."""

    source_id: int
    target_id: int
    file_path: Path
    score: float
    rank: int
    width: int
    height: int
    id: Optional[int] = None


@dataclass
class Selection:
    """The chosen candidate (or an explicit no-match) for one source and target group."""

    source_id: int
    target_id: int
    candidate_id: Optional[int] = None
    no_match: bool = False
    auto: bool = False
    id: Optional[int] = None


@dataclass(frozen=True)
class Progress:
    """Polled snapshot of a running job."""

    total: int = 0
    processed: int = 0
    current_item: Optional[str] = None


@dataclass
class SourceMatches:
    """Everything known about one source file: ranked candidates and selections per target group."""

    source: ImageRecord
    candidates: Dict[int, List[CandidateMatch]] = field(default_factory=dict)
    selections: Dict[int, Selection] = field(default_factory=dict)

    def best(self, target_id: int) -> Optional[CandidateMatch]:
        """Return the rank-1 candidate for a target group if any."""

        ranked = self.candidates.get(target_id) or []
        return ranked[0] if ranked else None

    def selected(self, target_id: int) -> Optional[CandidateMatch]:
        """Return the candidate chosen for a target group, or None for no selection / no match."""

        selection = self.selections.get(target_id)
        if selection is None or selection.no_match or selection.candidate_id is None:
            return None
        for candidate in self.candidates.get(target_id, []):
            if candidate.id == selection.candidate_id:
                return candidate
        return None
