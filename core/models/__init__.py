# Path: core/models/__init__.py
# Purpose: Package initializer for domain model definitions.
# Layer: core/models.
# Details: Exposes dataclasses and enums used across indexing, matching, export, and storage layers.

from .domain import (
    HASH_BITS,
    HISTOGRAM_BINS,
    CandidateMatch,
    Fingerprint,
    ImageRecord,
    Progress,
    Project,
    ProjectStatus,
    RecordKind,
    RecordStatus,
    Selection,
    SourceMatches,
    TargetGroup,
    TaskKind,
)

__all__ = [
    "HASH_BITS",
    "HISTOGRAM_BINS",
    "CandidateMatch",
    "Fingerprint",
    "ImageRecord",
    "Progress",
    "Project",
    "ProjectStatus",
    "RecordKind",
    "RecordStatus",
    "Selection",
    "SourceMatches",
    "TargetGroup",
    "TaskKind",
]
