# Path: core/storage/base.py
# Purpose: Define the persistence interface consumed by the pipelines and the service.
# Layer: core/storage.
# Details: Projects, indexed records, ranked candidates, and selections; write failures surface as PersistenceError.

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, Set, Tuple

from core.models.domain import (
    CandidateMatch,
    ImageRecord,
    Project,
    ProjectStatus,
    RecordKind,
    RecordStatus,
    Selection,
)


class MatchStore(Protocol):
    """Store for everything the matching engine produces.

    Implementations must give read-after-write consistency within one process and
    be safe to call from several threads.
    """

    # Projects
    def create_project(self, name: str, source_path: Path, targets: Sequence[Tuple[str, Path]]) -> Project:
        """Create a project with its named target directories."""

    def get_project(self, project_id: int) -> Project:
        """Return the project with its target groups; KeyError if unknown."""

    def set_project_status(self, project_id: int, status: ProjectStatus, error_message: Optional[str] = None) -> None:
        """Atomically update the project status (and error message)."""

    # Records
    def known_relative_paths(self, kind: RecordKind, owner_id: int) -> Set[str]:
        """Relative paths already indexed under a project (sources) or target group (targets)."""

    def insert_records(self, records: Sequence[ImageRecord]) -> int:
        """Bulk-insert records, ignoring ones already present. Returns rows written."""

    def get_source(self, source_id: int) -> ImageRecord:
        """Return one source record; KeyError if unknown."""

    def list_sources(self, project_id: int, statuses: Optional[Iterable[RecordStatus]] = None) -> List[ImageRecord]:
        """Source records of a project in discovery order, optionally filtered by status."""

    def list_targets(self, target_id: int) -> List[ImageRecord]:
        """Target records of one group in discovery order."""

    def count_sources(self, project_id: int, statuses: Optional[Iterable[RecordStatus]] = None) -> int:
        """Number of source records, optionally filtered by status."""

    def count_targets(self, target_id: int) -> int:
        """Number of target records in one group."""

    def reset_analyzed_sources(self, project_id: int) -> int:
        """Move analyzed sources back to indexed so they are compared again."""

    def set_source_confirmed(self, source_id: int, confirmed: bool = True) -> None:
        """Flag a source as reviewed."""

    # Candidates and selections
    def save_results(self, candidates: Sequence[CandidateMatch], analyzed_source_ids: Sequence[int]) -> None:
        """Insert candidates and mark their sources analyzed in one transaction."""

    def clear_candidates(self, source_ids: Sequence[int]) -> None:
        """Remove candidates of the given sources and the selections pointing at them."""

    def list_candidates(self, source_id: int) -> List[CandidateMatch]:
        """Candidates of one source ordered by target group then rank."""

    def create_auto_selections(self, project_id: int) -> int:
        """Select every rank-1 candidate whose (source, group) has no selection. Returns rows created."""

    def select_candidate(self, source_id: int, target_id: int, candidate_id: int) -> Selection:
        """Record a user choice, replacing any previous selection for the pair."""

    def mark_no_match(self, source_id: int, target_id: int) -> Selection:
        """Record that the group holds no match for the source."""

    def list_selections(self, source_id: int) -> List[Selection]:
        """Selections of one source, one per target group at most."""
