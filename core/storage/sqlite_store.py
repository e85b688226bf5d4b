# Path: core/storage/sqlite_store.py
# Purpose: SQLite implementation of the MatchStore interface.
# Layer: core/storage.
# Details: One short-lived connection per operation so worker threads never share a connection.

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from core.errors import PersistenceError
from core.fingerprint.hashing import phash_from_hex, phash_to_hex
from core.models.domain import (
    CandidateMatch,
    Fingerprint,
    ImageRecord,
    Project,
    ProjectStatus,
    RecordKind,
    RecordStatus,
    Selection,
    TargetGroup,
)

logger = logging.getLogger(__name__)

# Stay well under SQLite's host-parameter limit.
_CHUNK = 500

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS projects (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        source_path TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        error_message TEXT,
        started_at TEXT,
        ended_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS project_targets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        path TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS source_files (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        relative_path TEXT NOT NULL,
        full_path TEXT NOT NULL,
        width INTEGER NOT NULL,
        height INTEGER NOT NULL,
        size_bytes INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        phash TEXT,
        histogram TEXT,
        confirmed INTEGER NOT NULL DEFAULT 0,
        UNIQUE(project_id, relative_path)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS target_files (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_target_id INTEGER NOT NULL REFERENCES project_targets(id) ON DELETE CASCADE,
        relative_path TEXT NOT NULL,
        full_path TEXT NOT NULL,
        width INTEGER NOT NULL,
        height INTEGER NOT NULL,
        size_bytes INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        phash TEXT,
        histogram TEXT,
        UNIQUE(project_target_id, relative_path)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS comparison_candidates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source_file_id INTEGER NOT NULL REFERENCES source_files(id) ON DELETE CASCADE,
        project_target_id INTEGER NOT NULL REFERENCES project_targets(id) ON DELETE CASCADE,
        file_path TEXT NOT NULL,
        similarity_score REAL NOT NULL,
        rank INTEGER NOT NULL,
        width INTEGER NOT NULL,
        height INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS target_selections (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source_file_id INTEGER NOT NULL REFERENCES source_files(id) ON DELETE CASCADE,
        project_target_id INTEGER NOT NULL REFERENCES project_targets(id) ON DELETE CASCADE,
        selected_candidate_id INTEGER REFERENCES comparison_candidates(id) ON DELETE SET NULL,
        no_match INTEGER NOT NULL DEFAULT 0,
        auto INTEGER NOT NULL DEFAULT 0,
        UNIQUE(source_file_id, project_target_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_source_files_status ON source_files(project_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_candidates_source ON comparison_candidates(source_file_id, project_target_id, rank)",
)

_RECORD_COLUMNS = "id, relative_path, full_path, width, height, size_bytes, status, phash, histogram"


def _chunks(values: Sequence[int]) -> Iterator[Sequence[int]]:
    for start in range(0, len(values), _CHUNK):
        yield values[start : start + _CHUNK]


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


class SQLiteMatchStore:
    """MatchStore backed by a single SQLite file."""

    def __init__(self, database_path: Path | str) -> None:
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    # SQLite helpers
    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection with foreign keys enabled; commit on success, always close."""

        conn = sqlite3.connect(self.database_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _write(self, action: str) -> Iterator[sqlite3.Connection]:
        """Like _connect, but database failures become PersistenceError."""

        try:
            with self._connect() as conn:
                yield conn
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to {action}: {exc}") from exc

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            for statement in _SCHEMA:
                conn.execute(statement)

    # Row mapping
    @staticmethod
    def _record_from_row(row: sqlite3.Row, kind: RecordKind, owner_id: int, confirmed: bool = False) -> ImageRecord:
        fingerprint = None
        if row["phash"] is not None:
            histogram = json.loads(row["histogram"]) if row["histogram"] else None
            fingerprint = Fingerprint(
                phash=phash_from_hex(row["phash"]),
                width=int(row["width"]),
                height=int(row["height"]),
                histogram=tuple(histogram) if histogram is not None else None,
            )
        return ImageRecord(
            kind=kind,
            relative_path=row["relative_path"],
            path=Path(row["full_path"]),
            width=int(row["width"]),
            height=int(row["height"]),
            size_bytes=int(row["size_bytes"]),
            fingerprint=fingerprint,
            status=RecordStatus(row["status"]),
            id=int(row["id"]),
            project_id=owner_id if kind is RecordKind.SOURCE else None,
            target_id=owner_id if kind is RecordKind.TARGET else None,
            confirmed=confirmed,
        )

    @staticmethod
    def _source_from_row(row: sqlite3.Row) -> ImageRecord:
        return SQLiteMatchStore._record_from_row(row, RecordKind.SOURCE, int(row["project_id"]), bool(row["confirmed"]))

    @staticmethod
    def _candidate_from_row(row: sqlite3.Row) -> CandidateMatch:
        return CandidateMatch(
            id=int(row["id"]),
            source_id=int(row["source_file_id"]),
            target_id=int(row["project_target_id"]),
            file_path=Path(row["file_path"]),
            score=float(row["similarity_score"]),
            rank=int(row["rank"]),
            width=int(row["width"]),
            height=int(row["height"]),
        )

    @staticmethod
    def _selection_from_row(row: sqlite3.Row) -> Selection:
        candidate_id = row["selected_candidate_id"]
        return Selection(
            id=int(row["id"]),
            source_id=int(row["source_file_id"]),
            target_id=int(row["project_target_id"]),
            candidate_id=int(candidate_id) if candidate_id is not None else None,
            no_match=bool(row["no_match"]),
            auto=bool(row["auto"]),
        )

    # Projects
    def create_project(self, name: str, source_path: Path, targets: Sequence[Tuple[str, Path]]) -> Project:
        with self._write("create project") as conn:
            cursor = conn.execute(
                "INSERT INTO projects (name, source_path, status, created_at) VALUES (?, ?, ?, ?)",
                (name, str(source_path), ProjectStatus.PENDING.value, _now()),
            )
            project_id = int(cursor.lastrowid)
            for target_name, target_path in targets:
                conn.execute(
                    "INSERT INTO project_targets (project_id, name, path) VALUES (?, ?, ?)",
                    (project_id, target_name, str(target_path)),
                )
        logger.info("Created project %d (%s) with %d target group(s)", project_id, name, len(targets))
        return self.get_project(project_id)

    def get_project(self, project_id: int) -> Project:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
            if row is None:
                raise KeyError(f"Project {project_id} not found")
            target_rows = conn.execute(
                "SELECT id, project_id, name, path FROM project_targets WHERE project_id = ? ORDER BY id",
                (project_id,),
            ).fetchall()

        return Project(
            id=int(row["id"]),
            name=row["name"],
            source_path=Path(row["source_path"]),
            status=ProjectStatus(row["status"]),
            error_message=row["error_message"],
            started_at=datetime.fromisoformat(row["started_at"]) if row["started_at"] else None,
            ended_at=datetime.fromisoformat(row["ended_at"]) if row["ended_at"] else None,
            targets=[
                TargetGroup(id=int(t["id"]), project_id=int(t["project_id"]), name=t["name"], path=Path(t["path"]))
                for t in target_rows
            ],
        )

    def set_project_status(self, project_id: int, status: ProjectStatus, error_message: Optional[str] = None) -> None:
        with self._write("update project status") as conn:
            if status is ProjectStatus.INDEXING:
                conn.execute(
                    "UPDATE projects SET status = ?, error_message = NULL, started_at = ?, ended_at = NULL WHERE id = ?",
                    (status.value, _now(), project_id),
                )
            elif status in (ProjectStatus.COMPLETED, ProjectStatus.ERROR):
                conn.execute(
                    "UPDATE projects SET status = ?, error_message = ?, ended_at = ? WHERE id = ?",
                    (status.value, error_message, _now(), project_id),
                )
            else:
                conn.execute(
                    "UPDATE projects SET status = ?, error_message = NULL WHERE id = ?",
                    (status.value, project_id),
                )

    # Records
    def known_relative_paths(self, kind: RecordKind, owner_id: int) -> Set[str]:
        if kind is RecordKind.SOURCE:
            query = "SELECT relative_path FROM source_files WHERE project_id = ?"
        else:
            query = "SELECT relative_path FROM target_files WHERE project_target_id = ?"
        with self._connect() as conn:
            return {row[0] for row in conn.execute(query, (owner_id,))}

    def insert_records(self, records: Sequence[ImageRecord]) -> int:
        sources = [r for r in records if r.kind is RecordKind.SOURCE]
        targets = [r for r in records if r.kind is RecordKind.TARGET]

        def values(record: ImageRecord, owner_id: Optional[int]) -> tuple:
            fp = record.fingerprint
            return (
                owner_id,
                record.relative_path,
                str(record.path),
                record.width,
                record.height,
                record.size_bytes,
                record.status.value,
                phash_to_hex(fp.phash) if fp is not None else None,
                json.dumps(list(fp.histogram)) if fp is not None and fp.histogram is not None else None,
            )

        with self._write(f"insert {len(records)} records") as conn:
            before = conn.total_changes
            if sources:
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO source_files
                        (project_id, relative_path, full_path, width, height, size_bytes, status, phash, histogram)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [values(r, r.project_id) for r in sources],
                )
            if targets:
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO target_files
                        (project_target_id, relative_path, full_path, width, height, size_bytes, status, phash, histogram)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [values(r, r.target_id) for r in targets],
                )
            return conn.total_changes - before

    def get_source(self, source_id: int) -> ImageRecord:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_RECORD_COLUMNS}, project_id, confirmed FROM source_files WHERE id = ?", (source_id,)
            ).fetchone()
        if row is None:
            raise KeyError(f"Source file {source_id} not found")
        return self._source_from_row(row)

    @staticmethod
    def _status_clause(statuses: Optional[Iterable[RecordStatus]]) -> Tuple[str, list]:
        if statuses is None:
            return "", []
        values = [s.value for s in statuses]
        placeholders = ", ".join("?" for _ in values)
        return f" AND status IN ({placeholders})", values

    def list_sources(self, project_id: int, statuses: Optional[Iterable[RecordStatus]] = None) -> List[ImageRecord]:
        clause, params = self._status_clause(statuses)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_RECORD_COLUMNS}, project_id, confirmed FROM source_files "
                f"WHERE project_id = ?{clause} ORDER BY relative_path",
                [project_id, *params],
            ).fetchall()
        return [self._source_from_row(row) for row in rows]

    def list_targets(self, target_id: int) -> List[ImageRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_RECORD_COLUMNS} FROM target_files WHERE project_target_id = ? ORDER BY relative_path",
                (target_id,),
            ).fetchall()
        return [self._record_from_row(row, RecordKind.TARGET, target_id) for row in rows]

    def count_sources(self, project_id: int, statuses: Optional[Iterable[RecordStatus]] = None) -> int:
        clause, params = self._status_clause(statuses)
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) FROM source_files WHERE project_id = ?{clause}", [project_id, *params]
            ).fetchone()
        return int(row[0])

    def count_targets(self, target_id: int) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM target_files WHERE project_target_id = ?", (target_id,)).fetchone()
        return int(row[0])

    def reset_analyzed_sources(self, project_id: int) -> int:
        with self._write("reset analyzed sources") as conn:
            cursor = conn.execute(
                "UPDATE source_files SET status = ? WHERE project_id = ? AND status = ?",
                (RecordStatus.INDEXED.value, project_id, RecordStatus.ANALYZED.value),
            )
            return cursor.rowcount

    def set_source_confirmed(self, source_id: int, confirmed: bool = True) -> None:
        with self._write("confirm source") as conn:
            cursor = conn.execute("UPDATE source_files SET confirmed = ? WHERE id = ?", (int(confirmed), source_id))
            if cursor.rowcount == 0:
                raise KeyError(f"Source file {source_id} not found")

    # Candidates and selections
    def save_results(self, candidates: Sequence[CandidateMatch], analyzed_source_ids: Sequence[int]) -> None:
        with self._write(f"save {len(candidates)} candidates") as conn:
            conn.executemany(
                """
                INSERT INTO comparison_candidates
                    (source_file_id, project_target_id, file_path, similarity_score, rank, width, height)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (c.source_id, c.target_id, str(c.file_path), c.score, c.rank, c.width, c.height)
                    for c in candidates
                ],
            )
            for chunk in _chunks(list(analyzed_source_ids)):
                placeholders = ", ".join("?" for _ in chunk)
                conn.execute(
                    f"UPDATE source_files SET status = ? WHERE id IN ({placeholders})",
                    [RecordStatus.ANALYZED.value, *chunk],
                )

    def clear_candidates(self, source_ids: Sequence[int]) -> None:
        with self._write("clear candidates") as conn:
            for chunk in _chunks(list(source_ids)):
                placeholders = ", ".join("?" for _ in chunk)
                conn.execute(
                    f"DELETE FROM target_selections WHERE no_match = 0 AND source_file_id IN ({placeholders})",
                    list(chunk),
                )
                conn.execute(f"DELETE FROM comparison_candidates WHERE source_file_id IN ({placeholders})", list(chunk))

    def list_candidates(self, source_id: int) -> List[CandidateMatch]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM comparison_candidates WHERE source_file_id = ? ORDER BY project_target_id, rank",
                (source_id,),
            ).fetchall()
        return [self._candidate_from_row(row) for row in rows]

    def create_auto_selections(self, project_id: int) -> int:
        with self._write("create auto-selections") as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO target_selections
                    (source_file_id, project_target_id, selected_candidate_id, no_match, auto)
                SELECT c.source_file_id, c.project_target_id, c.id, 0, 1
                FROM comparison_candidates c
                JOIN source_files s ON s.id = c.source_file_id
                WHERE s.project_id = ? AND c.rank = 1
                ORDER BY c.id
                """,
                (project_id,),
            )
            return cursor.rowcount

    def _upsert_selection(self, source_id: int, target_id: int, candidate_id: Optional[int], no_match: bool) -> Selection:
        with self._write("save selection") as conn:
            conn.execute(
                """
                INSERT INTO target_selections (source_file_id, project_target_id, selected_candidate_id, no_match, auto)
                VALUES (?, ?, ?, ?, 0)
                ON CONFLICT(source_file_id, project_target_id) DO UPDATE SET
                    selected_candidate_id = excluded.selected_candidate_id,
                    no_match = excluded.no_match,
                    auto = 0
                """,
                (source_id, target_id, candidate_id, int(no_match)),
            )
            row = conn.execute(
                "SELECT * FROM target_selections WHERE source_file_id = ? AND project_target_id = ?",
                (source_id, target_id),
            ).fetchone()
        return self._selection_from_row(row)

    def select_candidate(self, source_id: int, target_id: int, candidate_id: int) -> Selection:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM comparison_candidates WHERE id = ? AND source_file_id = ? AND project_target_id = ?",
                (candidate_id, source_id, target_id),
            ).fetchone()
        if row is None:
            raise KeyError(f"Candidate {candidate_id} does not belong to source {source_id} / target {target_id}")
        return self._upsert_selection(source_id, target_id, candidate_id, no_match=False)

    def mark_no_match(self, source_id: int, target_id: int) -> Selection:
        return self._upsert_selection(source_id, target_id, None, no_match=True)

    def list_selections(self, source_id: int) -> List[Selection]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM target_selections WHERE source_file_id = ? ORDER BY project_target_id",
                (source_id,),
            ).fetchall()
        return [self._selection_from_row(row) for row in rows]
