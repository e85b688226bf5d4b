"""
Tests for the SQLite MatchStore.
"""
from pathlib import Path

import pytest

from core.models import CandidateMatch, Fingerprint, ImageRecord, ProjectStatus, RecordKind, RecordStatus


@pytest.fixture
def project(store, tmp_path):
    return store.create_project("demo", tmp_path / "src", [("alpha", tmp_path / "a"), ("beta", tmp_path / "b")])


def source_record(project_id, name, phash=1):
    return ImageRecord(
        kind=RecordKind.SOURCE,
        relative_path=name,
        path=Path("/src") / name,
        width=10,
        height=20,
        size_bytes=300,
        fingerprint=Fingerprint(phash=phash, width=10, height=20, histogram=tuple([1 / 48] * 48)),
        status=RecordStatus.INDEXED,
        project_id=project_id,
    )


def candidate(source_id, target_id, name, rank, score=90.0):
    return CandidateMatch(
        source_id=source_id,
        target_id=target_id,
        file_path=Path("/targets") / name,
        score=score,
        rank=rank,
        width=10,
        height=20,
    )


def test_create_and_get_project(store, project, tmp_path):
    loaded = store.get_project(project.id)

    assert loaded.name == "demo"
    assert loaded.status is ProjectStatus.PENDING
    assert [(t.name, t.path) for t in loaded.targets] == [("alpha", tmp_path / "a"), ("beta", tmp_path / "b")]


def test_unknown_project_raises_key_error(store):
    with pytest.raises(KeyError):
        store.get_project(404)


def test_status_transitions_record_timestamps(store, project):
    store.set_project_status(project.id, ProjectStatus.INDEXING)
    assert store.get_project(project.id).started_at is not None

    store.set_project_status(project.id, ProjectStatus.ERROR, "broken")
    loaded = store.get_project(project.id)
    assert loaded.status is ProjectStatus.ERROR
    assert loaded.error_message == "broken"
    assert loaded.ended_at is not None


def test_insert_is_idempotent_and_fingerprint_round_trips(store, project):
    record = source_record(project.id, "x/one.png", phash=(1 << 63) | 5)

    assert store.insert_records([record]) == 1
    assert store.insert_records([record]) == 0

    [loaded] = store.list_sources(project.id)
    assert loaded.relative_path == "x/one.png"
    assert loaded.fingerprint.phash == (1 << 63) | 5
    assert loaded.fingerprint.histogram == pytest.approx(record.fingerprint.histogram)
    assert store.known_relative_paths(RecordKind.SOURCE, project.id) == {"x/one.png"}


def test_save_results_marks_sources_analyzed(store, project):
    store.insert_records([source_record(project.id, "a.png"), source_record(project.id, "b.png")])
    a, b = store.list_sources(project.id)
    alpha = project.targets[0].id

    store.save_results([candidate(a.id, alpha, "t1.png", 1), candidate(a.id, alpha, "t2.png", 2, 80.0)], [a.id])

    assert store.count_sources(project.id, [RecordStatus.ANALYZED]) == 1
    assert [c.rank for c in store.list_candidates(a.id)] == [1, 2]
    assert store.list_candidates(b.id) == []


def test_auto_selection_respects_existing_choices(store, project):
    store.insert_records([source_record(project.id, "a.png")])
    [a] = store.list_sources(project.id)
    alpha, beta = (t.id for t in project.targets)
    store.save_results(
        [
            candidate(a.id, alpha, "t1.png", 1),
            candidate(a.id, alpha, "t2.png", 2, 70.0),
            candidate(a.id, beta, "u1.png", 1),
        ],
        [a.id],
    )
    store.mark_no_match(a.id, beta)

    assert store.create_auto_selections(project.id) == 1

    selections = {s.target_id: s for s in store.list_selections(a.id)}
    assert selections[alpha].auto
    assert selections[beta].no_match


def test_select_candidate_overrides_auto_selection(store, project):
    store.insert_records([source_record(project.id, "a.png")])
    [a] = store.list_sources(project.id)
    alpha = project.targets[0].id
    store.save_results([candidate(a.id, alpha, "t1.png", 1), candidate(a.id, alpha, "t2.png", 2, 70.0)], [a.id])
    store.create_auto_selections(project.id)
    second = store.list_candidates(a.id)[1]

    selection = store.select_candidate(a.id, alpha, second.id)

    assert selection.candidate_id == second.id
    assert not selection.auto
    assert len(store.list_selections(a.id)) == 1


def test_select_candidate_rejects_foreign_candidate(store, project):
    store.insert_records([source_record(project.id, "a.png"), source_record(project.id, "b.png")])
    a, b = store.list_sources(project.id)
    alpha = project.targets[0].id
    store.save_results([candidate(b.id, alpha, "t1.png", 1)], [b.id])
    foreign = store.list_candidates(b.id)[0]

    with pytest.raises(KeyError):
        store.select_candidate(a.id, alpha, foreign.id)


def test_clear_candidates_keeps_no_match(store, project):
    store.insert_records([source_record(project.id, "a.png")])
    [a] = store.list_sources(project.id)
    alpha, beta = (t.id for t in project.targets)
    store.save_results([candidate(a.id, alpha, "t1.png", 1), candidate(a.id, beta, "u1.png", 1)], [a.id])
    store.create_auto_selections(project.id)
    store.mark_no_match(a.id, beta)

    store.clear_candidates([a.id])

    assert store.list_candidates(a.id) == []
    assert [(s.target_id, s.no_match) for s in store.list_selections(a.id)] == [(beta, True)]


def test_reset_and_confirm_sources(store, project):
    store.insert_records([source_record(project.id, "a.png")])
    [a] = store.list_sources(project.id)
    store.save_results([], [a.id])

    assert store.reset_analyzed_sources(project.id) == 1
    assert store.get_source(a.id).status is RecordStatus.INDEXED

    store.set_source_confirmed(a.id)
    assert store.get_source(a.id).confirmed
    with pytest.raises(KeyError):
        store.set_source_confirmed(12345)
