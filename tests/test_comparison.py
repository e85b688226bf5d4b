"""
Tests for the comparison pipeline: ranking, resumption after cancellation, rescoring.
"""
import pytest

from config import AppSettings, ScoreWeights
from core.errors import EmptyResultError, JobCancelled
from core.matching import SimilarityScorer
from core.models import ProjectStatus, RecordStatus, TaskKind
from core.service import MatchingService
from core.storage import SQLiteMatchStore
from core.tasks import TaskContext


class CancellingScorer(SimilarityScorer):
    """Cancels the given context on its n-th call."""

    def __init__(self, ctx, after, weights=None):
        super().__init__(weights)
        self.ctx = ctx
        self.after = after
        self.calls = 0

    def score(self, a, b):
        self.calls += 1
        if self.calls == self.after:
            self.ctx.cancel()
        return super().score(a, b)


@pytest.fixture
def serial_service(tmp_path):
    settings = AppSettings(database_path=tmp_path / "serial.sqlite3", worker_count=1, batch_size=1)
    svc = MatchingService(SQLiteMatchStore(settings.database_path), settings)
    yield svc
    svc.shutdown(timeout=10)


@pytest.fixture
def indexed_project(serial_service, tmp_path, noise_image):
    src = tmp_path / "src"
    tgt = tmp_path / "tgt"
    for seed in range(4):
        noise_image(src / f"s{seed}.png", seed=seed)
    noise_image(tgt / "match.png", seed=0)
    project = serial_service.create_project("p", src, {"t": tgt})
    serial_service.run_indexing(TaskContext(project.id, TaskKind.INDEXING))
    return project


def comparison_ctx(project_id):
    return TaskContext(project_id=project_id, kind=TaskKind.COMPARISON)


def test_exact_copy_ranks_first(service, tmp_path, noise_image):
    src = tmp_path / "src"
    tgt = tmp_path / "tgt"
    noise_image(src / "photo.png", seed=11)
    noise_image(tgt / "a_other.png", seed=12)
    noise_image(tgt / "b_copy.png", seed=11)
    noise_image(tgt / "c_other.png", seed=13)
    project = service.create_project("p", src, {"t": tgt})
    service.run_indexing(TaskContext(project.id, TaskKind.INDEXING))

    report = service.run_comparison(comparison_ctx(project.id))

    assert report.processed_sources == 1
    [source] = service.store.list_sources(project.id)
    best = service.get_matches(source.id).best(project.targets[0].id)
    assert best.file_path.name == "b_copy.png"
    assert best.score == 100.0
    assert best.rank == 1
    assert service.get_project(project.id).status is ProjectStatus.COMPLETED


def test_cancelled_comparison_keeps_flushed_results_and_resumes(serial_service, indexed_project):
    store = serial_service.store
    ctx = comparison_ctx(indexed_project.id)
    serial_service.comparison.scorer = CancellingScorer(ctx, after=2)

    with pytest.raises(JobCancelled):
        serial_service.run_comparison(ctx)

    assert store.count_sources(indexed_project.id, [RecordStatus.ANALYZED]) == 2
    assert store.get_project(indexed_project.id).status is ProjectStatus.INDEXED
    for source in store.list_sources(indexed_project.id, [RecordStatus.ANALYZED]):
        assert len(store.list_candidates(source.id)) == 1

    serial_service.comparison.scorer = SimilarityScorer()
    report = serial_service.run_comparison(comparison_ctx(indexed_project.id))

    assert report.processed_sources == 2
    assert store.count_sources(indexed_project.id, [RecordStatus.ANALYZED]) == 4
    assert store.get_project(indexed_project.id).status is ProjectStatus.COMPLETED


def test_rescore_replaces_candidates_and_keeps_no_match(serial_service, indexed_project):
    store = serial_service.store
    serial_service.run_comparison(comparison_ctx(indexed_project.id))
    target_id = indexed_project.targets[0].id
    first, second = store.list_sources(indexed_project.id)[:2]
    serial_service.mark_no_match(second.id, target_id)

    report = serial_service.run_comparison(comparison_ctx(indexed_project.id), rescore=True)

    assert report.processed_sources == 4
    assert len(store.list_candidates(first.id)) == 1
    assert store.list_selections(first.id)[0].auto
    assert store.list_selections(second.id)[0].no_match


def test_nothing_pending_is_a_completed_no_op(serial_service, indexed_project):
    serial_service.run_comparison(comparison_ctx(indexed_project.id))

    report = serial_service.run_comparison(comparison_ctx(indexed_project.id))

    assert report.processed_sources == 0
    assert serial_service.get_project(indexed_project.id).status is ProjectStatus.COMPLETED


def test_all_target_groups_empty_fails(service, tmp_path, noise_image):
    src = tmp_path / "src"
    empty = tmp_path / "empty"
    empty.mkdir()
    noise_image(src / "a.png", seed=1)
    project = service.create_project("p", src, {"e": empty})
    service.run_indexing(TaskContext(project.id, TaskKind.INDEXING))

    with pytest.raises(EmptyResultError):
        service.run_comparison(comparison_ctx(project.id))

    loaded = service.get_project(project.id)
    assert loaded.status is ProjectStatus.ERROR
    assert loaded.error_message


def test_dimension_filter_limits_scored_targets(tmp_path, noise_image):
    settings = AppSettings(database_path=tmp_path / "dim.sqlite3", worker_count=1)
    settings.comparison.use_dimension_filter = True
    svc = MatchingService(SQLiteMatchStore(settings.database_path), settings)
    src = tmp_path / "src"
    tgt = tmp_path / "tgt"
    noise_image(src / "a.png", seed=1, size=(64, 64))
    noise_image(tgt / "huge.png", seed=1, size=(512, 512))
    noise_image(tgt / "same_size.png", seed=1, size=(64, 64))
    project = svc.create_project("p", src, {"t": tgt})
    svc.run_indexing(TaskContext(project.id, TaskKind.INDEXING))
    svc.run_comparison(comparison_ctx(project.id))

    [source] = svc.store.list_sources(project.id)
    names = [c.file_path.name for c in svc.store.list_candidates(source.id)]
    assert names == ["same_size.png"]


def test_red_and_blue_sources_find_their_colour(tmp_path, solid_image):
    settings = AppSettings(database_path=tmp_path / "hist.sqlite3", worker_count=2)
    settings.comparison.weights = ScoreWeights(phash_weight=0.5, histogram_weight=0.5)
    svc = MatchingService(SQLiteMatchStore(settings.database_path), settings)
    src = tmp_path / "src"
    tgt = tmp_path / "tgt"
    solid_image(src / "a_red.png", color=(255, 0, 0))
    solid_image(src / "b_blue.png", color=(0, 0, 255))
    solid_image(tgt / "l_blue.png", color=(0, 0, 255))
    solid_image(tgt / "r_red.png", color=(255, 0, 0))
    project = svc.create_project("p", src, {"t": tgt})
    svc.run_indexing(TaskContext(project.id, TaskKind.INDEXING))
    svc.run_comparison(comparison_ctx(project.id))

    target_id = project.targets[0].id
    red, blue = svc.store.list_sources(project.id)
    red_matches = svc.get_matches(red.id).candidates[target_id]
    blue_matches = svc.get_matches(blue.id).candidates[target_id]

    assert [c.file_path.name for c in red_matches] == ["r_red.png", "l_blue.png"]
    assert [c.file_path.name for c in blue_matches] == ["l_blue.png", "r_red.png"]
    assert red_matches[0].score == pytest.approx(100.0)
    assert blue_matches[1].score == pytest.approx(50.0 + 50.0 / 3)
    assert all(c.score > 50.0 for c in red_matches + blue_matches)
