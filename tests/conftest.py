"""
Pytest fixtures: temporary image trees, a throwaway SQLite store, and a wired service.
"""
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from config import AppSettings
from core.service import MatchingService
from core.storage import SQLiteMatchStore


def _save(path, image):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path)
    return path


@pytest.fixture
def solid_image():
    """Factory writing a single-colour image."""

    def make(path, color=(255, 0, 0), size=(64, 64)):
        return _save(path, Image.new("RGB", size, color))

    return make


@pytest.fixture
def noise_image():
    """Factory writing a blocky random image; equal seeds give identical pixels."""

    def make(path, seed=0, size=(64, 64)):
        rng = np.random.default_rng(seed)
        blocks = rng.integers(0, 256, size=(8, 8, 3)).astype(np.uint8)
        image = Image.fromarray(blocks).resize(size, Image.Resampling.NEAREST)
        return _save(path, image)

    return make


@pytest.fixture
def settings(tmp_path):
    return AppSettings(database_path=tmp_path / "db" / "test.sqlite3", worker_count=2, batch_size=2)


@pytest.fixture
def store(settings):
    return SQLiteMatchStore(settings.database_path)


@pytest.fixture
def service(store, settings):
    svc = MatchingService(store, settings)
    yield svc
    svc.shutdown(timeout=10)
