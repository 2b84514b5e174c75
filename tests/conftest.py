from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.api.db import create_repository
from src.api.main import create_app
from src.api.settings import Settings


def make_settings(db_path: Path, **overrides) -> Settings:
    values = {
        "database_url": f"sqlite:///{db_path}",
        "host": "127.0.0.1",
        "port": 8000,
        "db_pool_size": 5,
        "db_acquire_timeout": 1.0,
        "cors_allow_origins": ["*"],
        "log_level": "INFO",
        "seed_sample_posts": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a fresh SQLite file per test."""
    return make_settings(tmp_path / "blog.db")


@pytest.fixture
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # Entering the client runs the lifespan (pool + schema)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def repository(settings: Settings):
    repo = create_repository(settings)
    yield repo
    repo.close()
