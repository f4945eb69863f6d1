"""
Shared fixtures: a temporary SQLite database and an API client bound to it.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make the indi_api package importable when running tests from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from indi_api.core import config as core_config
from indi_api.db import models
from indi_api.db import session as db_session
from indi_api.repositories.sql_repository import SQLRepository

JOB_TOKEN = "test-job-token"


@pytest.fixture()
def temp_db(tmp_path, monkeypatch):
    """Point DATABASE_URL at a throwaway SQLite file and reset cached engines."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("JOB_TOKEN", JOB_TOKEN)
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://indi.test")
    # clear caches so the env above is re-read
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]

    engine = db_session.get_engine()
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)

    yield db_file

    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]
    core_config.get_settings.cache_clear()


@pytest.fixture()
def repo(temp_db) -> SQLRepository:
    return SQLRepository()


@pytest.fixture()
def make_user(repo):
    counter = {"n": 0}

    def _make(email: str | None = None):
        counter["n"] += 1
        return repo.create_user(email or f"user{counter['n']}@example.com", "argon2$not-a-real-hash")

    return _make


@pytest.fixture()
def client(temp_db):
    from fastapi.testclient import TestClient

    from indi_api.app import create_app

    return TestClient(create_app())
