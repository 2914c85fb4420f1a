"""Shared fixtures: an isolated SQLite store and authenticated users."""

from pathlib import Path

import pytest

from kalimat.config.app_config import clear_config_cache
from kalimat.core.auth import AuthUser
from kalimat.db.backends import SQLiteBackend
from kalimat.db.database import init_db
from kalimat.db.repository import EntityClient


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Never pick up the developer's environment or cached config."""
    for var in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY", "KALIMAT_DB_PATH"):
        monkeypatch.delenv(var, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Fresh database with the full schema."""
    return init_db(tmp_path / "db" / "kalimat.db")


@pytest.fixture
def backend(db_path) -> SQLiteBackend:
    return SQLiteBackend(db_path)


@pytest.fixture
def alice() -> AuthUser:
    return AuthUser(id="u-alice", email="alice@example.com", full_name="Alice")


@pytest.fixture
def bob() -> AuthUser:
    return AuthUser(id="u-bob", email="bob@example.com", full_name="Bob")


@pytest.fixture
def store(backend) -> EntityClient:
    """Elevated client with no bound user."""
    return EntityClient(backend)


@pytest.fixture
def as_alice(backend, alice) -> EntityClient:
    """Client acting as alice."""
    return EntityClient(backend, alice)


@pytest.fixture
def as_bob(backend, bob) -> EntityClient:
    """Client acting as bob."""
    return EntityClient(backend, bob)
