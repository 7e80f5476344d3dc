import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture
def memory_settings():
    """Settings for a fresh in-memory store with demo seeding enabled."""
    from book_api.config import load_settings

    return load_settings(env={"DB_PATH": ":memory:"})


@pytest.fixture
def database(memory_settings) -> Iterator:
    """Migrated and seeded in-memory database, closed after the test."""
    from book_api.db import initialize_database, open_database

    opened = open_database(memory_settings)
    initialize_database(opened)
    yield opened
    opened.close()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator:
    """TestClient whose lifespan opens a fresh in-memory store."""
    from fastapi.testclient import TestClient

    from book_api import main

    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.delenv("SEED_DEMO_BOOKS", raising=False)

    with TestClient(main.app, raise_server_exceptions=False) as test_client:
        yield test_client
