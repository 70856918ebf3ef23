"""
tests/conftest.py -- Shared test fixtures for the Astralx auth service.

This module provides:
  - clock / notifier fixtures: test doubles from tests/helpers.py
  - engine / service fixtures: isolated file-backed SQLite per test
  - api_client: TestClient wired to a test AuthService via a patched lifespan

Design: file-backed SQLite under tmp_path rather than :memory:. TestClient
runs sync route handlers in a thread pool and the concurrency tests use
real threads; a plain :memory: DB is per-connection and each thread would
see a blank schema.

The DEBUG env var must be set before any api/ or core/ import so
get_settings() auto-generates the signing keys instead of raising.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any core/api import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from auth.service import AuthService
from auth.store import create_auth_engine
from tests.helpers import FrozenClock, RecordingNotifier, make_service

# ---------------------------------------------------------------------------
# Function-scoped fixtures -- fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    eng = create_auth_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    yield eng
    eng.dispose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(engine: Engine, notifier: RecordingNotifier, clock: FrozenClock) -> AuthService:
    return make_service(engine, notifier, clock)


# ---------------------------------------------------------------------------
# Module-scoped API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test service into app.state so routes see the
    isolated test DB and the recording notifier instead of SMTP.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[tuple[TestClient, RecordingNotifier], None, None]:
    """Yield (client, notifier) for API integration tests.

    Uses the real wall clock: tokens must verify through the same code path
    production uses.
    """
    from api.main import app

    db_path = tmp_path_factory.mktemp("api") / "auth.db"
    engine = create_auth_engine(f"sqlite:///{db_path}")
    notifier = RecordingNotifier()
    service = make_service(engine, notifier)

    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, notifier

    engine.dispose()
