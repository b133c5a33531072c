"""
tests/conftest.py -- Shared test fixtures for InstaCatalog tests.

This module provides:
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: TestClient in self-posting mode (plus app_state to inspect it)
  - moderated_client: TestClient in moderated mode
  - engine / user_store / post_store: isolated stores for unit tests

The DEBUG env var must be set before any app import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from types import SimpleNamespace

# CRITICAL: Set DEBUG before any core/api import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app
from auth.store import UserStore
from posts.lifecycle import ModeratedLifecycle, SelfPostingLifecycle
from posts.store import PostStore
from tests.helpers import build_state, make_engine


def _patch_lifespan(state: SimpleNamespace):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = state.settings
        app.state.user_store = state.user_store
        app.state.token_service = state.token_service
        app.state.lifecycle = state.lifecycle
        app.state.instagram = state.instagram
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def app_state() -> Generator[SimpleNamespace, None, None]:
    """Collaborators behind api_client; exposed so tests can inspect or swap them."""
    state = build_state("api", SelfPostingLifecycle())
    yield state
    state.engine.dispose()


@pytest.fixture(scope="module")
def api_client(app_state: SimpleNamespace) -> Generator[TestClient, None, None]:
    """TestClient on the real app in self-posting mode with isolated stores."""
    app.router.lifespan_context = _patch_lifespan(app_state)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture(scope="module")
def moderated_client() -> Generator[TestClient, None, None]:
    """TestClient on the real app in moderated mode."""
    state = build_state("moderated", ModeratedLifecycle())
    app.router.lifespan_context = _patch_lifespan(state)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
    state.engine.dispose()


# ---------------------------------------------------------------------------
# Function-scoped stores for unit tests
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = make_engine("unit")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def post_store(engine: Engine, user_store: UserStore) -> PostStore:
    return PostStore(engine)
