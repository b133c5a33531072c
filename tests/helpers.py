"""
tests/helpers.py -- Builders and doubles shared by the test modules.

Named shared-memory SQLite URIs (not plain :memory:) are required because
TestClient runs sync route handlers in a thread pool. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread.
"""

from __future__ import annotations

import itertools
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings
from core.database import create_db_engine
from core.errors import ExternalServiceFailure
from posts.lifecycle import LifecyclePolicy, PostLifecycle
from posts.models import Post
from posts.publisher import PublishResult
from posts.store import PostStore

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"

_db_counter = itertools.count()


def make_engine(name: str) -> Engine:
    """Return an engine on a fresh named shared-memory database.

    A counter suffix keeps every call isolated even when the same name is
    reused across test modules.
    """
    return create_db_engine(f"sqlite:///file:test_{name}_{next(_db_counter)}?mode=memory&cache=shared&uri=true")


def make_settings(**overrides) -> Settings:
    values = {"debug": True, "secret_key": TEST_SECRET}
    values.update(overrides)
    return Settings(**values)


class FakePublisher:
    """Publisher double. Fails the first `failures` calls, then succeeds."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[int] = []
        self._lock = threading.Lock()

    def publish(self, post: Post) -> PublishResult:
        with self._lock:
            self.calls.append(post.id)
            if len(self.calls) <= self.failures:
                raise ExternalServiceFailure("Instagram API unavailable")
        return PublishResult(external_id=f"media-{post.id}")


def make_lifecycle(store: PostStore, policy: LifecyclePolicy, publisher=None, max_attempts: int = 3) -> PostLifecycle:
    """PostLifecycle with zero backoff so retry tests do not sleep."""
    return PostLifecycle(
        store,
        policy,
        publisher or FakePublisher(),
        max_attempts=max_attempts,
        backoff_seconds=0,
        sleep=lambda _seconds: None,
    )


def build_state(name: str, policy: LifecyclePolicy, publisher=None, settings: Settings | None = None) -> SimpleNamespace:
    """Build the same collaborators the real lifespan builds, on a test DB."""
    settings = settings or make_settings()
    engine = make_engine(name)
    user_store = UserStore(engine)
    post_store = PostStore(engine)
    publisher = publisher or FakePublisher()
    return SimpleNamespace(
        engine=engine,
        settings=settings,
        user_store=user_store,
        post_store=post_store,
        publisher=publisher,
        token_service=TokenService(settings),
        lifecycle=make_lifecycle(post_store, policy, publisher),
        instagram=MagicMock(configured=False),
    )


def signup_and_login(client: TestClient, email: str, password: str = "secret1") -> tuple[int, str]:
    """Register email and log in. Returns (user_id, token)."""
    resp = client.post("/signup", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    resp = client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    data = resp.json()
    return data["userId"], data["token"]
