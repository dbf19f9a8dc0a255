"""
tests/conftest.py -- Shared test fixtures for todolist integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for tasks + users
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - api: a TestApp bundle (TestClient + the fake cache + stores + token service)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process. Each test gets
a fresh uuid-suffixed name so no state leaks between tests.

DEBUG and TOKEN_EXPIRE_SECONDS must be set before any module calls
get_settings(): the real lifespan (exercised in test_startup.py) reads them.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any core/ import so get_settings() can build Settings.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("TOKEN_EXPIRE_SECONDS", "3600")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import PasswordHasher, TokenService
from cache.aside import CacheAside
from tasks.store import TaskStore
from tests.fakes import FakeCacheClient

TEST_SECRET = "test-secret-key-0123456789abcdef-0123456789"

# bcrypt's minimum cost keeps the suite fast. Built once: the dummy hash is
# computed at construction.
HASHER = PasswordHasher(rounds=4)

# Rate limits are exercised explicitly where needed; the shared in-memory
# counter would otherwise make unrelated tests order-dependent.
limiter.enabled = False


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def memory_db_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _make_test_stores() -> tuple[TaskStore, UserStore]:
    return TaskStore(memory_db_url("test_tasks")), UserStore(memory_db_url("test_users"))


def _patch_lifespan(
    task_store: TaskStore,
    user_store: UserStore,
    cache: FakeCacheClient,
    tokens: TokenService,
):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test components into app.state so TestClient routes see
    isolated stores and the in-memory cache rather than SQLite files and Redis.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.task_store = task_store
        app.state.user_store = user_store
        app.state.cache_client = cache
        app.state.cache_aside = CacheAside(cache, ttl_seconds=300)
        app.state.hasher = HASHER
        app.state.tokens = tokens
        yield

    return test_lifespan


@dataclass
class TestApp:
    __test__ = False  # not a test class, despite the name

    client: TestClient
    cache: FakeCacheClient
    task_store: TaskStore
    user_store: UserStore
    tokens: TokenService

    def create_user(self, email: str = "ana@example.com", password: str = "s3cret-pass") -> User:
        return self.user_store.create_user(User(email=email, hashed_password=HASHER.hash(password)))

    def auth_headers(self, user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens.issue_for(user)}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def api() -> Generator[TestApp, None, None]:
    """Yield a TestApp wired to fresh stores and a connected FakeCacheClient.

    raise_server_exceptions=False so the generic 500 handler's response can
    be asserted on instead of the exception surfacing in the test.
    """
    task_store, user_store = _make_test_stores()
    cache = FakeCacheClient(connected=True)
    tokens = TokenService(TEST_SECRET, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(task_store, user_store, cache, tokens)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield TestApp(client=client, cache=cache, task_store=task_store, user_store=user_store, tokens=tokens)

    task_store.close()
    user_store.close()
