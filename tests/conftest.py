"""
tests/conftest.py -- Shared test fixtures for Postboard integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + content
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - client: module-scoped TestClient running the real app on those stores
  - make_user: factory that registers and logs in a fresh user

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any api/auth/core import:
  DEBUG=true               -- get_settings() auto-generates both signing secrets
  BCRYPT_ROUNDS=4          -- keeps password hashing fast
  RATE_LIMIT_ENABLED=false -- the suite logs in far more than 10 times a minute
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set these before any auth/core import so get_settings() and the
# module-level limiter see them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app, attach_services
from auth.store import UserStore
from content.store import ContentStore
from core.config import get_settings

DEFAULT_PASSWORD = "correct-horse-battery"

_counter = itertools.count(1)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, ContentStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (the module name is used).
    """
    users_url = f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true"
    content_url = f"sqlite:///file:test_content_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=users_url), ContentStore(db_url=content_url)


def _patch_lifespan(user_store: UserStore, content_store: ContentStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state through the same
    attach_services() the real lifespan uses.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        attach_services(app, user_store, content_store, get_settings())
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient bound to the real app and isolated in-memory stores.

    raise_server_exceptions=False so the catch-all 500 handler is exercised
    the way a real client would see it.
    """
    user_store, content_store = _make_test_stores(request.module.__name__.replace(".", "_"))
    app.router.lifespan_context = _patch_lifespan(user_store, content_store)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    content_store.close()
    user_store.close()


@dataclass
class Account:
    """A registered, logged-in user as seen by a test."""

    user_id: int
    username: str
    email: str
    password: str
    access_token: str
    refresh_token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    @property
    def refresh_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.refresh_token}"}


@pytest.fixture
def make_user(client: TestClient) -> Callable[..., Account]:
    """Return a factory that registers a uniquely named user and logs them in.

    Usernames come from a process-wide counter, so accounts never collide
    inside a module-scoped database.
    """

    def _make(prefix: str = "user", password: str = DEFAULT_PASSWORD) -> Account:
        n = next(_counter)
        username = f"{prefix}{n}"
        email = f"{prefix}{n}@example.com"
        resp = client.post(
            "/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        assert resp.status_code == 201, resp.text
        login = client.post("/auth/login", json={"identifier": username, "password": password})
        assert login.status_code == 200, login.text
        data = login.json()
        return Account(
            user_id=data["user_id"],
            username=username,
            email=email,
            password=password,
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
        )

    return _make
