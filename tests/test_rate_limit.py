"""
tests/test_rate_limit.py -- POST /auth/login is rate-limited per client IP.

The suite runs with RATE_LIMIT_ENABLED=false; this module switches the
shared limiter on for one test and restores it afterwards.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter


@pytest.fixture
def enabled_limiter():
    limiter.reset()
    limiter.enabled = True
    try:
        yield limiter
    finally:
        limiter.enabled = False
        limiter.reset()


def test_login_flood_returns_429(client: TestClient, enabled_limiter) -> None:
    """Repeated logins eventually get a 429 in the error envelope with Retry-After."""
    statuses = []
    for _ in range(25):
        resp = client.post("/auth/login", json={"identifier": "flooder", "password": "wrong-pass"})
        statuses.append(resp.status_code)
        if resp.status_code == 429:
            break

    assert statuses[0] == 401
    assert statuses[-1] == 429
    assert resp.json()["error"]["code"] == "rate_limited"
    assert "retry-after" in resp.headers
