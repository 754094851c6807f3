from __future__ import annotations

import pytest

from nightlife import limit_registry, rate_limiter
from nightlife.rate_limiter_memory import MemoryRateLimiter


@pytest.fixture
def memory_limiter(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "memory")
    rate_limiter._test_reset()
    yield
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "noop")
    rate_limiter._test_reset()


def test_memory_limiter_window():
    rl = MemoryRateLimiter()
    assert rl.allow("k", quota=2, per_seconds=60)
    assert rl.allow("k", quota=2, per_seconds=60)
    assert not rl.allow("k", quota=2, per_seconds=60)
    assert 0 <= rl.retry_after("k", per_seconds=60) <= 60
    assert rl.allow("other", quota=2, per_seconds=60)


def test_parse_limits_clamps_values():
    parsed = limit_registry.parse_limits('{"x": {"quota": 0, "per": 999999}, "bad": 3}')
    assert parsed == {"x": {"quota": 1, "per_seconds": 86400}}
    assert limit_registry.parse_limits("not json") == {}


def test_get_limit_resolution_order():
    limit_registry.refresh({"auth": {"quota": 3, "per_seconds": 30}})
    assert limit_registry.get_limit("auth") == ({"quota": 3, "per_seconds": 30}, "override")
    assert limit_registry.get_limit("admin")[1] == "default"
    assert limit_registry.get_limit("unheard_of")[1] == "fallback"


def test_login_is_rate_limited(client, memory_limiter):
    limit_registry.refresh({"auth": {"quota": 2, "per": 60}})
    creds = {"email": "nobody@example.com", "password": "wrong-password"}
    assert client.post("/api/auth/login", json=creds).status_code == 401
    assert client.post("/api/auth/login", json=creds).status_code == 401
    r = client.post("/api/auth/login", json=creds)
    assert r.status_code == 429
    body = r.get_json()
    assert body["code"] == "RATE_LIMITED"
    assert body["limit"] == "auth"
    assert "Retry-After" in r.headers
