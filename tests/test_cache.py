from __future__ import annotations

import time

from conftest import ADMIN, USER, seed_employee, seed_establishment

from nightlife.cache import CacheKeys, NoopCache, cache_get, cache_set, get_cache, init_cache, invalidate_establishments
from nightlife.cache_memory import MemoryCache


def test_memory_cache_basics():
    c = MemoryCache()
    c.set("establishments:list:a", [1], 60)
    c.set("establishments:list:b", [2], 60)
    c.set("establishment:x", {"id": "x"}, 60)
    assert c.get("establishments:list:a") == [1]
    assert c.delete_pattern("establishments:list:*") == 2
    assert c.get("establishments:list:b") is None
    assert c.get("establishment:x") == {"id": "x"}
    c.delete("establishment:x")
    assert c.get("establishment:x") is None


def test_memory_cache_expiry(monkeypatch):
    c = MemoryCache()
    c.set("k", "v", 10)
    now = time.time()
    monkeypatch.setattr(time, "time", lambda: now + 11)
    assert c.get("k") is None


def test_memory_cache_sweeps_expired_entries_on_write():
    c = MemoryCache(sweep_threshold=100)
    for i in range(1000):
        c.set(f"employees:list:{i}", i, 0)
    c.set("fresh", 1, 60)
    assert len(c._store) < 100
    assert c.get("fresh") == 1


def test_memory_cache_caps_live_entries():
    c = MemoryCache(max_entries=50, sweep_threshold=10)
    for i in range(500):
        c.set(f"establishments:list:{i}", i, 60 + i)
    assert len(c._store) <= 50
    assert c.get("establishments:list:499") == 499
    assert c.get("establishments:list:0") is None


def test_init_cache_selects_backend(app):
    assert isinstance(init_cache("noop"), NoopCache)
    assert isinstance(init_cache("memory"), MemoryCache)
    assert get_cache().__class__ is MemoryCache


def test_invalidation_helpers(app):
    cache_set(CacheKeys.establishments_list("abc"), {"items": []})
    cache_set(CacheKeys.establishment("e1"), {"id": "e1"})
    cache_set(CacheKeys.DASHBOARD_STATS, {"totalUsers": 1})
    invalidate_establishments("e1")
    assert cache_get(CacheKeys.establishments_list("abc")) is None
    assert cache_get(CacheKeys.establishment("e1")) is None
    assert cache_get(CacheKeys.DASHBOARD_STATS) is None


def test_approval_refreshes_cached_listing(app, client):
    seed_establishment(app, name="Alpha")
    pending = seed_establishment(app, name="Beta", status="pending")
    anon = app.test_client()
    names = [e["name"] for e in anon.get("/api/establishments").get_json()["establishments"]]
    assert names == ["Alpha"]

    assert client.post(f"/api/admin/establishments/{pending}/approve", headers=ADMIN).status_code == 200
    names = [e["name"] for e in anon.get("/api/establishments").get_json()["establishments"]]
    assert names == ["Alpha", "Beta"]


def test_cache_failures_read_as_miss(app, monkeypatch):
    class Broken(MemoryCache):
        def get(self, key):
            raise ConnectionError("down")

    monkeypatch.setattr("nightlife.cache._cache", Broken())
    assert cache_get("anything") is None


def test_vote_refreshes_cached_employee_detail(app, client):
    emp_id = seed_employee(app)
    anon = app.test_client()
    assert anon.get(f"/api/employees/{emp_id}").get_json()["employee"]["validation"]["totalVotes"] == 0
    assert client.post(f"/api/employees/{emp_id}/votes", json={"vote_type": "exists"}, headers=USER).status_code == 201
    assert anon.get(f"/api/employees/{emp_id}").get_json()["employee"]["validation"]["totalVotes"] == 1


def test_comment_moderation_refreshes_cached_rating(app, client):
    emp_id = seed_employee(app)
    anon = app.test_client()
    assert anon.get(f"/api/employees/{emp_id}").get_json()["employee"]["average_rating"] is None
    r = client.post(f"/api/employees/{emp_id}/comments", json={"content": "Great dancer", "rating": 4}, headers=USER)
    cid = r.get_json()["comment"]["id"]
    assert client.post(f"/api/admin/comments/{cid}/approve", headers=ADMIN).status_code == 200
    assert anon.get(f"/api/employees/{emp_id}").get_json()["employee"]["average_rating"] == 4
    assert client.post(f"/api/admin/comments/{cid}/reject", json={"reason": "Off topic"}, headers=ADMIN).status_code == 200
    assert anon.get(f"/api/employees/{emp_id}").get_json()["employee"]["average_rating"] is None
