"""Key/value cache with interchangeable backends.

One backend (memory, redis or noop) is chosen by init_cache() at app startup
and kept for the life of the process. The module-level helpers log and swallow
backend failures: a cache miss is always an acceptable answer.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

log = logging.getLogger(__name__)


class CacheTTL:
    CATEGORIES = 60 * 60
    DASHBOARD_STATS = 5 * 60
    LISTINGS = 15 * 60
    DETAIL = 10 * 60
    USER_DATA = 5 * 60


class CacheKeys:
    CATEGORIES = "categories:all"
    DASHBOARD_STATS = "dashboard:stats"

    @staticmethod
    def establishments_list(fingerprint: str) -> str:
        return f"establishments:list:{fingerprint}"

    @staticmethod
    def establishment(establishment_id: str) -> str:
        return f"establishment:{establishment_id}"

    @staticmethod
    def employees_list(fingerprint: str) -> str:
        return f"employees:list:{fingerprint}"

    @staticmethod
    def employee(employee_id: str) -> str:
        return f"employee:{employee_id}"


@runtime_checkable
class Cache(Protocol):
    def get(self, key: str) -> Any | None: ...  # pragma: no cover
    def set(self, key: str, value: Any, ttl: int) -> None: ...  # pragma: no cover
    def delete(self, *keys: str) -> None: ...  # pragma: no cover
    def delete_pattern(self, pattern: str) -> int: ...  # pragma: no cover
    def flush(self) -> None: ...  # pragma: no cover


class NoopCache:
    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        return None

    def delete(self, *keys: str) -> None:
        return None

    def delete_pattern(self, pattern: str) -> int:
        return 0

    def flush(self) -> None:
        return None


_cache: Cache = NoopCache()


def init_cache(backend: str, redis_url: str | None = None) -> Cache:
    global _cache
    backend = (backend or "memory").lower()
    if backend == "redis":
        from .cache_redis import RedisCache

        _cache = RedisCache(redis_url or "redis://localhost:6379/0")
    elif backend == "memory":
        from .cache_memory import MemoryCache

        _cache = MemoryCache()
    else:
        _cache = NoopCache()
    log.info("Cache backend initialized: %s", type(_cache).__name__)
    return _cache


def get_cache() -> Cache:
    return _cache


def cache_get(key: str) -> Any | None:
    try:
        return _cache.get(key)
    except Exception:
        log.warning("Cache get failed for key %s", key, exc_info=True)
        return None


def cache_set(key: str, value: Any, ttl: int = CacheTTL.LISTINGS) -> None:
    try:
        _cache.set(key, value, ttl)
    except Exception:
        log.warning("Cache set failed for key %s", key, exc_info=True)


def cache_delete(*keys: str) -> None:
    try:
        _cache.delete(*keys)
    except Exception:
        log.warning("Cache delete failed for keys %s", keys, exc_info=True)


def cache_delete_pattern(pattern: str) -> None:
    try:
        removed = _cache.delete_pattern(pattern)
        if removed:
            log.info("Invalidated %s cache keys matching %s", removed, pattern)
    except Exception:
        log.warning("Cache pattern invalidation failed for %s", pattern, exc_info=True)


def invalidate_establishments(establishment_id: str | None = None) -> None:
    cache_delete_pattern("establishments:list:*")
    cache_delete(CacheKeys.DASHBOARD_STATS)
    if establishment_id:
        cache_delete(CacheKeys.establishment(establishment_id))


def invalidate_employees(employee_id: str | None = None) -> None:
    cache_delete_pattern("employees:list:*")
    cache_delete(CacheKeys.DASHBOARD_STATS)
    if employee_id:
        cache_delete(CacheKeys.employee(employee_id))


__all__ = [
    "Cache",
    "CacheKeys",
    "CacheTTL",
    "NoopCache",
    "init_cache",
    "get_cache",
    "cache_get",
    "cache_set",
    "cache_delete",
    "cache_delete_pattern",
    "invalidate_establishments",
    "invalidate_employees",
]
