"""Redis cache backend storing JSON-encoded values with SETEX."""
from __future__ import annotations

import json
from typing import Any

import redis


class RedisCache:
    def __init__(self, url: str, prefix: str = "nightlife:cache:") -> None:
        self._client = redis.Redis.from_url(url, decode_responses=True)
        self._prefix = prefix

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Any | None:
        raw = self._client.get(self._k(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: int) -> None:
        self._client.setex(self._k(key), ttl, json.dumps(value, default=str))

    def delete(self, *keys: str) -> None:
        if keys:
            self._client.delete(*[self._k(k) for k in keys])

    def delete_pattern(self, pattern: str) -> int:
        keys = list(self._client.scan_iter(match=self._k(pattern), count=100))
        if keys:
            self._client.delete(*keys)
        return len(keys)

    def flush(self) -> None:
        self.delete_pattern("*")


__all__ = ["RedisCache"]
