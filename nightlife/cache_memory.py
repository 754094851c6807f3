"""Process-local TTL cache."""
from __future__ import annotations

import fnmatch
import threading
import time
from typing import Any


class MemoryCache:
    def __init__(self, max_entries: int = 10_000, sweep_threshold: int = 256) -> None:
        # key -> (expires_at, value)
        self._store: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self._sweep_threshold = min(sweep_threshold, max_entries)
        self._sweep_at = self._sweep_threshold

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= time.time():
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int) -> None:
        now = time.time()
        with self._lock:
            if len(self._store) >= self._sweep_at:
                self._sweep(now)
            self._store[key] = (now + ttl, value)

    def _sweep(self, now: float) -> None:
        """Drop expired entries, then the soonest-expiring ones while over `max_entries`."""
        for k in [k for k, (exp, _) in self._store.items() if exp <= now]:
            del self._store[k]
        overflow = len(self._store) - self._max_entries + 1
        if overflow > 0:
            for k in sorted(self._store, key=lambda k: self._store[k][0])[:overflow]:
                del self._store[k]
        self._sweep_at = min(self._max_entries, max(self._sweep_threshold, len(self._store) * 2))

    def delete(self, *keys: str) -> None:
        with self._lock:
            for k in keys:
                self._store.pop(k, None)

    def delete_pattern(self, pattern: str) -> int:
        with self._lock:
            doomed = [k for k in self._store if fnmatch.fnmatchcase(k, pattern)]
            for k in doomed:
                del self._store[k]
        return len(doomed)

    def flush(self) -> None:
        with self._lock:
            self._store.clear()


__all__ = ["MemoryCache"]
