"""In-process fixed-window rate limiter (single process only)."""
from __future__ import annotations

import threading
import time

from .rate_limiter import window_start


class MemoryRateLimiter:
    def __init__(self) -> None:
        # key -> (window_start, count)
        self._buckets: dict[str, tuple[int, int]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str, quota: int, per_seconds: int) -> bool:
        ws = window_start(size=per_seconds)
        with self._lock:
            cur = self._buckets.get(key)
            count = 1 if cur is None or cur[0] != ws else cur[1] + 1
            self._buckets[key] = (ws, count)
        return count <= quota

    def retry_after(self, key: str, per_seconds: int) -> int:
        cur = self._buckets.get(key)
        if not cur:
            return 0
        end = cur[0] + per_seconds
        now = int(time.time())
        return max(0, end - now)


__all__ = ["MemoryRateLimiter"]
