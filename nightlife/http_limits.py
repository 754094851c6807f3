"""HTTP rate limiting decorator.

Add @limit("name") to a view to enforce the fixed-window quota registered for
that name (see limit_registry).
"""
from __future__ import annotations

from collections.abc import Callable
from contextlib import suppress
from functools import wraps
from typing import Any

from flask import request, session

from .limit_registry import get_limit
from .metrics import increment as metrics_increment
from .rate_limiter import RateLimitError, get_rate_limiter

LimiterKeyFunc = Callable[[], str]


def client_ip() -> str:
    # Real client IP from X-Forwarded-For when behind a proxy
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


def user_or_ip_key() -> str:
    uid = session.get("user_id")
    return f"user:{uid}" if uid else f"ip:{client_ip()}"


def ip_key() -> str:
    return f"ip:{client_ip()}"


def limit(
    name: str,
    *,
    quota: int | None = None,
    per_seconds: int | None = None,
    key_func: LimiterKeyFunc = user_or_ip_key,
):

    def decorator(fn: Callable[..., Any]):
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any):
            q = quota
            p = per_seconds
            if q is None or p is None:
                ld, _src = get_limit(name)
                q = ld["quota"] if q is None else q
                p = ld["per_seconds"] if p is None else p
            logical_key = f"{name}:{key_func()}"
            rl = get_rate_limiter()
            allowed = rl.allow(logical_key, quota=q, per_seconds=p)
            with suppress(Exception):  # pragma: no cover - metrics must not break request
                metrics_increment(
                    "rate_limit.hit",
                    {"name": name, "outcome": "allow" if allowed else "block", "window": str(p)},
                )
            if not allowed:
                raise RateLimitError(
                    f"Rate limit exceeded for {name}",
                    retry_after=rl.retry_after(logical_key, per_seconds=p),
                    limit=name,
                )
            return fn(*args, **kwargs)

        return wrapper

    return decorator


__all__ = ["limit", "client_ip", "user_or_ip_key", "ip_key"]
