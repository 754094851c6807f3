"""Named rate limit registry.

Resolves a limit name -> LimitDefinition with resolution order:
1. Override loaded from RATE_LIMITS_JSON (e.g. {"admin": {"quota": 10, "per": 60}})
2. Built-in default for the name
3. Fallback safe default (quota=100, per_seconds=900)

Clamps:
- quota >= 1 (values <=0 -> 1)
- per_seconds in [1, 86400]
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from json import JSONDecodeError, loads
from typing import Any, TypedDict

from . import metrics as metrics_mod


class LimitDefinition(TypedDict):
    quota: int
    per_seconds: int


DEFAULT_LIMITS: dict[str, LimitDefinition] = {
    "api": {"quota": 100, "per_seconds": 900},
    "auth": {"quota": 10, "per_seconds": 600},
    "admin": {"quota": 50, "per_seconds": 300},
    "admin_critical": {"quota": 10, "per_seconds": 600},
    "comment": {"quota": 20, "per_seconds": 60},
    "upload": {"quota": 30, "per_seconds": 60},
    "search": {"quota": 30, "per_seconds": 60},
    "notifications": {"quota": 60, "per_seconds": 60},
    "votes": {"quota": 20, "per_seconds": 60},
}

_overrides: dict[str, LimitDefinition] = {}

_FALLBACK: LimitDefinition = {"quota": 100, "per_seconds": 900}
_MAX_WINDOW = 86400


def _clamp(q: Any, p: Any) -> LimitDefinition:
    try:
        quota = int(q)
    except (TypeError, ValueError):
        quota = _FALLBACK["quota"]
    try:
        per = int(p)
    except (TypeError, ValueError):
        per = _FALLBACK["per_seconds"]
    return {"quota": max(1, quota), "per_seconds": min(max(1, per), _MAX_WINDOW)}


def parse_limits(raw: str | Mapping[str, Any]) -> dict[str, LimitDefinition]:
    if isinstance(raw, str):
        try:
            data = loads(raw or "{}")
        except JSONDecodeError:
            return {}
    else:
        data = dict(raw)
    parsed: dict[str, LimitDefinition] = {}
    for k, v in data.items():
        if not isinstance(v, Mapping):
            continue
        parsed[k] = _clamp(v.get("quota"), v.get("per") or v.get("per_seconds"))
    return parsed


def refresh(raw: str | Mapping[str, Any] | None = None) -> None:
    if raw is None:
        raw = os.getenv("RATE_LIMITS_JSON", "")
    _overrides.clear()
    _overrides.update(parse_limits(raw))


def get_limit(name: str) -> tuple[LimitDefinition, str]:
    if name in _overrides:
        metrics_mod.increment("rate_limit.lookup", {"name": name, "source": "override"})
        return _overrides[name], "override"
    if name in DEFAULT_LIMITS:
        metrics_mod.increment("rate_limit.lookup", {"name": name, "source": "default"})
        return DEFAULT_LIMITS[name], "default"
    metrics_mod.increment("rate_limit.lookup", {"name": name, "source": "fallback"})
    return _FALLBACK, "fallback"


__all__ = [
    "LimitDefinition",
    "DEFAULT_LIMITS",
    "parse_limits",
    "get_limit",
    "refresh",
]
