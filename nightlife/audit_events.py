"""Lightweight audit event recorder for moderation and security-sensitive actions.

Events land in a bounded in-memory buffer (process local) and, when the
OpenTelemetry API is installed, are also emitted as short spans.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any

from flask import has_request_context, session

try:  # optional
    from opentelemetry import trace
except ImportError:  # pragma: no cover
    trace = None

_AUDIT_BUFFER: list[dict[str, Any]] = []
_MAX_BUFFER = 500


@dataclass
class AuditEvent:
    ts: int
    action: str
    actor_user_id: str | None = None
    meta: dict[str, Any] | None = None


def record_audit_event(action: str, actor_user_id: str | None = None, **meta: Any) -> AuditEvent:
    if actor_user_id is None and has_request_context():
        actor_user_id = session.get("user_id")
    ev = AuditEvent(int(time.time()), action, actor_user_id, meta or None)
    if len(_AUDIT_BUFFER) >= _MAX_BUFFER:
        del _AUDIT_BUFFER[0 : max(50, _MAX_BUFFER // 10)]  # drop oldest slice
    _AUDIT_BUFFER.append(asdict(ev))
    if trace is not None:  # pragma: no cover - OTEL optional
        try:
            span = trace.get_tracer("nightlife.audit").start_span(f"audit.{action}")
            try:
                if actor_user_id is not None:
                    span.set_attribute("actor_user_id", actor_user_id)
                for k, v in meta.items():
                    span.set_attribute(f"meta.{k}", str(v))
            finally:
                span.end()
        except Exception:
            pass
    return ev


def list_audit_events(action: str | None = None) -> list[dict[str, Any]]:
    if action is None:
        return list(_AUDIT_BUFFER)
    return [e for e in _AUDIT_BUFFER if e["action"] == action]


def clear_audit_events() -> None:  # test helper
    _AUDIT_BUFFER.clear()
