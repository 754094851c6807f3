"""Shared JSON error envelope helpers: {"error", "code", "status", ...context}."""
from __future__ import annotations

import uuid

from flask import g, jsonify
from werkzeug.wrappers.response import Response


def problem(status: int, code: str, error: str, **extra: object) -> Response:
    payload: dict[str, object] = {
        "error": error,
        "code": code,
        "status": status,
    }
    rid = getattr(g, "request_id", None)
    if rid:
        payload["request_id"] = rid
    for k, v in extra.items():
        if v is not None:
            payload[k] = v
    resp = jsonify(payload)
    resp.status_code = status
    # Always echo request id header when available
    if rid and "X-Request-Id" not in resp.headers:
        resp.headers["X-Request-Id"] = rid
    return resp


def bad_request(error: str = "Bad request", code: str = "BAD_REQUEST", **extra: object) -> Response:
    return problem(400, code, error, **extra)


def unauthorized(error: str = "Authentication required", code: str = "AUTH_REQUIRED", www_auth: str | None = None, **extra: object) -> Response:
    resp = problem(401, code, error, **extra)
    if www_auth:
        resp.headers["WWW-Authenticate"] = www_auth
    return resp


def forbidden(error: str = "Forbidden", code: str = "FORBIDDEN", **extra: object) -> Response:
    return problem(403, code, error, **extra)


def csrf_invalid(reason: str = "invalid") -> Response:
    return forbidden("CSRF token missing or invalid", code="CSRF_INVALID", reason=reason)


def not_found(error: str = "Not found", code: str = "NOT_FOUND", **extra: object) -> Response:
    return problem(404, code, error, **extra)


def conflict(error: str = "Conflict", code: str = "CONFLICT", **extra: object) -> Response:
    return problem(409, code, error, **extra)


def too_many_requests(error: str = "Too many requests", retry_after: int | None = None, **extra: object) -> Response:
    # Surface retry_after in both header and body
    resp = problem(429, "RATE_LIMITED", error, retry_after=retry_after, **extra)
    if retry_after is not None:
        try:
            resp.headers["Retry-After"] = str(int(retry_after))
        except (TypeError, ValueError):
            pass
    return resp


def internal_server_error(incident_id: str | None = None, **extra: object) -> Response:
    if not incident_id:
        incident_id = str(uuid.uuid4())
    return problem(500, "INTERNAL_ERROR", "Internal server error", incident_id=incident_id, **extra)


__all__ = [
    "problem",
    "bad_request",
    "unauthorized",
    "forbidden",
    "csrf_invalid",
    "not_found",
    "conflict",
    "too_many_requests",
    "internal_server_error",
]
