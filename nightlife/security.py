"""Security middleware and helpers.

Features:
 - CORS allow-list.
 - CSRF double-submit (csrf_token cookie mirrored in X-CSRF-Token) with a
   same-origin fallback outside the strict prefixes.
 - Security headers (HSTS, CSP, Referrer-Policy, Permissions-Policy).
 - Counters for blocked CSRF attempts.

CSRF Policy:
 - SAFE methods always allowed.
 - Login, registration and token refresh are exempt (no session exists yet).
 - Under STRICT_CSRF_PATHS the token pair is mandatory; elsewhere a matching
   Origin header is accepted instead.
 - TESTING bypasses enforcement unless STRICT_CSRF_IN_TESTS is set.
"""

from __future__ import annotations

import os
import secrets
from importlib import import_module
from typing import Any

try:  # pragma: no cover - if OTEL not installed
    metrics: Any = import_module("opentelemetry.metrics")
except ImportError:  # pragma: no cover
    metrics = None

from flask import Flask, g, make_response, request

from .http_errors import csrf_invalid

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}

CSRF_EXEMPT_PATHS: tuple[str, ...] = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/refresh",
    "/health",
)

# State-changing methods under these prefixes must include a valid
# double-submit token; the origin fallback does NOT apply.
STRICT_CSRF_PATHS: tuple[str, ...] = (
    "/api/admin",
    "/api/ownership-requests",
    "/api/moderation",
)

_CSRF_COUNTERS = {"missing": 0, "mismatch": 0, "origin": 0}
if metrics:
    try:
        _meter = metrics.get_meter(__name__)
        _csrf_blocked_counter = _meter.create_counter(
            name="security.csrf_blocked_total",
            description="Count of blocked CSRF-modifying requests by reason",
            unit="1",
        )
    except Exception:  # pragma: no cover
        _csrf_blocked_counter = None
else:  # pragma: no cover
    _csrf_blocked_counter = None


def csrf_counters() -> dict[str, int]:
    return dict(_CSRF_COUNTERS)


def _is_testing(app: Flask) -> bool:
    return bool(app.config.get("TESTING") or os.getenv("PYTEST_CURRENT_TEST"))


def _is_exempt(path: str, method: str) -> bool:
    if method in SAFE_METHODS:
        return True
    return any(path == p or path.startswith(p + "/") for p in CSRF_EXEMPT_PATHS)


def _validate_cors(app: Flask, resp):
    allowed: list[str] = app.config.get("CORS_ALLOWED_ORIGINS", []) or []
    if not allowed:
        return resp
    origin = request.headers.get("Origin")
    if not origin:
        return resp
    if origin in allowed:
        resp.headers.setdefault("Vary", "Origin")
        resp.headers["Access-Control-Allow-Origin"] = origin
        resp.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
        req_hdrs = request.headers.get("Access-Control-Request-Headers")
        if req_hdrs:
            resp.headers["Access-Control-Allow-Headers"] = req_hdrs
        resp.headers["Access-Control-Allow-Credentials"] = "true"
        resp.headers["Access-Control-Max-Age"] = "600"
    return resp


def csrf_cookie_name(app: Flask) -> str:
    return app.config.get("CSRF_COOKIE_NAME", "csrf_token")


def ensure_csrf_token(app: Flask) -> str:
    """Current request's CSRF token; a new one is queued for the response cookie if absent."""
    existing = request.cookies.get(csrf_cookie_name(app))
    if existing:
        return existing
    token = getattr(g, "_new_csrf_token", None)
    if token is None:
        token = secrets.token_hex(16)
        g._new_csrf_token = token
    return token


def _block(reason: str):
    _CSRF_COUNTERS[reason] += 1
    if _csrf_blocked_counter:
        _csrf_blocked_counter.add(1, {"reason": reason})
    return csrf_invalid(reason)


def _csrf_check(app: Flask):
    method = request.method.upper()
    path = request.path or "/"
    if not app.config.get("ENABLE_CSRF", True):
        return None
    if _is_testing(app) and not app.config.get("STRICT_CSRF_IN_TESTS"):
        return None
    if _is_exempt(path, method):
        return None
    header_name = app.config.get("CSRF_HEADER_NAME", "X-CSRF-Token")
    sent_cookie = request.cookies.get(csrf_cookie_name(app))
    sent_header = request.headers.get(header_name)
    origin = request.headers.get("Origin")
    host = (request.host_url or "").rstrip("/")
    same_origin = bool(origin and host and origin.rstrip("/") == host)
    if sent_header:
        if sent_cookie and secrets.compare_digest(sent_cookie, sent_header):
            return None
        if app.config.get("DEBUG"):
            app.logger.info({"csrf_debug": True, "reason": "mismatch", "path": path, "has_cookie": bool(sent_cookie)})
        return _block("mismatch")
    if same_origin and not any(path.startswith(p) for p in STRICT_CSRF_PATHS):
        return None
    reason = "origin" if origin and not same_origin else "missing"
    if app.config.get("DEBUG"):
        app.logger.info({"csrf_debug": True, "reason": reason, "path": path, "same_origin": same_origin})
    return _block(reason)


def init_security(app: Flask):
    @app.before_request
    def _security_before_request():
        if request.method == "OPTIONS":
            # CORS preflight
            return make_response("")
        ensure_csrf_token(app)
        fail = _csrf_check(app)
        if fail is not None:
            return fail

    @app.after_request
    def _security_after_request(resp):
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        resp.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
        if not app.config.get("TESTING") and not app.config.get("DEBUG"):
            resp.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
        resp.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'self'; object-src 'none'; base-uri 'self'; frame-ancestors 'none'",
        )
        if hasattr(g, "_new_csrf_token") and not getattr(g, "_csrf_cookie_set", False):
            from .cookies import set_secure_cookie

            samesite_val = "Strict"
            if not app.config.get("TESTING") and os.getenv("DEV_CSRF_LAX", "0") in ("1", "true", "yes"):
                samesite_val = "Lax"
            set_secure_cookie(resp, csrf_cookie_name(app), g._new_csrf_token, httponly=False, samesite=samesite_val)
        return _validate_cors(app, resp)

    return app


__all__ = ["init_security", "ensure_csrf_token", "csrf_counters", "STRICT_CSRF_PATHS", "CSRF_EXEMPT_PATHS"]
