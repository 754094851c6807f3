"""Domain error system + handler registration.

Every failure leaves the API as {"error", "code", "status", ...context}.
"""
from __future__ import annotations

import traceback
import uuid
from collections.abc import Callable
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException
from werkzeug.wrappers.response import Response

from .app_authz import AuthzError
from .app_sessions import SessionError
from .audit_events import record_audit_event
from .http_errors import (
    bad_request,
    conflict,
    forbidden,
    internal_server_error,
    not_found,
    problem,
    too_many_requests,
    unauthorized,
)
from .pagination import PaginationError
from .rate_limiter import RateLimitError


class DomainError(Exception):
    def __init__(self, status: int, code: str, detail: str | None = None, **extra: Any):
        self.status = status
        self.code = code
        self.detail = detail or code
        self.extra = extra
        super().__init__(self.detail)


class ValidationError(DomainError):
    def __init__(self, detail: str, code: str = "VALIDATION_ERROR", **extra: Any):
        super().__init__(400, code, detail, **extra)


class NotFoundError(DomainError):
    def __init__(self, detail: str = "Not found", code: str = "NOT_FOUND", **extra: Any):
        super().__init__(404, code, detail, **extra)


class ConflictError(DomainError):
    def __init__(self, detail: str, code: str = "CONFLICT", **extra: Any):
        super().__init__(409, code, detail, **extra)


_STATUS_HELPERS: dict[int, Callable[..., Response]] = {
    400: bad_request,
    403: forbidden,
    404: not_found,
    409: conflict,
}


def _emit_problem(resp: Response) -> None:
    payload = resp.get_json(silent=True) or {}
    try:
        record_audit_event(
            "problem_response",
            code=payload.get("code"),
            status=payload.get("status"),
            path=request.path,
        )
    except Exception:  # pragma: no cover - audit must not break error path
        pass


def register_error_handlers(app: Flask) -> None:

    @app.errorhandler(SessionError)
    def _h_session(err: SessionError) -> Response:
        resp = unauthorized(str(err) or "Authentication required")
        _emit_problem(resp)
        return resp

    @app.errorhandler(AuthzError)
    def _h_authz(err: AuthzError) -> Response:
        extra = {"required_role": err.required} if err.required else {}
        resp = forbidden(str(err) or "Forbidden", code=err.code, **extra)
        _emit_problem(resp)
        return resp

    @app.errorhandler(DomainError)
    def _h_domain(err: DomainError) -> Response:
        helper = _STATUS_HELPERS.get(err.status)
        if helper:
            resp = helper(err.detail, code=err.code, **err.extra)
        else:
            resp = problem(err.status, err.code, err.detail, **err.extra)
        _emit_problem(resp)
        return resp

    @app.errorhandler(RateLimitError)
    def _h_rate_limit(ex: RateLimitError) -> Response:
        resp = too_many_requests(str(ex) or "Too many requests", retry_after=ex.retry_after, limit=ex.limit)
        _emit_problem(resp)
        return resp

    @app.errorhandler(PaginationError)
    def _h_pagination(err: PaginationError) -> Response:
        resp = bad_request(str(err) or "Bad request", code="INVALID_PAGINATION")
        _emit_problem(resp)
        return resp

    @app.errorhandler(HTTPException)
    def _h_http(ex: HTTPException) -> Response:
        status = ex.code or 500
        if status >= 500:
            return internal_server_error()
        if status == 401:
            return unauthorized(ex.description or "Authentication required")
        code = (ex.name or "error").upper().replace(" ", "_")
        return problem(status, code, ex.description or ex.name)

    @app.errorhandler(Exception)
    def _h_exception(ex: Exception) -> Response:
        incident_id = str(uuid.uuid4())
        # Detail stays server side; the client only sees the incident id.
        app.logger.error(
            "Unhandled exception incident_id=%s path=%s\n%s",
            incident_id,
            request.path,
            traceback.format_exc(),
        )
        try:
            from .db import get_session

            get_session().rollback()
        except Exception:  # pragma: no cover
            pass
        resp = internal_server_error(incident_id=incident_id)
        record_audit_event("incident", incident_id=incident_id, path=request.path)
        return resp


__all__ = [
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "register_error_handlers",
]
