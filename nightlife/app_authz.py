"""Authorization helpers.

require_roles(*roles) raises SessionError (401) when no identity is present and
AuthzError (403, with `required`) when the role does not match; the central
handlers in errors.py turn both into the JSON error envelope.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from flask import current_app, request, session

from .app_sessions import SessionData, SessionError, get_session
from .jwt_utils import JWTError, decode as jwt_decode
from .roles import Role

P = ParamSpec("P")
R = TypeVar("R")


class AuthzError(Exception):
    """Signals an authorization (403) failure caught by centralized handlers."""

    required: str | None

    def __init__(self, message: str = "forbidden", required: str | None = None, code: str = "FORBIDDEN"):
        super().__init__(message)
        self.required = required
        self.code = code


def load_bearer_identity() -> None:
    """Decode an `Authorization: Bearer` access token into the session keys.

    Invalid tokens leave the session untouched; callers then see no identity.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        return
    token = auth_header.split(None, 1)[1].strip()
    cfg = current_app.config
    primary = cfg.get("JWT_SECRET", os.getenv("JWT_SECRET", "dev-secret"))
    try:
        payload = jwt_decode(
            token,
            secret=primary,
            secrets_list=cfg.get("JWT_SECRETS") or [],
            issuer=cfg.get("JWT_ISSUER"),
            audience=cfg.get("JWT_AUDIENCE"),
            leeway=cfg.get("JWT_LEEWAY_SECONDS", 60),
            max_age=cfg.get("JWT_MAX_AGE_SECONDS"),
        )
    except JWTError as e:
        if cfg.get("TESTING"):
            current_app.logger.debug({"jwt_reject": str(e)})
        return
    if payload["type"] != "access":
        return
    session["user_id"] = payload["sub"]
    session["role"] = payload["role"]


def require_auth(fn: Callable[P, R]) -> Callable[P, R]:
    """Any authenticated caller."""

    @wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        if get_session() is None:
            load_bearer_identity()
        if get_session() is None:
            raise SessionError("authentication required")
        return fn(*args, **kwargs)

    return wrapper


def require_roles(*roles: Role) -> Callable[[Callable[P, R]], Callable[P, R]]:
    allowed = tuple(roles)

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        @wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            sess = get_session()
            if sess is None:
                load_bearer_identity()
                sess = get_session()
            if sess is None:
                raise SessionError("authentication required")
            if allowed and sess["role"] not in allowed:
                # Debug aid for test harness: log mismatch context when TESTING to diagnose unexpected 403s
                if current_app.config.get("TESTING"):
                    current_app.logger.info(
                        {"auth_debug": True, "expected_any_of": allowed, "session_role": sess["role"]}
                    )
                raise AuthzError("Insufficient permissions", required=allowed[0])
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def current_identity() -> SessionData:
    """Identity for handlers already guarded by require_auth/require_roles."""
    sess = get_session()
    if sess is None:
        raise SessionError("authentication required")
    return sess


def optional_identity() -> SessionData | None:
    sess = get_session()
    if sess is None:
        load_bearer_identity()
        sess = get_session()
    return sess


__all__ = [
    "AuthzError",
    "require_auth",
    "require_roles",
    "current_identity",
    "optional_identity",
    "load_bearer_identity",
]
