"""Session management helpers.

The Flask session cookie (httpOnly) carries user_id + role; bearer tokens are
decoded into the same keys by app_authz.
"""
from __future__ import annotations

from typing import TypedDict, cast

from flask import session as flask_session


class SessionData(TypedDict):
    user_id: str
    role: str


def persist_login(sess, user_id: str, role: str) -> None:
    """Persist minimal auth session state."""
    sess["user_id"] = str(user_id)
    sess["role"] = role


def clear_login(sess=flask_session) -> None:
    sess.pop("user_id", None)
    sess.pop("role", None)


def get_session(sess=flask_session) -> SessionData | None:
    if not sess.get("user_id") or not sess.get("role"):
        return None
    data: SessionData = {
        "user_id": str(sess["user_id"]),
        "role": cast(str, sess["role"]),
    }
    return data


def require_session(sess=flask_session) -> SessionData:
    data = get_session(sess)
    if data is None:
        raise SessionError("authentication required")
    return data


class SessionError(Exception):
    """Signals a 401 unauthorized due to missing/invalid session."""
    def __init__(self, message: str = "authentication required"):
        super().__init__(message)


__all__ = [
    "SessionData",
    "persist_login",
    "clear_login",
    "get_session",
    "require_session",
    "SessionError",
]
