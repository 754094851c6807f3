from __future__ import annotations

from flask import Response, current_app, g


def set_secure_cookie(
    resp: Response,
    name: str,
    value: str,
    *,
    httponly: bool = True,
    samesite: str = "Lax",
    max_age: int | None = None,
    path: str = "/",
) -> None:
    """Set a cookie with security-oriented defaults.

    Secure flag is enabled unless DEBUG/TESTING.
    """
    secure_flag = not (current_app.config.get("DEBUG") or current_app.config.get("TESTING"))
    resp.set_cookie(
        name,
        value,
        secure=secure_flag,
        httponly=httponly,
        samesite=samesite,
        max_age=max_age,
        path=path,
    )
    if name == current_app.config.get("CSRF_COOKIE_NAME", "csrf_token"):
        g._csrf_cookie_set = True


__all__ = ["set_secure_cookie"]
