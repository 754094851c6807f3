from __future__ import annotations

import os
import re

from flask import Blueprint, current_app, jsonify, make_response, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from . import serializers
from .app_authz import current_identity, require_auth
from .app_sessions import clear_login, persist_login
from .audit_events import record_audit_event
from .cookies import set_secure_cookie
from .db import get_session
from .errors import ConflictError, DomainError, ValidationError
from .http_limits import ip_key, limit
from .jwt_utils import (
    DEFAULT_ACCESS_TTL,
    DEFAULT_REFRESH_TTL,
    JWTError,
    decode as jwt_decode,
    issue_token_pair,
    select_signing_secret,
)
from .models import ACCOUNT_TYPES, User
from .security import ensure_csrf_token

bp = Blueprint("auth", __name__, url_prefix="/api/auth")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


# --- Helpers ---
def _secrets() -> tuple[str, list[str]]:
    primary = current_app.config.get("JWT_SECRET", os.getenv("JWT_SECRET", "dev-secret"))
    return primary, current_app.config.get("JWT_SECRETS") or []


def _issue(user: User) -> tuple[str, str, str]:
    primary, secrets_list = _secrets()
    return issue_token_pair(
        user_id=user.id,
        role=user.role,
        secret=select_signing_secret(primary, secrets_list),
        access_ttl=current_app.config.get("JWT_ACCESS_TTL", DEFAULT_ACCESS_TTL),
        refresh_ttl=current_app.config.get("JWT_REFRESH_TTL", DEFAULT_REFRESH_TTL),
        audience=current_app.config.get("JWT_AUDIENCE", "api"),
        issuer=current_app.config.get("JWT_ISSUER", "nightlife"),
    )


def _decode_refresh(token: str):
    primary, secrets_list = _secrets()
    try:
        payload = jwt_decode(
            token,
            secret=primary,
            secrets_list=secrets_list,
            issuer=current_app.config.get("JWT_ISSUER"),
            audience=current_app.config.get("JWT_AUDIENCE"),
        )
    except JWTError as e:
        raise DomainError(401, "INVALID_TOKEN", "Invalid token") from e
    if payload["type"] != "refresh":
        raise ValidationError("Wrong token type", code="WRONG_TOKEN_TYPE")
    return payload


def _token_response(user: User, status: int = 200):
    access, refresh, refresh_jti = _issue(user)
    user.refresh_token_jti = refresh_jti
    get_session().commit()
    persist_login(session, user.id, user.role)
    csrf_token = ensure_csrf_token(current_app)
    resp = make_response(
        jsonify(
            {
                "ok": True,
                "user": serializers.user_public(user),
                "access_token": access,
                "refresh_token": refresh,
                "token_type": "Bearer",
                "expires_in": current_app.config.get("JWT_ACCESS_TTL", DEFAULT_ACCESS_TTL),
                "csrf_token": csrf_token,
            }
        ),
        status,
    )
    set_secure_cookie(resp, current_app.config.get("CSRF_COOKIE_NAME", "csrf_token"), csrf_token, httponly=False, samesite="Strict")
    return resp


# --- Routes ---
@bp.post("/register")
@limit("auth", key_func=ip_key)
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    pseudonym = (data.get("pseudonym") or "").strip()
    account_type = data.get("account_type") or "regular"
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email is required", code="INVALID_EMAIL")
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", code="WEAK_PASSWORD")
    if not pseudonym or len(pseudonym) > 100:
        raise ValidationError("pseudonym is required")
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError("Invalid account_type", code="INVALID_ACCOUNT_TYPE", allowed=list(ACCOUNT_TYPES))
    db = get_session()
    if db.query(User).filter((User.email == email) | (User.pseudonym == pseudonym)).first():
        raise ConflictError("Email or pseudonym already in use", code="USER_EXISTS")
    user = User(
        email=email,
        pseudonym=pseudonym,
        password_hash=generate_password_hash(password),
        role="user",
        account_type=account_type,
        is_active=True,
    )
    db.add(user)
    db.flush()
    record_audit_event("user_registered", actor_user_id=user.id)
    return _token_response(user, 201)


@bp.post("/login")
@limit("auth", key_func=ip_key)
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise ValidationError("missing credentials", code="MISSING_CREDENTIALS")
    db = get_session()
    user = db.query(User).filter(User.email == email).first()
    if not user or not check_password_hash(user.password_hash, password):
        current_app.logger.warning("Failed login for %s from %s", email, request.remote_addr)
        raise DomainError(401, "INVALID_CREDENTIALS", "Invalid credentials")
    if not user.is_active:
        raise DomainError(403, "ACCOUNT_DISABLED", "Account disabled")
    return _token_response(user)


@bp.post("/refresh")
@limit("auth", key_func=ip_key)
def refresh():
    data = request.get_json(silent=True) or {}
    token = data.get("refresh_token")
    if not token:
        raise ValidationError("missing token", code="MISSING_TOKEN")
    payload = _decode_refresh(token)
    db = get_session()
    user = db.get(User, payload["sub"])
    if not user or not user.is_active or user.refresh_token_jti != payload["jti"]:
        raise DomainError(401, "INVALID_TOKEN", "Invalid token")
    access, new_refresh, new_jti = _issue(user)
    user.refresh_token_jti = new_jti
    db.commit()
    return jsonify(
        {
            "ok": True,
            "access_token": access,
            "refresh_token": new_refresh,
            "token_type": "Bearer",
            "expires_in": current_app.config.get("JWT_ACCESS_TTL", DEFAULT_ACCESS_TTL),
        }
    )


@bp.post("/logout")
def logout():
    data = request.get_json(silent=True) or {}
    token = data.get("refresh_token")
    db = get_session()
    user_id = session.get("user_id")
    if token:
        user_id = _decode_refresh(token)["sub"]
    if user_id:
        user = db.get(User, user_id)
        if user is not None:
            user.refresh_token_jti = None
            db.commit()
    clear_login(session)
    return jsonify({"ok": True})


@bp.get("/me")
@require_auth
def me():
    ident = current_identity()
    user = get_session().get(User, ident["user_id"])
    if user is None:
        clear_login(session)
        raise DomainError(401, "AUTH_REQUIRED", "Authentication required")
    return jsonify({"ok": True, "user": serializers.user_public(user)})


@bp.get("/csrf-token")
def csrf_token():
    token = ensure_csrf_token(current_app)
    resp = make_response(jsonify({"ok": True, "csrf_token": token}))
    set_secure_cookie(resp, current_app.config.get("CSRF_COOKIE_NAME", "csrf_token"), token, httponly=False, samesite="Strict")
    return resp
