from __future__ import annotations

import pytest

from nightlife.jwt_utils import JWTError, decode, issue_token_pair

REG = {"email": "New@Example.com", "password": "longenough", "pseudonym": "newbie"}


def _register(app, **overrides):
    return app.test_client().post("/api/auth/register", json={**REG, **overrides})


def test_register_issues_tokens(app):
    r = _register(app, account_type="establishment_owner")
    assert r.status_code == 201
    body = r.get_json()
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "user"
    assert body["user"]["account_type"] == "establishment_owner"
    assert body["token_type"] == "Bearer"
    assert body["access_token"] and body["refresh_token"] and body["csrf_token"]


def test_register_validation(app):
    assert _register(app, email="nope").get_json()["code"] == "INVALID_EMAIL"
    assert _register(app, password="short").get_json()["code"] == "WEAK_PASSWORD"
    assert _register(app, account_type="vip").get_json()["code"] == "INVALID_ACCOUNT_TYPE"
    assert _register(app).status_code == 201
    r = _register(app, email="other@example.org")
    assert r.status_code == 409
    assert r.get_json()["code"] == "USER_EXISTS"


def test_login_and_bearer_me(app):
    _register(app)
    r = app.test_client().post("/api/auth/login", json={"email": "new@example.com", "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.get_json()["code"] == "INVALID_CREDENTIALS"
    r = app.test_client().post("/api/auth/login", json={"email": "new@example.com", "password": "longenough"})
    assert r.status_code == 200
    access = r.get_json()["access_token"]

    anon = app.test_client()
    assert anon.get("/api/auth/me").status_code == 401
    me = app.test_client().get("/api/auth/me", headers={"Authorization": f"Bearer {access}"})
    assert me.status_code == 200
    assert me.get_json()["user"]["pseudonym"] == "newbie"


def test_refresh_rotates_token(app):
    refresh = _register(app).get_json()["refresh_token"]
    c = app.test_client()
    r = c.post("/api/auth/refresh", json={"refresh_token": refresh})
    assert r.status_code == 200
    rotated = r.get_json()["refresh_token"]
    assert rotated != refresh
    r = c.post("/api/auth/refresh", json={"refresh_token": refresh})
    assert r.status_code == 401
    assert r.get_json()["code"] == "INVALID_TOKEN"


def test_access_token_cannot_refresh(app):
    access = _register(app).get_json()["access_token"]
    r = app.test_client().post("/api/auth/refresh", json={"refresh_token": access})
    assert r.status_code == 400
    assert r.get_json()["code"] == "WRONG_TOKEN_TYPE"


def test_jwt_roundtrip_and_tamper():
    access, refresh, jti = issue_token_pair(user_id="u1", role="admin", secret="s3cret")
    payload = decode(refresh, secret="s3cret", audience="api", issuer="nightlife")
    assert payload["jti"] == jti
    assert payload["type"] == "refresh"
    assert decode(access, secret="s3cret")["role"] == "admin"
    with pytest.raises(JWTError):
        decode(access, secret="other")
    with pytest.raises(JWTError):
        decode(access, secret="s3cret", audience="web")
    with pytest.raises(JWTError):
        decode("a.b", secret="s3cret")


def test_rotated_secrets_still_verify():
    access, _, _ = issue_token_pair(user_id="u1", role="user", secret="old")
    assert decode(access, secret="new", secrets_list=["new", "old"])["sub"] == "u1"
