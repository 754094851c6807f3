"""HS256 JWT helpers for access/refresh token pairs.

 - Claim enforcement: iss, aud, iat, exp, nbf with configurable leeway.
 - Max token age (iat no older than JWT_MAX_AGE_SECONDS).
 - Rotation: several shared secrets accepted for verification; the first signs.
 - jti revocation hook: is_revoked(jti) -> bool.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from collections.abc import Callable
from typing import Any, Literal, TypedDict


class JWTError(Exception):
    pass


DEFAULT_ACCESS_TTL = 900  # 15 min
DEFAULT_REFRESH_TTL = 604800  # 7 days
SKEW_SECS = 30
ISSUER = "nightlife"

ALG_HS256 = "HS256"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    pad = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + pad)


def _sign(msg: bytes, secret: str) -> str:
    sig = hmac.new(secret.encode(), msg, hashlib.sha256).digest()
    return _b64url(sig)


def generate_jti() -> str:
    return secrets.token_hex(16)


def encode(payload: dict[str, Any], *, secret: str, ttl: int, kid: str | None = None) -> str:
    now = int(time.time())
    header = {"alg": ALG_HS256, "typ": "JWT"}
    if kid:
        header["kid"] = kid
    pl = payload.copy()
    pl.setdefault("iat", now)
    pl.setdefault("exp", now + ttl)
    header_b = _b64url(json.dumps(header, separators=(",", ":")).encode())
    payload_b = _b64url(json.dumps(pl, separators=(",", ":")).encode())
    msg = f"{header_b}.{payload_b}".encode()
    sig = _sign(msg, secret)
    return f"{header_b}.{payload_b}.{sig}"


class TokenPayload(TypedDict):
    sub: str
    role: str
    jti: str
    iat: int
    exp: int
    type: Literal["access", "refresh"]
    iss: str


def decode(
    token: str,
    *,
    secret: str | None = None,
    secrets_list: list[str] | None = None,
    verify_exp: bool = True,
    issuer: str | None = None,
    audience: str | None = None,
    leeway: int = SKEW_SECS,
    max_age: int | None = None,
    is_revoked: Callable[[str], bool] | None = None,
) -> TokenPayload:
    try:
        header_b, payload_b, sig = token.split(".")
    except ValueError as e:
        raise JWTError("malformed token") from e
    msg = f"{header_b}.{payload_b}".encode()
    try:
        header_raw = json.loads(_b64url_decode(header_b))
    except (ValueError, TypeError) as e:
        raise JWTError("bad header") from e
    if not isinstance(header_raw, dict) or header_raw.get("alg") != ALG_HS256:
        raise JWTError("alg")
    candidates: list[str] = []
    if secret:
        candidates.append(secret)
    for s in secrets_list or []:
        if s and s not in candidates:
            candidates.append(s)
    if not candidates:
        raise JWTError("bad signature")
    for sec in candidates:
        if hmac.compare_digest(_sign(msg, sec), sig):
            break
    else:
        raise JWTError("bad signature")
    try:
        raw = json.loads(_b64url_decode(payload_b))
    except (ValueError, TypeError) as e:
        raise JWTError("bad payload") from e
    if not isinstance(raw, dict):
        raise JWTError("bad payload type")
    raw.setdefault("iss", ISSUER)
    token_type = raw.get("type")
    if token_type not in ("access", "refresh"):
        raise JWTError("unknown token type")

    def _req(key: str, t: type) -> Any:
        if key not in raw:
            raise JWTError(f"missing claim {key}")
        val = raw[key]
        if not isinstance(val, t):
            raise JWTError(f"bad claim type {key}")
        return val

    sub = _req("sub", str)
    role = _req("role", str)
    jti = _req("jti", str)
    iat = _req("iat", int)
    exp = _req("exp", int)
    iss_val = _req("iss", str)
    nbf_val = raw.get("nbf")
    if nbf_val is not None and not isinstance(nbf_val, int):
        raise JWTError("nbf")
    now = int(time.time())
    if verify_exp:
        if now > exp + leeway:
            raise JWTError("token expired")
        if nbf_val is not None and now + leeway < nbf_val:
            raise JWTError("token not yet valid")
        if iat > now + leeway:
            raise JWTError("iat_future")
        if max_age is not None and token_type == "access" and (now - iat) > max_age + leeway:
            raise JWTError("max_age")
    if issuer and iss_val != issuer:
        raise JWTError("iss")
    if audience:
        aud_val = raw.get("aud")
        if isinstance(aud_val, str):
            ok = aud_val == audience
        elif isinstance(aud_val, list):
            ok = audience in aud_val
        else:
            ok = False
        if not ok:
            raise JWTError("aud")
    if is_revoked and is_revoked(jti):
        raise JWTError("revoked")
    return TokenPayload(sub=sub, role=role, jti=jti, iat=iat, exp=exp, iss=iss_val, type=token_type)


def issue_token_pair(*, user_id: str, role: str, secret: str, access_ttl: int = DEFAULT_ACCESS_TTL, refresh_ttl: int = DEFAULT_REFRESH_TTL, audience: str = "api", issuer: str = ISSUER) -> tuple[str, str, str]:
    jti = generate_jti()
    now = int(time.time())
    access_payload: dict[str, Any] = {"sub": user_id, "role": role, "jti": generate_jti(), "type": "access", "iss": issuer, "aud": audience, "iat": now, "exp": now + access_ttl}
    refresh_payload: dict[str, Any] = {"sub": user_id, "role": role, "jti": jti, "type": "refresh", "iss": issuer, "aud": audience, "iat": now, "exp": now + refresh_ttl}
    # Derive kid from secret stable hash prefix for rotation signalling
    kid = hashlib.sha256(secret.encode()).hexdigest()[:8]
    access_token = encode(access_payload, secret=secret, ttl=access_ttl, kid=kid)
    refresh_token = encode(refresh_payload, secret=secret, ttl=refresh_ttl, kid=kid)
    return access_token, refresh_token, jti


def select_signing_secret(primary: str | None, candidates: list[str] | None) -> str:
    """Return primary secret if provided else first candidate; raise if none."""
    if primary:
        return primary
    if candidates:
        for c in candidates:
            if c:
                return c
    raise JWTError("no signing secret available")
