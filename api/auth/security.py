"""
Auth security helpers: password hashing and policy, JWT access tokens,
opaque refresh tokens and role checks.

Access tokens are short-lived JWTs carrying the user's role so route guards
can reject early; the role is re-read from the database on every request.
Refresh tokens are random strings stored only as SHA-256 hashes.
"""

from __future__ import annotations

import hashlib
import re
import secrets
import time
from typing import Any, Iterable

import bcrypt
import jwt

from core.settings import env_int, env_str, is_production

DEV_SECRET = "dev-change-this-secret"
TOKEN_ISSUER = "zencap-api"

ROLES = ("customer", "admin")

PASSWORD_MIN_LENGTH = 8
# bcrypt ignores input past 72 bytes.
PASSWORD_MAX_BYTES = 72


class AuthSecurityError(RuntimeError):
    pass


def jwt_secret() -> str:
    secret = env_str("JWT_SECRET", DEV_SECRET)
    if secret == DEV_SECRET and is_production():
        raise AuthSecurityError("JWT_SECRET must be set in production.")
    return secret


def jwt_algorithm() -> str:
    return env_str("JWT_ALG", "HS256")


def access_token_expire_minutes() -> int:
    return env_int("ACCESS_TOKEN_EXPIRE_MIN", 15)


def refresh_token_expire_days() -> int:
    return env_int("REFRESH_TOKEN_EXPIRE_DAYS", 30)


def has_role(user_role: str | None, allowed: Iterable[str]) -> bool:
    allowed = tuple(allowed)
    return not allowed or (user_role or "") in allowed


def validate_password_strength(plain_password: str) -> None:
    """
    Raise AuthSecurityError with a user-facing message if the password is too weak.
    """
    password = plain_password or ""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise AuthSecurityError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters.")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise AuthSecurityError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes.")
    if not re.search(r"[A-Za-z]", password) or not re.search(r"\d", password):
        raise AuthSecurityError("Password must contain at least one letter and one digit.")


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise AuthSecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def build_access_token(*, user_id: int, email: str, role: str, name: str | None = None) -> str:
    issued_at = int(time.time())
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "type": "access",
        "iss": TOKEN_ISSUER,
        "iat": issued_at,
        "exp": issued_at + access_token_expire_minutes() * 60,
    }
    if name:
        claims["name"] = name
    return jwt.encode(claims, jwt_secret(), algorithm=jwt_algorithm())


def decode_access_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        claims = jwt.decode(
            raw,
            jwt_secret(),
            algorithms=[jwt_algorithm()],
            issuer=TOKEN_ISSUER,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthSecurityError("Access token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    if str(claims.get("type") or "").lower() != "access":
        raise AuthSecurityError("Token is not an access token.")
    return claims


def build_refresh_token() -> str:
    return secrets.token_urlsafe(48)


def hash_refresh_token(raw_refresh_token: str) -> str:
    token = (raw_refresh_token or "").encode("utf-8")
    if not token:
        raise AuthSecurityError("Refresh token is empty.")
    return hashlib.sha256(token).hexdigest()
