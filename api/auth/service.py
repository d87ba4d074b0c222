"""
Auth business logic.

Scope:
- password login with audit entries for success and failure
- refresh-token rotation with reuse detection
- logout (one session or all sessions)
- self-service customer registration
- admin user management
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import asyncpg
from fastapi import HTTPException, status

from audit import service as audit_service
from leads.service import is_valid_email

from . import repository, schemas, security

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def to_user_response(user_row: dict[str, Any]) -> schemas.UserResponse:
    return schemas.UserResponse(
        id=int(user_row["id"]),
        email=str(user_row["email"]),
        name=user_row.get("name"),
        role=str(user_row.get("role") or "customer"),
        is_active=bool(user_row["is_active"]),
        last_login_at=user_row.get("last_login_at"),
        created_at=user_row["created_at"],
    )


async def _issue_token_pair(
    user_row: dict[str, Any],
    *,
    user_agent: str | None,
    ip_address: str | None,
) -> tuple[schemas.TokenPairResponse, int]:
    """
    Returns the token pair and the stored refresh token id.
    """
    user_id = int(user_row["id"])
    access_token = security.build_access_token(
        user_id=user_id,
        email=str(user_row["email"]),
        role=str(user_row.get("role") or "customer"),
        name=user_row.get("name"),
    )
    raw_refresh_token = security.build_refresh_token()
    refresh_row = await repository.insert_refresh_token(
        user_id=user_id,
        token_hash=security.hash_refresh_token(raw_refresh_token),
        expires_at=_utc_now() + timedelta(days=security.refresh_token_expire_days()),
        user_agent=user_agent,
        ip_address=ip_address,
    )
    pair = schemas.TokenPairResponse(access_token=access_token, refresh_token=raw_refresh_token)
    return pair, int(refresh_row["id"])


# -- sessions --------------------------------------------------------------


async def login(
    payload: schemas.LoginRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.AuthResponse:
    user_row = await repository.get_user_by_email(payload.email)
    password_ok = user_row is not None and security.verify_password(
        payload.password,
        str(user_row.get("password_hash") or ""),
    )
    if user_row is None or not password_ok:
        await audit_service.record(
            "LOGIN_FAILURE",
            user_id=int(user_row["id"]) if user_row is not None else None,
            ip_address=ip_address,
            user_agent=user_agent,
            result="failure",
            severity="warning",
            metadata={"email": payload.email},
        )
        raise _unauthorized("Invalid email or password.")

    if not bool(user_row.get("is_active", False)):
        await audit_service.record(
            "LOGIN_FAILURE",
            user_id=int(user_row["id"]),
            ip_address=ip_address,
            user_agent=user_agent,
            result="blocked",
            severity="warning",
            metadata={"reason": "inactive"},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive.")

    tokens, _ = await _issue_token_pair(user_row, user_agent=user_agent, ip_address=ip_address)
    await repository.record_login(int(user_row["id"]))
    await audit_service.record(
        "LOGIN_SUCCESS",
        user_id=int(user_row["id"]),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return schemas.AuthResponse(user=to_user_response(user_row), tokens=tokens)


async def refresh_tokens(
    payload: schemas.RefreshRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.TokenPairResponse:
    presented = (payload.refresh_token or "").strip()
    token_row = await repository.get_refresh_token_by_hash(security.hash_refresh_token(presented))
    if token_row is None:
        raise _unauthorized("Invalid refresh token.")

    token_id, user_id = int(token_row["id"]), int(token_row["user_id"])

    if token_row.get("replaced_by_token_id") is not None:
        # A rotated token came back: assume it leaked and end every session.
        revoked = await repository.revoke_all_refresh_tokens_for_user(user_id)
        logger.warning("refresh_token_reuse user_id=%s token_id=%s revoked=%s", user_id, token_id, revoked)
        await audit_service.record(
            "REFRESH_TOKEN_REUSE",
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            result="blocked",
            severity="warning",
            metadata={"token_id": token_id, "revoked_tokens": revoked},
        )
        raise _unauthorized("Refresh token reuse detected.")

    expires_at = token_row.get("expires_at")
    if not isinstance(expires_at, datetime) or expires_at <= _utc_now():
        raise _unauthorized("Refresh token is expired.")

    if token_row.get("revoked_at") is not None:
        # Logged out or revoked by an admin; not a replay.
        raise _unauthorized("Refresh token is revoked.")

    user_row = await repository.get_user_by_id(user_id)
    if user_row is None or not bool(user_row.get("is_active", False)):
        await repository.claim_refresh_token(token_id)
        raise _unauthorized("Invalid refresh token owner.")

    if not await repository.claim_refresh_token(token_id):
        # Lost a race with a concurrent refresh of the same token.
        raise _unauthorized("Refresh token is revoked.")

    tokens, new_token_id = await _issue_token_pair(user_row, user_agent=user_agent, ip_address=ip_address)
    await repository.set_replaced_by(old_token_id=token_id, new_token_id=new_token_id)
    return tokens


async def logout(
    payload: schemas.LogoutRequest,
    *,
    current_user_id: int,
) -> dict[str, Any]:
    refresh_token = (payload.refresh_token or "").strip()
    if refresh_token:
        await repository.revoke_refresh_token_by_hash(security.hash_refresh_token(refresh_token))
        return {"ok": True, "revoked": "session"}

    await repository.revoke_all_refresh_tokens_for_user(current_user_id)
    return {"ok": True, "revoked": "all"}


async def get_user_from_access_token(access_token: str) -> dict[str, Any]:
    try:
        claims = security.decode_access_token(access_token)
    except security.AuthSecurityError as exc:
        raise _unauthorized(str(exc)) from exc

    subject = str(claims.get("sub") or "").strip()
    if not subject.isdigit():
        raise _unauthorized("Invalid access token subject.")

    user_row = await repository.get_user_by_id(int(subject))
    if user_row is None:
        raise _unauthorized("User not found.")
    if not bool(user_row.get("is_active", False)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive.")
    return user_row


# -- accounts --------------------------------------------------------------


async def _insert_user(*, email: str, password: str, name: str | None, role: str) -> dict[str, Any]:
    try:
        security.validate_password_strength(password)
    except security.AuthSecurityError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if await repository.get_user_by_email(email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already registered.")

    try:
        return await repository.create_user(
            email=email,
            password_hash=security.hash_password(password),
            name=name,
            role=role,
        )
    except asyncpg.UniqueViolationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already registered.") from exc


async def register(
    payload: schemas.RegisterRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.AuthResponse:
    """
    Self-service customer sign-up. The new account is signed in immediately.
    """
    email_addr = payload.email.strip().lower()
    name = payload.name.strip()
    if not email_addr or not payload.password or not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email, password and name are required.",
        )
    if not is_valid_email(email_addr):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email format.")

    user_row = await _insert_user(email=email_addr, password=payload.password, name=name, role="customer")
    tokens, _ = await _issue_token_pair(user_row, user_agent=user_agent, ip_address=ip_address)
    logger.info("user_registered user_id=%s", user_row["id"])
    await audit_service.record(
        "USER_REGISTERED",
        user_id=int(user_row["id"]),
        ip_address=ip_address,
        user_agent=user_agent,
        resource_type="user",
        resource_id=str(user_row["id"]),
        action="register",
    )
    return schemas.AuthResponse(user=to_user_response(user_row), tokens=tokens)


async def create_user(payload: schemas.CreateUserRequest, *, created_by: int) -> schemas.UserResponse:
    user_row = await _insert_user(
        email=payload.email,
        password=payload.password,
        name=(payload.name or "").strip() or None,
        role=payload.role,
    )
    await audit_service.record(
        "USER_CREATED",
        user_id=created_by,
        resource_type="user",
        resource_id=str(user_row["id"]),
        action="create",
        metadata={"role": payload.role},
    )
    return to_user_response(user_row)


async def list_users(*, limit: int, offset: int) -> dict[str, Any]:
    rows = await repository.list_users(limit=limit, offset=offset)
    return {"users": [to_user_response(row) for row in rows], "count": len(rows)}


async def update_user(
    user_id: int,
    payload: schemas.UpdateUserRequest,
    *,
    updated_by: int,
) -> schemas.UserResponse:
    if user_id == updated_by and (payload.is_active is False or payload.role == "customer"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admins cannot deactivate or demote themselves.",
        )

    user_row = await repository.update_user(user_id, role=payload.role, is_active=payload.is_active)
    if user_row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

    if payload.is_active is False:
        await repository.revoke_all_refresh_tokens_for_user(user_id)

    await audit_service.record(
        "USER_UPDATED",
        user_id=updated_by,
        resource_type="user",
        resource_id=str(user_id),
        action="update",
        metadata=payload.model_dump(exclude_none=True),
    )
    return to_user_response(user_row)
