"""
Account and refresh-token persistence (raw SQL).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from core import db

USER_COLUMNS = "id, email, name, password_hash, role, is_active, last_login_at, created_at, updated_at"
PUBLIC_USER_COLUMNS = "id, email, name, role, is_active, last_login_at, created_at, updated_at"
TOKEN_COLUMNS = """
    id, user_id, token_hash, expires_at, revoked_at, replaced_by_token_id,
    created_at, last_used_at, user_agent, ip_address
"""


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# -- users ---------------------------------------------------------------


async def create_user(
    *,
    email: str,
    password_hash: str,
    name: str | None = None,
    role: str = "customer",
) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        INSERT INTO users (email, name, password_hash, role)
        VALUES ($1, $2, $3, $4)
        RETURNING {PUBLIC_USER_COLUMNS}
        """,
        normalize_email(email),
        name,
        password_hash,
        role,
    )
    if row is None:
        raise RuntimeError("Failed to create user.")
    return row


async def get_user_by_email(email: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"SELECT {USER_COLUMNS} FROM users WHERE email = $1",
        normalize_email(email),
    )


async def get_user_by_id(user_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = $1", user_id)


async def list_users(*, limit: int, offset: int) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {PUBLIC_USER_COLUMNS}
        FROM users
        ORDER BY created_at DESC, id DESC
        LIMIT $1
        OFFSET $2
        """,
        limit,
        offset,
    )


async def update_user(user_id: int, *, role: str | None, is_active: bool | None) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        UPDATE users
        SET role = COALESCE($2, role),
            is_active = COALESCE($3, is_active),
            updated_at = now()
        WHERE id = $1
        RETURNING {PUBLIC_USER_COLUMNS}
        """,
        user_id,
        role,
        is_active,
    )


async def record_login(user_id: int) -> None:
    await db.execute("UPDATE users SET last_login_at = now() WHERE id = $1", user_id)


# -- refresh tokens ------------------------------------------------------


async def insert_refresh_token(
    *,
    user_id: int,
    token_hash: str,
    expires_at: datetime,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any]:
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    row = await db.fetch_one(
        f"""
        INSERT INTO refresh_tokens (user_id, token_hash, expires_at, user_agent, ip_address)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING {TOKEN_COLUMNS}
        """,
        user_id,
        token_hash,
        expires_at,
        user_agent,
        ip_address,
    )
    if row is None:
        raise RuntimeError("Failed to insert refresh token.")
    return row


async def get_refresh_token_by_hash(token_hash: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"SELECT {TOKEN_COLUMNS} FROM refresh_tokens WHERE token_hash = $1",
        token_hash,
    )


async def claim_refresh_token(token_id: int) -> bool:
    """
    Revoke a live token for rotation. Only one concurrent caller gets True.
    """
    row = await db.fetch_one(
        """
        UPDATE refresh_tokens
        SET revoked_at = now(),
            last_used_at = now()
        WHERE id = $1
          AND revoked_at IS NULL
          AND expires_at > now()
        RETURNING id
        """,
        token_id,
    )
    return row is not None


async def set_replaced_by(*, old_token_id: int, new_token_id: int) -> None:
    await db.execute(
        "UPDATE refresh_tokens SET replaced_by_token_id = $2 WHERE id = $1",
        old_token_id,
        new_token_id,
    )


async def revoke_refresh_token_by_hash(token_hash: str) -> bool:
    row = await db.fetch_one(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE token_hash = $1
          AND revoked_at IS NULL
        RETURNING id
        """,
        token_hash,
    )
    return row is not None


async def revoke_all_refresh_tokens_for_user(user_id: int) -> int:
    status_tag = await db.execute(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE user_id = $1
          AND revoked_at IS NULL
        """,
        user_id,
    )
    return db.affected_rows(status_tag)
