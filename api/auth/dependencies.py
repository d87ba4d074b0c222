"""
Auth dependencies for protected FastAPI routes.

Routes depend on `get_current_user` for any signed-in account, or on a role
guard built by `require_roles` (`require_admin` for the back office).
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header, HTTPException, status

from . import security, service


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def parse_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise _unauthorized("Authentication required.")

    scheme, _, token = raw.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Authorization must be: Bearer <token>.")
    return token.strip()


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return parse_bearer_token(authorization)


async def get_current_user(access_token: str = Depends(get_bearer_token)) -> dict:
    return await service.get_user_from_access_token(access_token)


def require_roles(*roles: str) -> Callable:
    """
    Dependency factory: `Depends(require_roles("admin"))`.
    """
    unknown = set(roles) - set(security.ROLES)
    if unknown:
        raise ValueError(f"Unknown roles: {sorted(unknown)}")

    async def dependency(current_user: dict = Depends(get_current_user)) -> dict:
        if not security.has_role(current_user.get("role"), roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions.",
            )
        return current_user

    return dependency


require_admin = require_roles("admin")
