"""
Admin API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from auth import dependencies as auth_dependencies

from . import service

router = APIRouter(prefix="/admin")


@router.get("/overview")
async def overview(_: dict = Depends(auth_dependencies.require_admin)) -> dict:
    return await service.overview()


@router.post("/init-db")
async def init_db(current_user: dict = Depends(auth_dependencies.require_admin)) -> dict:
    return await service.init_db(user_id=int(current_user["id"]))
