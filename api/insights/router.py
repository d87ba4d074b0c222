"""
Insight API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from auth import dependencies as auth_dependencies

from . import schemas, service

router = APIRouter()


@router.get("/insights")
async def list_insights(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> dict:
    return await service.list_published(limit=limit, offset=offset)


@router.get("/insights/{slug}")
async def get_insight(slug: str) -> dict:
    return await service.get_published(slug)


@router.get("/admin/insights")
async def list_all_insights(
    status: schemas.InsightStatus | None = None,
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.list_for_admin(status_filter=status)


@router.post("/insights", status_code=201)
async def create_insight(
    payload: schemas.InsightCreateRequest,
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.create_insight(payload)


@router.put("/insights/{slug}")
async def update_insight(
    slug: str,
    payload: schemas.InsightUpdateRequest,
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.update_insight(slug, payload)


@router.delete("/insights/{slug}", status_code=204)
async def delete_insight(
    slug: str,
    _: dict = Depends(auth_dependencies.require_admin),
) -> Response:
    await service.delete_insight(slug)
    return Response(status_code=204)
