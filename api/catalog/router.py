"""
Catalog API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from auth import dependencies as auth_dependencies

from . import schemas, service

router = APIRouter()


@router.get("/models")
async def list_models(
    category: str | None = Query(default=None, max_length=100),
    limit: int = Query(50, ge=1, le=200),
) -> dict:
    return await service.list_models(category=category, limit=limit)


# Declared before /models/{slug} so "counts" is not taken as a slug.
@router.get("/models/counts")
async def model_counts() -> dict:
    return await service.category_counts()


@router.get("/models/{slug}")
async def get_model(slug: str) -> dict:
    return await service.get_model(slug)


@router.post("/models", status_code=201)
async def create_model(
    payload: schemas.ModelCreateRequest,
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    model = await service.create_model(payload)
    return {"model": model}


@router.put("/models/{slug}")
async def update_model(
    slug: str,
    payload: schemas.ModelUpdateRequest,
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    model = await service.update_model(slug, payload)
    return {"model": model}


@router.delete("/models/{slug}")
async def delete_model(
    slug: str,
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.delete_model(slug)
