"""
Catalog business logic.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

import asyncpg
from fastapi import HTTPException, status

from . import repository, schemas

logger = logging.getLogger(__name__)


def to_model(row: dict[str, Any]) -> dict[str, Any]:
    model = dict(row)
    price = model.get("price")
    if isinstance(price, Decimal):
        model["price"] = float(price)
    return model


async def list_models(*, category: str | None, limit: int) -> dict[str, Any]:
    category = (category or "").strip() or None
    rows = await repository.list_active_models(category=category, limit=limit)
    models = [to_model(row) for row in rows]
    return {"models": models, "total": len(models), "category": category or "all"}


async def get_model(slug: str) -> dict[str, Any]:
    row = await repository.get_model_by_slug(slug)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Model not found.")
    return to_model(row)


async def category_counts() -> dict[str, Any]:
    rows = await repository.count_by_category()
    counts = {str(row["category"]): int(row["count"]) for row in rows}
    return {"counts": counts, "total": sum(counts.values())}


async def create_model(payload: schemas.ModelCreateRequest) -> dict[str, Any]:
    if await repository.get_model_by_slug(payload.slug, active_only=False) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Model slug already exists.")

    try:
        row = await repository.insert_model(payload.model_dump())
    except asyncpg.UniqueViolationError as exc:
        # Lost a race with a concurrent insert of the same slug.
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Model slug already exists.") from exc

    logger.info("model_created slug=%s id=%s", row["slug"], row["id"])
    return to_model(row)


async def update_model(slug: str, payload: schemas.ModelUpdateRequest) -> dict[str, Any]:
    fields = payload.model_dump(exclude_unset=True)
    row = await repository.update_model(slug, fields)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Model not found.")
    logger.info("model_updated slug=%s fields=%s", slug, ",".join(sorted(fields)))
    return to_model(row)


async def delete_model(slug: str) -> dict[str, Any]:
    deleted_id = await repository.delete_model(slug)
    if deleted_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Model not found.")
    logger.info("model_deleted slug=%s id=%s", slug, deleted_id)
    return {"deleted": True, "id": deleted_id}
