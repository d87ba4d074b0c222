"""
Insight business logic.
"""

from __future__ import annotations

import logging
from typing import Any

import asyncpg
from fastapi import HTTPException, status

from . import repository, schemas

logger = logging.getLogger(__name__)


async def list_published(*, limit: int, offset: int) -> dict[str, Any]:
    rows = await repository.list_published(limit=limit, offset=offset)
    return {"insights": rows, "count": len(rows)}


async def get_published(slug: str) -> dict[str, Any]:
    row = await repository.get_by_slug(slug)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Insight not found.")
    return row


async def list_for_admin(*, status_filter: str | None) -> dict[str, Any]:
    rows = await repository.list_all(status=status_filter)
    return {"insights": rows, "count": len(rows)}


async def create_insight(payload: schemas.InsightCreateRequest) -> dict[str, Any]:
    try:
        row = await repository.insert_insight(payload.model_dump())
    except asyncpg.UniqueViolationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Insight slug already exists.") from exc
    logger.info("insight_created slug=%s status=%s", row["slug"], row["status"])
    return row


async def update_insight(slug: str, payload: schemas.InsightUpdateRequest) -> dict[str, Any]:
    # Explicit nulls mean "leave unchanged".
    fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    row = await repository.update_insight(slug, fields)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Insight not found.")
    logger.info("insight_updated slug=%s status=%s", slug, row["status"])
    return row


async def delete_insight(slug: str) -> None:
    if not await repository.delete_insight(slug):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Insight not found.")
    logger.info("insight_deleted slug=%s", slug)
