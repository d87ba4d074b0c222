"""
Catalog persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

from core import db

MODEL_COLUMNS = """
    id, slug, title, description, category, thumbnail_url, file_url, excel_url,
    price, status, tags, published_at, created_at, updated_at
"""

# Columns an admin may change through a partial update.
UPDATABLE_COLUMNS = (
    "title",
    "description",
    "category",
    "thumbnail_url",
    "file_url",
    "excel_url",
    "price",
    "status",
    "tags",
)


async def list_active_models(*, category: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {MODEL_COLUMNS}
        FROM models
        WHERE status = 'active'
          AND ($1::text IS NULL OR category = $1)
        ORDER BY published_at DESC NULLS LAST, id DESC
        LIMIT $2
        """,
        category,
        limit,
    )


async def get_model_by_slug(slug: str, *, active_only: bool = True) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {MODEL_COLUMNS}
        FROM models
        WHERE slug = $1
          AND ($2 = false OR status = 'active')
        LIMIT 1
        """,
        slug,
        active_only,
    )


async def get_model_by_id(model_id: int, *, active_only: bool = True) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {MODEL_COLUMNS}
        FROM models
        WHERE id = $1
          AND ($2 = false OR status = 'active')
        LIMIT 1
        """,
        model_id,
        active_only,
    )


async def count_by_category() -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT COALESCE(category, 'uncategorized') AS category, count(*)::int AS count
        FROM models
        WHERE status = 'active'
        GROUP BY COALESCE(category, 'uncategorized')
        ORDER BY category ASC
        """
    )


async def insert_model(fields: dict[str, Any]) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        INSERT INTO models (
          slug, title, description, category, thumbnail_url, file_url,
          excel_url, price, status, tags
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
        RETURNING {MODEL_COLUMNS}
        """,
        fields["slug"],
        fields["title"],
        fields.get("description"),
        fields.get("category"),
        fields.get("thumbnail_url"),
        fields.get("file_url"),
        fields.get("excel_url"),
        fields.get("price"),
        fields.get("status") or "active",
        fields.get("tags"),
    )
    if row is None:
        raise RuntimeError("Failed to insert model.")
    return row


async def update_model(slug: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    columns = [name for name in UPDATABLE_COLUMNS if name in fields]
    if not columns:
        return await get_model_by_slug(slug, active_only=False)

    assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(columns, start=2))
    return await db.fetch_one(
        f"""
        UPDATE models
        SET {assignments}, updated_at = now()
        WHERE slug = $1
        RETURNING {MODEL_COLUMNS}
        """,
        slug,
        *[fields[name] for name in columns],
    )


async def delete_model(slug: str) -> int | None:
    row = await db.fetch_one("DELETE FROM models WHERE slug = $1 RETURNING id", slug)
    if row is None:
        return None
    return int(row["id"])


async def count_active_models() -> int:
    value = await db.fetch_val("SELECT count(*) FROM models WHERE status = 'active'")
    return int(value or 0)
