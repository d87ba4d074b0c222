"""
Insight persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

from core import db

INSIGHT_COLUMNS = """
    id, slug, title, summary, content, author, cover_image_url, status, tags,
    published_at, created_at, updated_at
"""

UPDATABLE_COLUMNS = ("title", "summary", "content", "author", "cover_image_url", "status", "tags")


async def list_published(*, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {INSIGHT_COLUMNS}
        FROM insights
        WHERE status = 'published'
        ORDER BY published_at DESC NULLS LAST, id DESC
        LIMIT $1
        OFFSET $2
        """,
        limit,
        offset,
    )


async def list_all(*, status: str | None = None) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {INSIGHT_COLUMNS}
        FROM insights
        WHERE ($1::text IS NULL OR status = $1)
        ORDER BY published_at DESC NULLS LAST, created_at DESC
        """,
        status,
    )


async def get_by_slug(slug: str, *, published_only: bool = True) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {INSIGHT_COLUMNS}
        FROM insights
        WHERE slug = $1
          AND ($2 = false OR status = 'published')
        LIMIT 1
        """,
        slug,
        published_only,
    )


async def insert_insight(fields: dict[str, Any]) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        INSERT INTO insights (
          slug, title, summary, content, author, cover_image_url, status, tags,
          published_at
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, CASE WHEN $7 = 'published' THEN now() END)
        RETURNING {INSIGHT_COLUMNS}
        """,
        fields["slug"],
        fields["title"],
        fields["summary"],
        fields["content"],
        fields["author"],
        fields["cover_image_url"],
        fields["status"],
        fields["tags"],
    )
    if row is None:
        raise RuntimeError("Failed to insert insight.")
    return row


async def update_insight(slug: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    columns = [name for name in UPDATABLE_COLUMNS if name in fields]
    if not columns:
        return await get_by_slug(slug, published_only=False)

    assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(columns, start=2))
    # SET expressions see the old row, so compare against the new status parameter.
    new_status = f"${columns.index('status') + 2}::text" if "status" in columns else "status"
    return await db.fetch_one(
        f"""
        UPDATE insights
        SET {assignments},
            published_at = CASE
              WHEN published_at IS NULL AND {new_status} = 'published' THEN now()
              ELSE published_at
            END,
            updated_at = now()
        WHERE slug = $1
        RETURNING {INSIGHT_COLUMNS}
        """,
        slug,
        *[fields[name] for name in columns],
    )


async def delete_insight(slug: str) -> bool:
    row = await db.fetch_one("DELETE FROM insights WHERE slug = $1 RETURNING id", slug)
    return row is not None


async def count_published() -> int:
    value = await db.fetch_val("SELECT count(*) FROM insights WHERE status = 'published'")
    return int(value or 0)
