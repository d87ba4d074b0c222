"""
Lead, subscriber and form submission persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

from core import db

LEAD_COLUMNS = """
    id, name, email, company, interest, message, status, source,
    estimated_value, created_at, updated_at
"""


async def upsert_lead(
    *,
    name: str,
    email: str,
    company: str | None,
    interest: str,
    message: str,
    source: str | None,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    """
    One lead per email; a repeat submission refreshes the stored details.
    """
    row = await db.fetch_one(
        f"""
        INSERT INTO leads (name, email, company, interest, message, source, ip_address, user_agent)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        ON CONFLICT (email) DO UPDATE
        SET name = EXCLUDED.name,
            company = COALESCE(EXCLUDED.company, leads.company),
            interest = EXCLUDED.interest,
            message = EXCLUDED.message,
            source = COALESCE(EXCLUDED.source, leads.source),
            ip_address = EXCLUDED.ip_address,
            user_agent = EXCLUDED.user_agent,
            updated_at = now()
        RETURNING {LEAD_COLUMNS}
        """,
        name,
        email,
        company,
        interest,
        message,
        source,
        ip_address,
        user_agent,
    )
    if row is None:
        raise RuntimeError("Failed to upsert lead.")
    return row


async def upsert_subscriber(
    *,
    email: str,
    source: str,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    row = await db.fetch_one(
        """
        INSERT INTO newsletter_subscribers (email, source, ip_address, user_agent)
        VALUES ($1, $2, $3, $4)
        ON CONFLICT (email) DO UPDATE
        SET status = 'active',
            ip_address = EXCLUDED.ip_address,
            user_agent = EXCLUDED.user_agent,
            updated_at = now()
        RETURNING id, email, status, source, created_at, updated_at
        """,
        email,
        source,
        ip_address,
        user_agent,
    )
    if row is None:
        raise RuntimeError("Failed to upsert newsletter subscriber.")
    return row


async def unsubscribe(email: str) -> bool:
    row = await db.fetch_one(
        """
        UPDATE newsletter_subscribers
        SET status = 'unsubscribed', updated_at = now()
        WHERE email = $1
          AND status = 'active'
        RETURNING id
        """,
        email,
    )
    return row is not None


async def insert_form_submission(
    *,
    form_type: str,
    form_data: dict[str, Any] | None,
    ip_address: str | None,
    user_agent: str | None,
    status: str = "success",
    error_message: str | None = None,
) -> None:
    await db.execute(
        """
        INSERT INTO form_submissions (form_type, form_data, ip_address, user_agent, status, error_message)
        VALUES ($1, $2::jsonb, $3, $4, $5, $6)
        """,
        form_type,
        db.json_arg(form_data),
        ip_address,
        user_agent,
        status,
        error_message,
    )


async def list_leads(*, status: str | None = None, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {LEAD_COLUMNS}
        FROM leads
        WHERE ($1::text IS NULL OR status = $1)
        ORDER BY created_at DESC, id DESC
        LIMIT $2
        OFFSET $3
        """,
        status,
        limit,
        offset,
    )


async def update_lead_status(lead_id: int, status: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        UPDATE leads
        SET status = $2, updated_at = now()
        WHERE id = $1
        RETURNING {LEAD_COLUMNS}
        """,
        lead_id,
        status,
    )


async def count_active_subscribers() -> int:
    value = await db.fetch_val("SELECT count(*) FROM newsletter_subscribers WHERE status = 'active'")
    return int(value or 0)


async def lead_counts() -> dict[str, int]:
    row = await db.fetch_one(
        """
        SELECT count(*)::int AS total,
               count(*) FILTER (WHERE status = 'new')::int AS new
        FROM leads
        """
    )
    row = row or {}
    return {"total": int(row.get("total") or 0), "new": int(row.get("new") or 0)}
