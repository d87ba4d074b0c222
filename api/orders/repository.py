"""
Order and customer persistence (raw SQL).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from analytics import repository as analytics_repository
from core import db

ORDER_COLUMNS = """
    id, stripe_session_id, stripe_payment_intent_id, customer_id, customer_email,
    customer_name, model_id, model_slug, model_title, amount, currency, status,
    download_expires_at, download_count, max_downloads, metadata, created_at,
    updated_at
"""


async def get_order_by_session_id(session_id: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {ORDER_COLUMNS}
        FROM orders
        WHERE stripe_session_id = $1
        LIMIT 1
        """,
        session_id,
    )


async def record_paid_order(
    *,
    session_id: str,
    payment_intent_id: str | None,
    stripe_customer_id: str | None,
    customer_email: str,
    customer_name: str,
    model_id: int | None,
    model_slug: str,
    model_title: str,
    amount: Decimal,
    currency: str,
    download_expires_at: datetime,
    max_downloads: int,
    metadata: dict[str, Any],
) -> tuple[dict[str, Any], bool]:
    """
    Upsert the customer, insert the order and book the revenue in one
    transaction.

    Idempotent on `stripe_session_id`: a replayed session returns the existing
    order with `created=False` and books no revenue.
    Returns (order, created).
    """
    async with db.transaction() as conn:
        customer = await conn.fetchrow(
            """
            INSERT INTO customers (email, name, stripe_customer_id)
            VALUES ($1, NULLIF($2, ''), $3)
            ON CONFLICT (email) DO UPDATE
            SET name = COALESCE(EXCLUDED.name, customers.name),
                stripe_customer_id = COALESCE(customers.stripe_customer_id, EXCLUDED.stripe_customer_id),
                updated_at = now()
            RETURNING id
            """,
            customer_email,
            customer_name,
            stripe_customer_id,
        )
        if customer is None:
            raise RuntimeError("Failed to upsert customer.")

        row = await conn.fetchrow(
            f"""
            INSERT INTO orders (
              stripe_session_id, stripe_payment_intent_id, customer_id,
              customer_email, customer_name, model_id, model_slug, model_title,
              amount, currency, status, download_expires_at, max_downloads, metadata
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, 'completed', $11, $12, $13::jsonb)
            ON CONFLICT (stripe_session_id) DO NOTHING
            RETURNING {ORDER_COLUMNS}
            """,
            session_id,
            payment_intent_id,
            int(customer["id"]),
            customer_email,
            customer_name,
            model_id,
            model_slug,
            model_title,
            amount,
            currency,
            download_expires_at,
            max_downloads,
            db.json_arg(metadata),
        )
        if row is None:
            existing = await conn.fetchrow(
                f"SELECT {ORDER_COLUMNS} FROM orders WHERE stripe_session_id = $1",
                session_id,
            )
            if existing is None:
                raise RuntimeError("Order conflict without an existing row.")
            return dict(existing), False

        await analytics_repository.record_revenue(
            transaction_id=session_id,
            model_id=model_id,
            model_title=model_title,
            amount=amount,
            customer_email=customer_email,
            conn=conn,
        )
        return dict(row), True


async def set_download_expiry(order_id: int, expires_at: datetime) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        UPDATE orders
        SET download_expires_at = $2, updated_at = now()
        WHERE id = $1
          AND download_expires_at IS NULL
        RETURNING {ORDER_COLUMNS}
        """,
        order_id,
        expires_at,
    )


async def mark_refunded(*, payment_intent_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        UPDATE orders
        SET status = 'refunded', updated_at = now()
        WHERE stripe_payment_intent_id = $1
          AND status = 'completed'
        RETURNING {ORDER_COLUMNS}
        """,
        payment_intent_id,
    )


async def list_orders_for_email(email: str, *, limit: int = 100) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {ORDER_COLUMNS}
        FROM orders
        WHERE lower(customer_email) = lower($1)
        ORDER BY created_at DESC, id DESC
        LIMIT $2
        """,
        email,
        limit,
    )


async def get_download_order(order_id: int, email: str) -> dict[str, Any] | None:
    """
    Order owned by `email`, joined with the model's downloadable file urls.
    """
    return await db.fetch_one(
        """
        SELECT o.id, o.status, o.customer_email, o.model_id, o.model_title,
               o.download_expires_at, o.download_count, o.max_downloads,
               m.file_url, m.excel_url
        FROM orders o
        LEFT JOIN models m ON m.id = o.model_id
        WHERE o.id = $1
          AND lower(o.customer_email) = lower($2)
        LIMIT 1
        """,
        order_id,
        email,
    )


async def claim_download(order_id: int) -> dict[str, Any] | None:
    """
    Count one download if the order still allows it. The guard and the
    increment are one statement, so concurrent requests cannot overshoot.
    """
    return await db.fetch_one(
        """
        UPDATE orders
        SET download_count = download_count + 1, updated_at = now()
        WHERE id = $1
          AND status = 'completed'
          AND download_expires_at > now()
          AND download_count < max_downloads
        RETURNING id, download_count, max_downloads
        """,
        order_id,
    )


async def completed_order_stats() -> dict[str, Any]:
    row = await db.fetch_one(
        """
        SELECT count(*)::int AS orders, COALESCE(sum(amount), 0) AS revenue
        FROM orders
        WHERE status = 'completed'
        """
    )
    row = row or {}
    return {"orders": int(row.get("orders") or 0), "revenue": float(row.get("revenue") or 0)}


async def get_customer_by_email(email: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        SELECT id, email, name, stripe_customer_id
        FROM customers
        WHERE lower(email) = lower($1)
        LIMIT 1
        """,
        email,
    )
