"""
Analytics and attribution persistence (raw SQL).

Aggregate tables are keyed by day and updated with `ON CONFLICT ... DO UPDATE`
counters, so every write here is a single statement.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

import asyncpg

from core import db


def _runner(conn: asyncpg.Connection | None) -> Any:
    return conn if conn is not None else db.pool()


async def insert_event(
    *,
    event_type: str,
    event_data: dict[str, Any],
    created_at: datetime,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    row = await db.fetch_one(
        """
        INSERT INTO analytics_events (event_type, event_data, ip_address, user_agent, created_at)
        VALUES ($1, $2::jsonb, $3, $4, $5)
        RETURNING id, created_at
        """,
        event_type,
        db.json_arg(event_data),
        ip_address,
        user_agent,
        created_at,
    )
    if row is None:
        raise RuntimeError("Failed to insert analytics event.")
    return row


async def record_revenue(
    *,
    transaction_id: str,
    model_id: int | None,
    model_title: str | None,
    amount: Decimal,
    customer_email: str | None,
    currency: str = "USD",
    conn: asyncpg.Connection | None = None,
) -> bool:
    """
    Book one transaction and fold it into `daily_revenue`.

    The daily aggregate is only touched when the revenue event is new, so a
    replayed transaction id is counted once. Pass `conn` to join a caller's
    transaction. Returns True when the transaction was new.
    """
    runner = _runner(conn)
    row = await runner.fetchrow(
        """
        INSERT INTO revenue_events (transaction_id, model_id, model_title, amount, currency, customer_email)
        VALUES ($1, $2, $3, $4, $5, $6)
        ON CONFLICT (transaction_id) DO NOTHING
        RETURNING id
        """,
        transaction_id,
        model_id,
        model_title,
        amount,
        currency.upper(),
        customer_email,
    )
    if row is None:
        return False

    await runner.execute(
        """
        INSERT INTO daily_revenue (date, total_revenue, transaction_count, avg_order_value, updated_at)
        VALUES (CURRENT_DATE, $1, 1, $1, now())
        ON CONFLICT (date) DO UPDATE
        SET total_revenue = daily_revenue.total_revenue + EXCLUDED.total_revenue,
            transaction_count = daily_revenue.transaction_count + 1,
            avg_order_value = (daily_revenue.total_revenue + EXCLUDED.total_revenue)
                              / (daily_revenue.transaction_count + 1),
            updated_at = now()
        """,
        amount,
    )
    return True


async def tag_lead_source(*, email: str, source: str, estimated_value: Decimal) -> None:
    await db.execute(
        """
        UPDATE leads
        SET source = $2, estimated_value = $3, updated_at = now()
        WHERE email = $1
          AND source IS NULL
        """,
        email,
        source,
        estimated_value,
    )


async def increment_lead_source(*, source: str, estimated_value: Decimal) -> None:
    await db.execute(
        """
        INSERT INTO lead_sources (source, date, lead_count, total_estimated_value)
        VALUES ($1, CURRENT_DATE, 1, $2)
        ON CONFLICT (source, date) DO UPDATE
        SET lead_count = lead_sources.lead_count + 1,
            total_estimated_value = lead_sources.total_estimated_value + EXCLUDED.total_estimated_value
        """,
        source,
        estimated_value,
    )


async def increment_model_view(
    *,
    model_id: str,
    model_title: str | None,
    price: Decimal,
    category: str | None,
) -> None:
    await db.execute(
        """
        INSERT INTO model_analytics (model_id, date, model_title, category, view_count, total_potential_revenue)
        VALUES ($1, CURRENT_DATE, $2, $3, 1, $4)
        ON CONFLICT (model_id, date) DO UPDATE
        SET view_count = model_analytics.view_count + 1,
            total_potential_revenue = model_analytics.total_potential_revenue + EXCLUDED.total_potential_revenue
        """,
        model_id,
        model_title,
        category,
        price,
    )


async def increment_funnel_step(*, step_name: str, step_number: int) -> None:
    await db.execute(
        """
        INSERT INTO conversion_funnel (step_name, date, step_number, completion_count)
        VALUES ($1, CURRENT_DATE, $2, 1)
        ON CONFLICT (step_name, date) DO UPDATE
        SET completion_count = conversion_funnel.completion_count + 1
        """,
        step_name,
        step_number,
    )


# -- attribution ---------------------------------------------------------


async def insert_attribution_event(
    *,
    event_type: str,
    event_data: dict[str, Any],
    session_id: str | None,
    created_at: datetime,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    row = await db.fetch_one(
        """
        INSERT INTO attribution_events (event_type, event_data, session_id, ip_address, user_agent, created_at)
        VALUES ($1, $2::jsonb, $3, $4, $5, $6)
        RETURNING id, created_at
        """,
        event_type,
        db.json_arg(event_data),
        session_id,
        ip_address,
        user_agent,
        created_at,
    )
    if row is None:
        raise RuntimeError("Failed to insert attribution event.")
    return row


async def insert_conversion(
    *,
    conversion_id: str,
    conversion_type: str | None,
    conversion_value: Decimal,
    session_id: str | None,
    time_to_conversion_ms: int,
    total_touchpoints: int,
    first_touch: dict[str, str],
    last_touch: dict[str, str],
    touchpoints: list[tuple[int, str, str, str, Decimal, Decimal, datetime | None]],
) -> bool:
    """
    Store a conversion and its touchpoints. Returns False for a replayed conversion id.
    """
    async with db.transaction() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO conversions_attributed (
              conversion_id, conversion_type, conversion_value, session_id,
              time_to_conversion_ms, total_touchpoints, first_touch_source,
              first_touch_medium, first_touch_campaign, last_touch_source,
              last_touch_medium
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            ON CONFLICT (conversion_id) DO NOTHING
            RETURNING conversion_id
            """,
            conversion_id,
            conversion_type,
            conversion_value,
            session_id,
            time_to_conversion_ms,
            total_touchpoints,
            first_touch["source"],
            first_touch["medium"],
            first_touch["campaign"],
            last_touch["source"],
            last_touch["medium"],
        )
        if row is None:
            return False

        if touchpoints:
            await conn.executemany(
                """
                INSERT INTO touchpoint_attributions (
                  conversion_id, touchpoint_order, source, medium, campaign,
                  attribution_weight, attributed_value, touchpoint_timestamp
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                """,
                [(conversion_id, *tp) for tp in touchpoints],
            )
        return True


async def add_source_performance(
    *,
    touch: str,
    source: str,
    medium: str,
    campaign: str,
    revenue: Decimal,
) -> None:
    if touch not in ("first", "last"):
        raise ValueError(f"Unknown touch kind: {touch}")
    conversions_col = f"{touch}_touch_conversions"
    revenue_col = f"{touch}_touch_revenue"
    await db.execute(
        f"""
        INSERT INTO source_performance (source, medium, campaign, date, {conversions_col}, {revenue_col})
        VALUES ($1, $2, $3, CURRENT_DATE, 1, $4)
        ON CONFLICT (source, medium, campaign, date) DO UPDATE
        SET {conversions_col} = source_performance.{conversions_col} + 1,
            {revenue_col} = source_performance.{revenue_col} + EXCLUDED.{revenue_col},
            updated_at = now()
        """,
        source,
        medium,
        campaign,
        revenue,
    )


async def track_page_view(*, session_id: str, page: str | None, source: str, medium: str) -> None:
    await db.execute(
        """
        INSERT INTO session_tracking (session_id, first_touch_source, first_touch_medium, page_views, last_page_view)
        VALUES ($1, $2, $3, 1, $4)
        ON CONFLICT (session_id) DO UPDATE
        SET page_views = session_tracking.page_views + 1,
            last_page_view = EXCLUDED.last_page_view,
            updated_at = now()
        """,
        session_id,
        source,
        medium,
        page,
    )


async def insert_campaign_interaction(
    *,
    session_id: str | None,
    event_name: str | None,
    campaign_name: str,
    interaction_data: dict[str, Any],
    first_touch_campaign: str,
) -> None:
    await db.execute(
        """
        INSERT INTO campaign_interactions (
          session_id, event_name, campaign_name, interaction_data, first_touch_campaign
        )
        VALUES ($1, $2, $3, $4::jsonb, $5)
        """,
        session_id,
        event_name,
        campaign_name,
        db.json_arg(interaction_data),
        first_touch_campaign,
    )


# -- dashboards ----------------------------------------------------------


async def revenue_totals() -> dict[str, Any]:
    row = await db.fetch_one(
        """
        SELECT
          COALESCE(sum(amount) FILTER (WHERE created_at::date = CURRENT_DATE), 0) AS today_revenue,
          COALESCE(sum(amount) FILTER (
            WHERE date_trunc('month', created_at) = date_trunc('month', now())
          ), 0) AS month_revenue,
          count(*) FILTER (
            WHERE date_trunc('month', created_at) = date_trunc('month', now())
          )::int AS month_transactions,
          COALESCE(sum(amount), 0) AS total_revenue
        FROM revenue_events
        """
    )
    return row or {}


async def month_visitors() -> int:
    value = await db.fetch_val(
        """
        SELECT count(DISTINCT ip_address)
        FROM analytics_events
        WHERE event_type = 'page_view'
          AND date_trunc('month', created_at) = date_trunc('month', now())
        """
    )
    return int(value or 0)


async def recent_transactions(*, limit: int = 10) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT transaction_id, model_title, amount, customer_email, created_at
        FROM revenue_events
        ORDER BY created_at DESC
        LIMIT $1
        """,
        limit,
    )


async def top_models(*, days: int = 30, limit: int = 5) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT model_title, count(*)::int AS sales, sum(amount) AS revenue, avg(amount) AS avg_price
        FROM revenue_events
        WHERE created_at >= now() - make_interval(days => $1)
        GROUP BY model_title
        ORDER BY revenue DESC
        LIMIT $2
        """,
        days,
        limit,
    )


async def source_totals(*, days: int = 30, limit: int = 10) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT source, medium,
               sum(first_touch_revenue + last_touch_revenue) AS revenue,
               sum(first_touch_conversions + last_touch_conversions)::int AS conversions
        FROM source_performance
        WHERE date >= CURRENT_DATE - $1::int
        GROUP BY source, medium
        ORDER BY revenue DESC
        LIMIT $2
        """,
        days,
        limit,
    )


async def funnel_counts(*, days: int = 7) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT step_name, step_number, sum(completion_count)::int AS count
        FROM conversion_funnel
        WHERE date >= CURRENT_DATE - $1::int
        GROUP BY step_name, step_number
        ORDER BY step_number
        """,
        days,
    )


async def active_visitors() -> int:
    value = await db.fetch_val(
        """
        SELECT count(DISTINCT ip_address)
        FROM analytics_events
        WHERE created_at > now() - interval '1 hour'
        """
    )
    return int(value or 0)


async def attribution_report(*, days: int) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT source, medium,
               sum(first_touch_conversions)::int AS first_touch_conversions,
               sum(first_touch_revenue) AS first_touch_revenue,
               sum(last_touch_conversions)::int AS last_touch_conversions,
               sum(last_touch_revenue) AS last_touch_revenue
        FROM source_performance
        WHERE date >= CURRENT_DATE - $1::int
        GROUP BY source, medium
        ORDER BY sum(first_touch_revenue + last_touch_revenue) DESC
        """,
        days,
    )
