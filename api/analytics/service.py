"""
Analytics business logic.

Scope:
- raw event ingestion with per-type aggregates (revenue, lead sources,
  model views, conversion funnel)
- attribution ingestion (conversions with touchpoints, first/last-touch
  source performance, session page views, campaign interactions)
- revenue dashboard and attribution report

Aggregates are side effects of ingestion: their failures are logged and the
raw event is still acknowledged.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from fastapi import HTTPException

from . import repository, schemas

logger = logging.getLogger(__name__)

DEFAULT_LEAD_VALUE = Decimal("500")
# Share of the conversion value credited to a touch that carries no explicit value.
FALLBACK_TOUCH_SHARE = Decimal("0.4")
UNKNOWN = "unknown"


def _pick(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value in (None, ""):
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def parse_timestamp(value: str | int | float) -> datetime:
    """
    ISO-8601 strings or epoch milliseconds (what the browser's Date gives us).
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)

    text = str(value).strip()
    if text.isdigit():
        return datetime.fromtimestamp(int(text) / 1000.0, tz=timezone.utc)
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _validate(payload: schemas.TrackedEventRequest) -> tuple[str, dict[str, Any], datetime]:
    if not payload.event_type or payload.event_data is None or payload.timestamp in (None, ""):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: eventType, eventData, timestamp",
        )
    try:
        created_at = parse_timestamp(payload.timestamp)
    except (ValueError, OverflowError, OSError) as exc:
        raise HTTPException(status_code=400, detail="Invalid timestamp.") from exc
    return payload.event_type, payload.event_data, created_at


# -- events --------------------------------------------------------------


async def _on_purchase(data: dict[str, Any]) -> None:
    transaction_id = _pick(data, "transactionId", "transaction_id")
    amount = to_decimal(_pick(data, "amount"))
    if not transaction_id or amount <= 0:
        logger.warning("purchase_event_incomplete transaction_id=%s", transaction_id)
        return

    raw_model_id = str(_pick(data, "modelId", "model_id") or "")
    await repository.record_revenue(
        transaction_id=str(transaction_id),
        model_id=int(raw_model_id) if raw_model_id.isdigit() else None,
        model_title=_pick(data, "modelTitle", "model_title"),
        amount=amount,
        customer_email=_pick(data, "customerEmail", "customer_email"),
    )


async def _on_lead(data: dict[str, Any]) -> None:
    source = str(_pick(data, "source") or "website")
    value = to_decimal(_pick(data, "estimatedValue", "estimated_value"), DEFAULT_LEAD_VALUE)
    email = _pick(data, "email")
    if email:
        await repository.tag_lead_source(email=str(email).strip().lower(), source=source, estimated_value=value)
    await repository.increment_lead_source(source=source, estimated_value=value)


async def _on_model_view(data: dict[str, Any]) -> None:
    model_id = _pick(data, "modelId", "model_id")
    if model_id is None:
        return
    await repository.increment_model_view(
        model_id=str(model_id),
        model_title=_pick(data, "modelTitle", "model_title"),
        price=to_decimal(_pick(data, "modelPrice", "model_price")),
        category=_pick(data, "modelCategory", "model_category"),
    )


async def _on_funnel_step(data: dict[str, Any]) -> None:
    step = _pick(data, "step", "step_name")
    if not step:
        return
    try:
        step_number = int(_pick(data, "stepNumber", "step_number") or 0)
    except (TypeError, ValueError):
        step_number = 0
    await repository.increment_funnel_step(step_name=str(step), step_number=step_number)


EVENT_HANDLERS = {
    "purchase_completed": _on_purchase,
    "lead_generated": _on_lead,
    "model_view": _on_model_view,
    "funnel_step": _on_funnel_step,
}


async def ingest_event(
    payload: schemas.TrackedEventRequest,
    *,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    event_type, event_data, created_at = _validate(payload)
    row = await repository.insert_event(
        event_type=event_type,
        event_data=event_data,
        created_at=created_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    handler = EVENT_HANDLERS.get(event_type)
    if handler is not None:
        try:
            await handler(event_data)
        except Exception:
            logger.exception("analytics_aggregate_failed event_type=%s event_id=%s", event_type, row["id"])

    return {"success": True, "event_id": int(row["id"]), "timestamp": row["created_at"]}


# -- attribution ---------------------------------------------------------


def _touch(data: Any) -> dict[str, str]:
    data = data if isinstance(data, dict) else {}
    return {
        "source": str(data.get("source") or UNKNOWN),
        "medium": str(data.get("medium") or UNKNOWN),
        "campaign": str(data.get("campaign") or UNKNOWN),
    }


def touch_revenue(touch: dict[str, Any] | None, conversion_value: Decimal) -> Decimal:
    explicit = to_decimal((touch or {}).get("attributedValue"))
    if explicit > 0:
        return explicit
    return conversion_value * FALLBACK_TOUCH_SHARE


def _touchpoint_rows(touchpoints: Any) -> list[tuple[int, str, str, str, Decimal, Decimal, datetime | None]]:
    rows = []
    for i, tp in enumerate(touchpoints if isinstance(touchpoints, list) else []):
        if not isinstance(tp, dict):
            continue
        ts = tp.get("timestamp")
        try:
            touched_at = parse_timestamp(ts) if ts not in (None, "") else None
        except (ValueError, OverflowError, OSError):
            touched_at = None
        touch = _touch(tp)
        rows.append(
            (
                int(tp.get("order") or i),
                touch["source"],
                touch["medium"],
                touch["campaign"],
                to_decimal(tp.get("attributionWeight")),
                to_decimal(tp.get("attributedValue")),
                touched_at,
            )
        )
    return rows


async def _on_conversion(data: dict[str, Any]) -> None:
    conversion_id = _pick(data, "conversionId", "conversion_id")
    if not conversion_id:
        logger.warning("conversion_event_without_id")
        return

    value = to_decimal(_pick(data, "conversionValue", "conversion_value"))
    first_raw = data.get("firstTouch")
    last_raw = data.get("lastTouch")
    first, last = _touch(first_raw), _touch(last_raw)

    created = await repository.insert_conversion(
        conversion_id=str(conversion_id),
        conversion_type=_pick(data, "conversionType", "conversion_type"),
        conversion_value=value,
        session_id=_pick(data, "sessionId", "session_id"),
        time_to_conversion_ms=int(_pick(data, "timeToConversion") or 0),
        total_touchpoints=int(_pick(data, "totalTouchpoints") or 1),
        first_touch=first,
        last_touch=last,
        touchpoints=_touchpoint_rows(data.get("touchpoints")),
    )
    if not created:
        logger.info("conversion_replayed conversion_id=%s", conversion_id)
        return

    if isinstance(first_raw, dict):
        await repository.add_source_performance(touch="first", revenue=touch_revenue(first_raw, value), **first)
    if isinstance(last_raw, dict):
        await repository.add_source_performance(touch="last", revenue=touch_revenue(last_raw, value), **last)


async def _on_page_view(data: dict[str, Any]) -> None:
    session_id = _pick(data, "sessionId", "session_id")
    if not session_id:
        return
    await repository.track_page_view(
        session_id=str(session_id),
        page=_pick(data, "page"),
        source=str(_pick(data, "firstTouchSource") or UNKNOWN),
        medium=str(_pick(data, "firstTouchMedium") or UNKNOWN),
    )


async def _on_campaign_event(data: dict[str, Any]) -> None:
    campaign_data = data.get("campaignData") if isinstance(data.get("campaignData"), dict) else {}
    await repository.insert_campaign_interaction(
        session_id=_pick(data, "sessionId", "session_id"),
        event_name=_pick(data, "eventName", "event_name"),
        campaign_name=str(campaign_data.get("campaign") or UNKNOWN),
        interaction_data=campaign_data,
        first_touch_campaign=str(_pick(data, "firstTouchCampaign") or UNKNOWN),
    )


ATTRIBUTION_HANDLERS = {
    "conversion": _on_conversion,
    "page_view": _on_page_view,
    "campaign_event": _on_campaign_event,
}


async def ingest_attribution(
    payload: schemas.TrackedEventRequest,
    *,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    event_type, event_data, created_at = _validate(payload)
    session_id = _pick(event_data, "sessionId", "session_id")
    row = await repository.insert_attribution_event(
        event_type=event_type,
        event_data=event_data,
        session_id=str(session_id) if session_id else None,
        created_at=created_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    handler = ATTRIBUTION_HANDLERS.get(event_type)
    if handler is not None:
        try:
            await handler(event_data)
        except Exception:
            logger.exception("attribution_aggregate_failed event_type=%s event_id=%s", event_type, row["id"])

    return {"success": True, "event_id": int(row["id"]), "timestamp": row["created_at"]}


# -- dashboards ----------------------------------------------------------


def funnel_steps(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Percentages are relative to the busiest step, not to step 1.
    """
    top = max((int(row["count"] or 0) for row in rows), default=0)
    return [
        {
            "step_name": str(row["step_name"]).replace("_", " ").upper(),
            "step_number": int(row["step_number"] or 0),
            "count": int(row["count"] or 0),
            "percentage": (int(row["count"] or 0) / top * 100) if top > 0 else 0.0,
        }
        for row in rows
    ]


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


async def revenue_dashboard() -> dict[str, Any]:
    totals = await repository.revenue_totals()
    visitors = await repository.month_visitors()
    month_revenue = float(totals.get("month_revenue") or 0)
    month_transactions = int(totals.get("month_transactions") or 0)

    sources = []
    for row in await repository.source_totals(days=30):
        revenue = float(row["revenue"] or 0)
        conversions = int(row["conversions"] or 0)
        sources.append(
            {
                "source": row["source"],
                "medium": row["medium"],
                "revenue": revenue,
                "conversions": conversions,
                "avg_order_value": _ratio(revenue, conversions),
            }
        )

    return {
        "success": True,
        "dashboard": {
            "today_revenue": float(totals.get("today_revenue") or 0),
            "month_revenue": month_revenue,
            "total_revenue": float(totals.get("total_revenue") or 0),
            "conversion_rate": _ratio(month_transactions, visitors),
            "avg_order_value": _ratio(month_revenue, month_transactions),
            "active_visitors": await repository.active_visitors(),
            "recent_transactions": [
                {**row, "amount": float(row["amount"] or 0)}
                for row in await repository.recent_transactions(limit=10)
            ],
            "top_models": [
                {
                    "title": row["model_title"],
                    "sales": int(row["sales"] or 0),
                    "revenue": float(row["revenue"] or 0),
                    "avg_price": float(row["avg_price"] or 0),
                }
                for row in await repository.top_models(days=30)
            ],
            "source_performance": sources,
            "funnel": funnel_steps(await repository.funnel_counts(days=7)),
        },
        "last_updated": datetime.now(timezone.utc),
    }


async def attribution_report(*, days: int) -> dict[str, Any]:
    rows = await repository.attribution_report(days=days)
    sources = [
        {
            "source": row["source"],
            "medium": row["medium"],
            "first_touch_conversions": int(row["first_touch_conversions"] or 0),
            "first_touch_revenue": float(row["first_touch_revenue"] or 0),
            "last_touch_conversions": int(row["last_touch_conversions"] or 0),
            "last_touch_revenue": float(row["last_touch_revenue"] or 0),
        }
        for row in rows
    ]
    return {"days": days, "sources": sources, "count": len(sources)}
