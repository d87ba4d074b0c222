"""
Admin overview and maintenance.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from audit import service as audit_service
from catalog import repository as catalog_repository
from core import schema
from insights import repository as insights_repository
from leads import repository as leads_repository
from orders import repository as orders_repository

logger = logging.getLogger(__name__)


async def overview() -> dict[str, Any]:
    leads = await leads_repository.lead_counts()
    order_stats = await orders_repository.completed_order_stats()
    revenue = order_stats.get("revenue") or Decimal("0")
    return {
        "leads": {"total": int(leads.get("total") or 0), "new": int(leads.get("new") or 0)},
        "subscribers": await leads_repository.count_active_subscribers(),
        "orders": {
            "completed": int(order_stats.get("orders") or 0),
            "revenue": float(revenue),
        },
        "insights": {"published": await insights_repository.count_published()},
        "models": {"active": await catalog_repository.count_active_models()},
    }


async def init_db(*, user_id: int) -> dict[str, Any]:
    applied = await schema.ensure_schema()
    await audit_service.record(
        "SCHEMA_APPLIED",
        user_id=user_id,
        resource_type="database",
        action="init",
        metadata={"statements": applied},
    )
    return {"success": True, "statements": applied, "tables": schema.table_names()}
