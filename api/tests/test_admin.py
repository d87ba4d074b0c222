"""
Admin overview and schema maintenance.
"""

from decimal import Decimal

from catalog import repository as catalog_repository
from core import schema
from insights import repository as insights_repository
from leads import repository as leads_repository
from orders import repository as orders_repository


def test_overview_counts(admin_client, monkeypatch):
    async def lead_counts():
        return {"total": 12, "new": 4}

    async def count_active_subscribers():
        return 30

    async def completed_order_stats():
        return {"orders": 3, "revenue": Decimal("14955.00")}

    async def count_published():
        return 8

    async def count_active_models():
        return 5

    monkeypatch.setattr(leads_repository, "lead_counts", lead_counts)
    monkeypatch.setattr(leads_repository, "count_active_subscribers", count_active_subscribers)
    monkeypatch.setattr(orders_repository, "completed_order_stats", completed_order_stats)
    monkeypatch.setattr(insights_repository, "count_published", count_published)
    monkeypatch.setattr(catalog_repository, "count_active_models", count_active_models)

    resp = admin_client.get("/admin/overview")
    assert resp.status_code == 200
    assert resp.json() == {
        "leads": {"total": 12, "new": 4},
        "subscribers": 30,
        "orders": {"completed": 3, "revenue": 14955.0},
        "insights": {"published": 8},
        "models": {"active": 5},
    }


def test_init_db_applies_schema(admin_client, monkeypatch, audit_events):
    async def fake_ensure_schema():
        return len(schema.STATEMENTS)

    monkeypatch.setattr(schema, "ensure_schema", fake_ensure_schema)
    resp = admin_client.post("/admin/init-db")
    assert resp.status_code == 200
    body = resp.json()
    assert body["statements"] == len(schema.STATEMENTS)
    assert {"orders", "monitoring_alerts", "security_audit_logs"} <= set(body["tables"])
    assert audit_events[0][0] == "SCHEMA_APPLIED"


def test_schema_lists_every_table():
    names = schema.table_names()
    assert len(names) == len(set(names))
    assert {"users", "models", "insights", "leads", "revenue_events", "error_patterns"} <= set(names)
