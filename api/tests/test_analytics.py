"""
Analytics ingestion and attribution.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from analytics import repository as analytics_repository
from analytics import service


class TestParseTimestamp:
    def test_epoch_milliseconds(self):
        assert service.parse_timestamp(1700000000000) == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_iso_with_z_suffix(self):
        assert service.parse_timestamp("2024-03-01T12:00:00Z") == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            service.parse_timestamp("yesterday")


def test_touch_revenue_prefers_explicit_value():
    assert service.touch_revenue({"attributedValue": 120}, Decimal("1000")) == Decimal("120")
    assert service.touch_revenue({}, Decimal("1000")) == Decimal("400.0")


def test_funnel_percentages_are_relative_to_busiest_step():
    steps = service.funnel_steps(
        [
            {"step_name": "landing_view", "step_number": 1, "count": 200},
            {"step_name": "checkout_start", "step_number": 2, "count": 50},
        ]
    )
    assert steps[0] == {"step_name": "LANDING VIEW", "step_number": 1, "count": 200, "percentage": 100.0}
    assert steps[1]["percentage"] == 25.0


@pytest.fixture
def stored_events(monkeypatch):
    events = []

    async def fake_insert_event(**fields):
        events.append(fields)
        return {"id": len(events), "created_at": fields["created_at"]}

    monkeypatch.setattr(analytics_repository, "insert_event", fake_insert_event)
    return events


class TestEventEndpoint:
    def test_missing_fields_is_400(self, client):
        resp = client.post("/analytics/events", json={"eventType": "model_view"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Missing required fields: eventType, eventData, timestamp"

    def test_invalid_timestamp_is_400(self, client):
        resp = client.post("/analytics/events", json={"eventType": "x", "eventData": {}, "timestamp": "soon"})
        assert resp.status_code == 400

    def test_purchase_books_revenue(self, client, monkeypatch, stored_events):
        revenue = []

        async def fake_record_revenue(**fields):
            revenue.append(fields)
            return True

        monkeypatch.setattr(analytics_repository, "record_revenue", fake_record_revenue)
        resp = client.post(
            "/analytics/events",
            json={
                "eventType": "purchase_completed",
                "eventData": {"transactionId": "cs_1", "amount": "4985", "modelId": "7"},
                "timestamp": 1700000000000,
            },
        )
        assert resp.status_code == 200
        assert resp.json()["event_id"] == 1
        assert revenue[0]["transaction_id"] == "cs_1"
        assert revenue[0]["amount"] == Decimal("4985")
        assert revenue[0]["model_id"] == 7

    def test_aggregate_failure_does_not_fail_request(self, client, monkeypatch, stored_events):
        async def failing_increment(**fields):
            raise RuntimeError("db down")

        monkeypatch.setattr(analytics_repository, "increment_model_view", failing_increment)
        resp = client.post(
            "/analytics/events",
            json={"event_type": "model_view", "event_data": {"modelId": 3}, "timestamp": "2024-01-01T00:00:00Z"},
        )
        assert resp.status_code == 200


class TestAttributionEndpoint:
    def test_conversion_credits_first_and_last_touch(self, client, monkeypatch):
        performance = []

        async def fake_insert_attribution_event(**fields):
            return {"id": 1, "created_at": fields["created_at"]}

        async def fake_insert_conversion(**fields):
            assert fields["total_touchpoints"] == 2
            assert len(fields["touchpoints"]) == 2
            return True

        async def fake_add_source_performance(**fields):
            performance.append(fields)

        monkeypatch.setattr(analytics_repository, "insert_attribution_event", fake_insert_attribution_event)
        monkeypatch.setattr(analytics_repository, "insert_conversion", fake_insert_conversion)
        monkeypatch.setattr(analytics_repository, "add_source_performance", fake_add_source_performance)

        resp = client.post(
            "/analytics/attribution",
            json={
                "eventType": "conversion",
                "timestamp": 1700000000000,
                "eventData": {
                    "conversionId": "conv_1",
                    "conversionValue": 1000,
                    "totalTouchpoints": 2,
                    "firstTouch": {"source": "google", "medium": "organic"},
                    "lastTouch": {"source": "newsletter", "medium": "email", "attributedValue": 600},
                    "touchpoints": [
                        {"source": "google", "medium": "organic", "timestamp": 1699990000000},
                        {"source": "newsletter", "medium": "email", "timestamp": 1700000000000},
                    ],
                },
            },
        )
        assert resp.status_code == 200
        assert [(p["touch"], p["source"], p["revenue"]) for p in performance] == [
            ("first", "google", Decimal("400.0")),
            ("last", "newsletter", Decimal("600")),
        ]

    def test_dashboard_requires_admin(self, client):
        assert client.get("/analytics/revenue-dashboard").status_code == 401
