"""
Checkout session creation and the payment webhook.
"""

import json
import time
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from catalog import repository as catalog_repository
from checkout import service as checkout_service
from core import stripe
from orders import repository as orders_repository
from orders import service as orders_service

MODEL = {
    "id": 7,
    "slug": "saas-dcf",
    "title": "SaaS DCF Model",
    "price": Decimal("4985.00"),
    "thumbnail_url": "/images/models/saas.jpg",
    "status": "active",
}


def _order_row(**overrides):
    row = {
        "id": 11,
        "stripe_session_id": "cs_test_1",
        "customer_email": "buyer@example.com",
        "customer_name": "Ada Buyer",
        "model_id": 7,
        "model_slug": "saas-dcf",
        "model_title": "SaaS DCF Model",
        "amount": Decimal("4985.00"),
        "currency": "usd",
        "status": "completed",
        "metadata": "{}",
        "download_expires_at": datetime(2030, 1, 1, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


def _webhook(client, event: dict, secret: str = "whsec_test"):
    body = json.dumps(event).encode()
    ts = int(time.time())
    header = f"t={ts},v1={stripe.compute_signature(body, timestamp=ts, secret=secret)}"
    return client.post(
        "/stripe/webhook",
        content=body,
        headers={"Stripe-Signature": header, "Content-Type": "application/json"},
    )


class TestBuildSessionParams:
    def test_price_comes_from_catalog_in_cents(self):
        params = checkout_service.build_session_params(MODEL, customer_email=None, customer_name="Ada")
        item = params["line_items"][0]
        assert item["price_data"]["unit_amount"] == 498500
        assert item["price_data"]["currency"] == "usd"
        assert item["quantity"] == 1
        assert params["mode"] == "payment"
        assert params["metadata"] == {
            "modelId": "7",
            "modelSlug": "saas-dcf",
            "modelTitle": "SaaS DCF Model",
            "customerName": "Ada",
        }

    def test_success_url_keeps_session_placeholder(self):
        params = checkout_service.build_session_params(MODEL, customer_email=None, customer_name=None)
        assert params["success_url"].startswith("https://zencap.test/checkout/success?session_id={CHECKOUT_SESSION_ID}")
        assert "modelSlug=saas-dcf" in params["cancel_url"]

    def test_relative_thumbnail_becomes_absolute(self):
        params = checkout_service.build_session_params(MODEL, customer_email=None, customer_name=None)
        images = params["line_items"][0]["price_data"]["product_data"]["images"]
        assert images == ["https://zencap.test/images/models/saas.jpg"]


class TestCreateCheckoutSession:
    def test_returns_provider_url(self, client, monkeypatch):
        captured = {}

        async def fake_get_model_by_slug(slug, *, active_only=True):
            return MODEL if slug == "saas-dcf" else None

        async def fake_create(params, **_):
            captured.update(params)
            return {"id": "cs_test_1", "url": "https://checkout.stripe.com/c/cs_test_1"}

        monkeypatch.setattr(catalog_repository, "get_model_by_slug", fake_get_model_by_slug)
        monkeypatch.setattr(stripe, "create_checkout_session", fake_create)

        resp = client.post("/checkout/session", json={"modelSlug": "saas-dcf", "price": 1})
        assert resp.status_code == 200
        assert resp.json() == {"url": "https://checkout.stripe.com/c/cs_test_1", "session_id": "cs_test_1"}
        assert captured["line_items"][0]["price_data"]["unit_amount"] == 498500

    def test_unknown_model_is_404(self, client, monkeypatch):
        async def fake_get_model_by_slug(slug, *, active_only=True):
            return None

        monkeypatch.setattr(catalog_repository, "get_model_by_slug", fake_get_model_by_slug)
        resp = client.post("/checkout/session", json={"model_slug": "missing"})
        assert resp.status_code == 404

    def test_model_reference_is_required(self, client):
        resp = client.post("/checkout/session", json={})
        assert resp.status_code == 400

    def test_provider_failure_is_502(self, client, monkeypatch):
        async def fake_get_model_by_id(model_id, *, active_only=True):
            return MODEL

        async def failing_create(params, **_):
            raise stripe.StripeError("boom")

        monkeypatch.setattr(catalog_repository, "get_model_by_id", fake_get_model_by_id)
        monkeypatch.setattr(stripe, "create_checkout_session", failing_create)
        resp = client.post("/checkout/session", json={"model_id": 7})
        assert resp.status_code == 502


class TestWebhook:
    session = {
        "id": "cs_test_1",
        "payment_status": "paid",
        "payment_intent": "pi_1",
        "customer": "cus_1",
        "customer_details": {"email": "Buyer@Example.com", "name": "Ada Buyer"},
        "metadata": {"modelId": "7", "modelSlug": "saas-dcf", "modelTitle": "SaaS DCF Model"},
        "amount_total": 498500,
        "currency": "usd",
    }

    def test_bad_signature_is_400(self, client):
        event = {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": self.session}}
        resp = _webhook(client, event, secret="whsec_wrong")
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("Webhook Error:")

    def test_completed_session_records_order_once(self, client, monkeypatch, audit_events):
        calls = []

        async def fake_record_paid_order(**fields):
            calls.append(fields)
            return _order_row(), len(calls) == 1

        monkeypatch.setattr(orders_repository, "record_paid_order", fake_record_paid_order)
        event = {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": self.session}}

        first = _webhook(client, event)
        replay = _webhook(client, event)

        assert first.status_code == 200
        assert first.json() == {"received": True}
        assert replay.status_code == 200
        assert len(calls) == 2
        assert calls[0]["customer_email"] == "buyer@example.com"
        assert calls[0]["amount"] == Decimal("4985")
        assert calls[0]["model_id"] == 7
        assert [name for name, _ in audit_events] == ["PAYMENT_COMPLETED"]

    def test_unpaid_session_is_ignored(self, client, monkeypatch):
        async def unexpected(**_):
            raise AssertionError("order must not be recorded")

        monkeypatch.setattr(orders_repository, "record_paid_order", unexpected)
        session = dict(self.session, payment_status="unpaid")
        event = {"id": "evt_2", "type": "checkout.session.completed", "data": {"object": session}}
        resp = _webhook(client, event)
        assert resp.status_code == 200

    def test_refund_marks_orders(self, client, monkeypatch, audit_events):
        async def fake_mark_refunded(*, payment_intent_id):
            assert payment_intent_id == "pi_1"
            return [_order_row(status="refunded")]

        monkeypatch.setattr(orders_repository, "mark_refunded", fake_mark_refunded)
        event = {"id": "evt_3", "type": "charge.refunded", "data": {"object": {"id": "ch_1", "payment_intent": "pi_1"}}}
        resp = _webhook(client, event)
        assert resp.status_code == 200
        assert [name for name, _ in audit_events] == ["PAYMENT_REFUNDED"]

    def test_unhandled_event_is_acknowledged(self, client):
        resp = _webhook(client, {"id": "evt_4", "type": "customer.created", "data": {"object": {}}})
        assert resp.status_code == 200


@pytest.mark.parametrize("amount_total", [0, None])
async def test_session_without_amount_is_rejected(amount_total):
    session = dict(TestWebhook.session, amount_total=amount_total)
    with pytest.raises(ValueError):
        await orders_service.record_paid_session(session)
