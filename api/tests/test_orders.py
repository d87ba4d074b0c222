"""
Order lookup and gated downloads.
"""

from datetime import datetime, timezone
from decimal import Decimal

from core import stripe
from orders import repository as orders_repository


def _order(**overrides):
    row = {
        "id": 11,
        "stripe_session_id": "cs_test_1",
        "customer_email": "buyer@example.com",
        "model_title": "SaaS DCF Model",
        "amount": Decimal("4985.00"),
        "status": "completed",
        "metadata": '{"modelSlug": "saas-dcf"}',
        "download_expires_at": datetime(2030, 1, 1, tzinfo=timezone.utc),
        "excel_url": "/downloads/saas-dcf.xlsx",
        "file_url": None,
    }
    row.update(overrides)
    return row


class TestOrderLookup:
    def test_stored_order_is_returned(self, client, monkeypatch):
        async def fake_get(session_id):
            return _order()

        monkeypatch.setattr(orders_repository, "get_order_by_session_id", fake_get)
        resp = client.get("/orders/cs_test_1")
        assert resp.status_code == 200
        body = resp.json()
        assert body["amount"] == 4985.0
        assert body["metadata"] == {"modelSlug": "saas-dcf"}

    def test_unpaid_provider_session_is_404(self, client, monkeypatch):
        async def fake_get(session_id):
            return None

        async def fake_retrieve(session_id, **_):
            return {"id": session_id, "payment_status": "unpaid"}

        monkeypatch.setattr(orders_repository, "get_order_by_session_id", fake_get)
        monkeypatch.setattr(stripe, "retrieve_checkout_session", fake_retrieve)
        resp = client.get("/orders/cs_unknown")
        assert resp.status_code == 404

    def test_provider_error_is_404(self, client, monkeypatch):
        async def fake_get(session_id):
            return None

        async def failing_retrieve(session_id, **_):
            raise stripe.StripeError("No such checkout.session")

        monkeypatch.setattr(orders_repository, "get_order_by_session_id", fake_get)
        monkeypatch.setattr(stripe, "retrieve_checkout_session", failing_retrieve)
        assert client.get("/orders/cs_unknown").status_code == 404


class TestDownload:
    def test_wrong_email_is_404_and_audited(self, client, monkeypatch, audit_events):
        async def fake_get_download_order(order_id, email):
            return None

        monkeypatch.setattr(orders_repository, "get_download_order", fake_get_download_order)
        resp = client.get("/download/11", params={"email": "someone@else.com"})
        assert resp.status_code == 404
        assert audit_events[0][0] == "FILE_DOWNLOAD"
        assert audit_events[0][1]["result"] == "blocked"

    def test_limit_reached_is_403(self, client, monkeypatch, tmp_path, audit_events):
        (tmp_path / "saas-dcf.xlsx").write_bytes(b"xlsx")
        monkeypatch.setenv("DOWNLOADS_DIR", str(tmp_path))

        async def fake_get_download_order(order_id, email):
            return _order()

        async def fake_claim(order_id):
            return None

        monkeypatch.setattr(orders_repository, "get_download_order", fake_get_download_order)
        monkeypatch.setattr(orders_repository, "claim_download", fake_claim)
        resp = client.get("/download/11", params={"email": "buyer@example.com"})
        assert resp.status_code == 403
        assert audit_events[-1][1]["result"] == "blocked"

    def test_file_is_served_and_counted(self, client, monkeypatch, tmp_path, audit_events):
        (tmp_path / "saas-dcf.xlsx").write_bytes(b"xlsx-bytes")
        monkeypatch.setenv("DOWNLOADS_DIR", str(tmp_path))

        async def fake_get_download_order(order_id, email):
            assert email == "buyer@example.com"
            return _order(excel_url="https://cdn.example.com/files/../saas-dcf.xlsx")

        async def fake_claim(order_id):
            return {"download_count": 1, "max_downloads": 3}

        monkeypatch.setattr(orders_repository, "get_download_order", fake_get_download_order)
        monkeypatch.setattr(orders_repository, "claim_download", fake_claim)
        resp = client.get("/download/11", params={"email": "Buyer@Example.com"})
        assert resp.status_code == 200
        assert resp.content == b"xlsx-bytes"
        assert resp.headers["content-type"].startswith("application/vnd.openxmlformats")
        assert "SaaS_DCF_Model.xlsx" in resp.headers["content-disposition"]
        assert audit_events[-1][1].get("result", "success") == "success"

    def test_missing_file_is_404(self, client, monkeypatch, tmp_path, audit_events):
        monkeypatch.setenv("DOWNLOADS_DIR", str(tmp_path))

        async def fake_get_download_order(order_id, email):
            return _order()

        monkeypatch.setattr(orders_repository, "get_download_order", fake_get_download_order)
        resp = client.get("/download/11", params={"email": "buyer@example.com"})
        assert resp.status_code == 404
        assert audit_events[-1][1]["result"] == "error"
