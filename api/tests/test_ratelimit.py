"""
Per-IP rate limiting on decorated routes.
"""

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from core import ratelimit

limited_app = FastAPI()
ratelimit.install(limited_app)


@limited_app.get("/quotes")
@ratelimit.limit("quotes")
async def quotes(request: Request) -> dict:
    return {"ok": True}


@limited_app.get("/quotes/latest")
@ratelimit.limit("quotes")
async def latest_quote(request: Request) -> dict:
    return {"ok": True}


@pytest.fixture
def quotes_client(monkeypatch) -> TestClient:
    monkeypatch.setenv("RATE_LIMIT_QUOTES_MAX", "2")
    monkeypatch.setenv("RATE_LIMIT_QUOTES_WINDOW_S", "60")
    return TestClient(limited_app)


class TestRateLimit:
    def test_requests_over_limit_are_rejected(self, quotes_client):
        codes = [quotes_client.get("/quotes").status_code for _ in range(3)]
        assert codes == [200, 200, 429]

    def test_rejection_carries_retry_after(self, quotes_client):
        for _ in range(2):
            quotes_client.get("/quotes")
        resp = quotes_client.get("/quotes")
        assert resp.status_code == 429
        assert resp.json() == {"detail": "Too many requests, please try again later."}
        assert 1 <= int(resp.headers["Retry-After"]) <= 60

    def test_clients_are_keyed_by_forwarded_ip(self, quotes_client):
        first = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        second = {"X-Forwarded-For": "198.51.100.4"}
        for _ in range(2):
            assert quotes_client.get("/quotes", headers=first).status_code == 200
        assert quotes_client.get("/quotes", headers=first).status_code == 429
        assert quotes_client.get("/quotes", headers=second).status_code == 200

    def test_routes_with_the_same_name_share_a_budget(self, quotes_client):
        assert quotes_client.get("/quotes").status_code == 200
        assert quotes_client.get("/quotes/latest").status_code == 200
        assert quotes_client.get("/quotes/latest").status_code == 429

    def test_reset_clears_counters(self, quotes_client):
        for _ in range(3):
            quotes_client.get("/quotes")
        ratelimit.reset_all()
        assert quotes_client.get("/quotes").status_code == 200


def test_limit_value_reads_environment(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_FORMS_MAX", "7")
    monkeypatch.setenv("RATE_LIMIT_FORMS_WINDOW_S", "30")
    assert ratelimit.limit_value("forms")() == "7 per 30 second"


def test_limit_value_defaults(monkeypatch):
    monkeypatch.delenv("RATE_LIMIT_CHECKOUT_MAX", raising=False)
    monkeypatch.delenv("RATE_LIMIT_CHECKOUT_WINDOW_S", raising=False)
    assert ratelimit.limit_value("checkout")() == "100 per 60 second"
