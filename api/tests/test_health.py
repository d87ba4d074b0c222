"""
Health check, service banner and baseline response headers.
"""

from core import db


def test_root_banner(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "message" in resp.json()


def test_health_is_healthy_when_database_answers(client, monkeypatch):
    async def fake_ping():
        return None

    monkeypatch.setattr(db, "ping", fake_ping)
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["services"]["database"]["status"] == "healthy"
    assert {"timestamp", "uptime_s"} <= body.keys()


def test_health_is_degraded_without_database(client, monkeypatch):
    async def failing_ping():
        raise RuntimeError("Database pool is not initialized.")

    monkeypatch.setattr(db, "ping", failing_ping)
    resp = client.get("/health")
    assert resp.status_code == 503
    assert resp.json()["status"] == "degraded"


def test_security_headers(client, monkeypatch):
    async def fake_ping():
        return None

    monkeypatch.setattr(db, "ping", fake_ping)
    resp = client.get("/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert "Strict-Transport-Security" not in resp.headers
