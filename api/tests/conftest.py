"""
Shared fixtures.

The app is used without entering its lifespan, so no database pool is
created. Tests replace repository functions with in-memory fakes.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from audit import service as audit_service
from auth import dependencies as auth_dependencies
from core import ratelimit
from main import app
from monitoring.throttle import throttle

ADMIN_USER = {
    "id": 1,
    "email": "admin@zencap.co",
    "role": "admin",
    "is_active": True,
    "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
}


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    monkeypatch.setenv("EMAIL_TEST_MODE", "true")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://zencap.test")
    for name in ("SENDGRID_API_KEY", "ALERT_WEBHOOK_URL", "EXTERNAL_MONITORING_URL", "ALERT_EMAIL_RECIPIENTS"):
        monkeypatch.delenv(name, raising=False)
    ratelimit.reset_all()
    throttle.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_client(client: TestClient) -> TestClient:
    app.dependency_overrides[auth_dependencies.require_admin] = lambda: ADMIN_USER
    return client


@pytest.fixture
def audit_events(monkeypatch) -> list[tuple[str, dict]]:
    events: list[tuple[str, dict]] = []

    async def fake_record(event_type, **fields):
        events.append((event_type, fields))
        return None

    monkeypatch.setattr(audit_service, "record", fake_record)
    return events
