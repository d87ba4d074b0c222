"""
Audit log privacy processing, retention and client error intake.
"""

import hashlib
import re
from datetime import datetime, timedelta, timezone

from audit import repository as audit_repository
from audit import service


class TestPrivacy:
    def test_ipv4_is_truncated(self):
        assert service.anonymize_ip("203.0.113.42") == "203.0.0.0"

    def test_ipv6_keeps_prefix(self):
        assert service.anonymize_ip("2001:db8:85a3:8d3:1319:8a2e:370:7348") == "2001:db8:85a3:8d3::"

    def test_empty_ip_is_kept(self):
        assert service.anonymize_ip(None) is None

    def test_email_is_replaced_by_hash(self):
        scrubbed = service.scrub_metadata({"email": " Buyer@Example.com ", "amount": 10})
        assert "email" not in scrubbed
        assert scrubbed["email_hash"] == hashlib.sha256(b"buyer@example.com").hexdigest()
        assert scrubbed["amount"] == 10


class TestRetention:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_high_risk_events_keep_seven_years(self):
        assert service.retention_until("FILE_DOWNLOAD", now=self.now) == self.now + timedelta(days=7 * 365)

    def test_medium_risk_events_keep_two_years(self):
        assert service.retention_until("NEWSLETTER_SUBSCRIBE", now=self.now) == self.now + timedelta(days=2 * 365)

    def test_other_events_keep_ninety_days(self):
        assert service.retention_until("PAGE_VIEW", now=self.now) == self.now + timedelta(days=90)


def test_event_id_format():
    assert re.fullmatch(r"[0-9a-z]+-[0-9a-f]{16}", service.generate_event_id())


def test_severity_aliases():
    assert service.normalize_severity("warn") == "warning"
    assert service.normalize_severity("nonsense") == "info"


async def test_create_audit_log_applies_privacy(monkeypatch):
    captured = {}

    async def fake_insert(**fields):
        captured.update(fields)
        return fields

    monkeypatch.setattr(audit_repository, "insert_audit_log", fake_insert)
    await service.create_audit_log(
        "login_failure",
        ip_address="198.51.100.7",
        result="weird",
        metadata={"email": "a@b.co"},
    )
    assert captured["event_type"] == "LOGIN_FAILURE"
    assert captured["ip_address"] == "198.51.0.0"
    assert captured["result"] == "error"
    assert "email" not in captured["metadata"]


class TestClientErrors:
    def test_valid_events_are_logged(self, client, monkeypatch):
        stored = []

        async def fake_insert(**fields):
            stored.append(fields)
            return fields

        monkeypatch.setattr(audit_repository, "insert_audit_log", fake_insert)
        resp = client.post(
            "/errors",
            json={
                "events": [
                    {"timestamp": 1700000000000, "error": {"name": "TypeError", "message": "x"}},
                    {"timestamp": 1700000000001, "message": "hydration mismatch", "level": "warn"},
                    {"message": "no timestamp"},
                ]
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["processed"] == 2
        assert [r["status"] for r in body["results"]] == ["logged", "logged"]
        event_types = [row["event_type"] for row in stored]
        assert event_types == ["CLIENT_ERROR", "CLIENT_MESSAGE", "ERROR_TRACKING"]

    def test_security_endpoints_require_admin(self, client):
        assert client.get("/security/audit-logs").status_code == 401
        assert client.get("/security/incidents").status_code == 401
