"""
Insight publishing endpoints.
"""

import asyncpg

from insights import repository as insights_repository


def test_drafts_are_not_public(client, monkeypatch):
    async def fake_get(slug, *, published_only=True):
        assert published_only is True
        return None

    monkeypatch.setattr(insights_repository, "get_by_slug", fake_get)
    assert client.get("/insights/draft-post").status_code == 404


def test_create_duplicate_is_409(admin_client, monkeypatch):
    async def racing_insert(fields):
        raise asyncpg.UniqueViolationError("duplicate key")

    monkeypatch.setattr(insights_repository, "insert_insight", racing_insert)
    resp = admin_client.post("/insights", json={"slug": "q3-outlook", "title": "Q3 Outlook"})
    assert resp.status_code == 409


def test_update_ignores_explicit_nulls(admin_client, monkeypatch):
    seen = {}

    async def fake_update(slug, fields):
        seen.update(fields)
        return {"slug": slug, "status": "published", **fields}

    monkeypatch.setattr(insights_repository, "update_insight", fake_update)
    resp = admin_client.put("/insights/q3-outlook", json={"status": "published", "summary": None})
    assert resp.status_code == 200
    assert seen == {"status": "published"}


def test_delete_returns_204(admin_client, monkeypatch):
    async def fake_delete(slug):
        return True

    monkeypatch.setattr(insights_repository, "delete_insight", fake_delete)
    resp = admin_client.delete("/insights/q3-outlook")
    assert resp.status_code == 204
    assert resp.content == b""
