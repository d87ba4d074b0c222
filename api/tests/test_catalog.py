"""
Model catalog endpoints.
"""

from decimal import Decimal

import asyncpg

from catalog import repository as catalog_repository

ROW = {
    "id": 1,
    "slug": "saas-dcf",
    "title": "SaaS DCF Model",
    "category": "private-equity",
    "price": Decimal("4985.00"),
    "status": "active",
}


class TestPublicCatalog:
    def test_list_models_converts_prices(self, client, monkeypatch):
        async def fake_list(*, category, limit):
            assert category == "private-equity"
            return [ROW]

        monkeypatch.setattr(catalog_repository, "list_active_models", fake_list)
        resp = client.get("/models", params={"category": "private-equity"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 1
        assert body["category"] == "private-equity"
        assert body["models"][0]["price"] == 4985.0

    def test_counts_route_is_not_a_slug(self, client, monkeypatch):
        async def fake_counts():
            return [{"category": "private-equity", "count": 3}, {"category": "public-equity", "count": 2}]

        monkeypatch.setattr(catalog_repository, "count_by_category", fake_counts)
        resp = client.get("/models/counts")
        assert resp.status_code == 200
        assert resp.json() == {"counts": {"private-equity": 3, "public-equity": 2}, "total": 5}

    def test_unknown_slug_is_404(self, client, monkeypatch):
        async def fake_get(slug, *, active_only=True):
            return None

        monkeypatch.setattr(catalog_repository, "get_model_by_slug", fake_get)
        assert client.get("/models/missing").status_code == 404


class TestCatalogAdmin:
    def test_create_requires_admin(self, client):
        resp = client.post("/models", json={"slug": "x", "title": "X"})
        assert resp.status_code == 401

    def test_invalid_slug_is_422(self, admin_client):
        resp = admin_client.post("/models", json={"slug": "Not A Slug", "title": "X"})
        assert resp.status_code == 422

    def test_duplicate_slug_is_409(self, admin_client, monkeypatch):
        async def fake_get(slug, *, active_only=True):
            return None

        async def racing_insert(fields):
            raise asyncpg.UniqueViolationError("duplicate key")

        monkeypatch.setattr(catalog_repository, "get_model_by_slug", fake_get)
        monkeypatch.setattr(catalog_repository, "insert_model", racing_insert)
        resp = admin_client.post("/models", json={"slug": "saas-dcf", "title": "SaaS DCF Model", "price": 4985})
        assert resp.status_code == 409

    def test_create_model(self, admin_client, monkeypatch):
        async def fake_get(slug, *, active_only=True):
            return None

        async def fake_insert(fields):
            return {"id": 2, **fields}

        monkeypatch.setattr(catalog_repository, "get_model_by_slug", fake_get)
        monkeypatch.setattr(catalog_repository, "insert_model", fake_insert)
        resp = admin_client.post("/models", json={"slug": "lbo-model", "title": "LBO Model", "price": 2985})
        assert resp.status_code == 201
        assert resp.json()["model"]["slug"] == "lbo-model"

    def test_partial_update_only_sends_given_fields(self, admin_client, monkeypatch):
        seen = {}

        async def fake_update(slug, fields):
            seen.update(fields)
            return {**ROW, **fields}

        monkeypatch.setattr(catalog_repository, "update_model", fake_update)
        resp = admin_client.put("/models/saas-dcf", json={"price": 3985})
        assert resp.status_code == 200
        assert seen == {"price": 3985}

    def test_delete_missing_is_404(self, admin_client, monkeypatch):
        async def fake_delete(slug):
            return None

        monkeypatch.setattr(catalog_repository, "delete_model", fake_delete)
        assert admin_client.delete("/models/missing").status_code == 404
