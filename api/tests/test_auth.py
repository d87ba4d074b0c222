"""
Login, token refresh and role checks.
"""

import time
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from auth import dependencies
from auth import repository as auth_repository
from auth import security

CREATED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def refresh_store():
    return {}


@pytest.fixture
def users(monkeypatch, refresh_store):
    table = {
        1: {
            "id": 1,
            "email": "admin@zencap.co",
            "password_hash": security.hash_password("correct-horse"),
            "role": "admin",
            "is_active": True,
            "created_at": CREATED_AT,
        },
        2: {
            "id": 2,
            "email": "buyer@example.com",
            "password_hash": security.hash_password("buyer-password"),
            "role": "customer",
            "is_active": True,
            "created_at": CREATED_AT,
        },
    }
    tokens = refresh_store

    async def get_user_by_email(email):
        return next((u for u in table.values() if u["email"] == email.strip().lower()), None)

    async def get_user_by_id(user_id):
        return table.get(user_id)

    async def insert_refresh_token(**fields):
        row = {"id": len(tokens) + 1, "revoked_at": None, "replaced_by_token_id": None, **fields}
        tokens[fields["token_hash"]] = row
        return row

    async def get_refresh_token_by_hash(token_hash):
        return tokens.get(token_hash)

    async def claim_refresh_token(token_id):
        for row in tokens.values():
            if row["id"] == token_id and row["revoked_at"] is None:
                row["revoked_at"] = datetime.now(timezone.utc)
                return True
        return False

    async def set_replaced_by(*, old_token_id, new_token_id):
        for row in tokens.values():
            if row["id"] == old_token_id:
                row["replaced_by_token_id"] = new_token_id

    async def revoke_refresh_token_by_hash(token_hash):
        row = tokens.get(token_hash)
        if row is None or row["revoked_at"] is not None:
            return False
        row["revoked_at"] = datetime.now(timezone.utc)
        return True

    async def revoke_all_refresh_tokens_for_user(user_id):
        live = [row for row in tokens.values() if row["user_id"] == user_id and row["revoked_at"] is None]
        for row in live:
            row["revoked_at"] = datetime.now(timezone.utc)
        return len(live)

    async def record_login(user_id):
        table[user_id]["last_login_at"] = datetime.now(timezone.utc)

    monkeypatch.setattr(auth_repository, "get_user_by_email", get_user_by_email)
    monkeypatch.setattr(auth_repository, "get_user_by_id", get_user_by_id)
    monkeypatch.setattr(auth_repository, "insert_refresh_token", insert_refresh_token)
    monkeypatch.setattr(auth_repository, "get_refresh_token_by_hash", get_refresh_token_by_hash)
    monkeypatch.setattr(auth_repository, "claim_refresh_token", claim_refresh_token)
    monkeypatch.setattr(auth_repository, "set_replaced_by", set_replaced_by)
    monkeypatch.setattr(auth_repository, "revoke_refresh_token_by_hash", revoke_refresh_token_by_hash)
    monkeypatch.setattr(auth_repository, "revoke_all_refresh_tokens_for_user", revoke_all_refresh_tokens_for_user)
    monkeypatch.setattr(auth_repository, "record_login", record_login)
    return table


def _login(client, email, password):
    return client.post("/auth/login", json={"email": email, "password": password})


def _bearer(user_id, email, role):
    token = security.build_access_token(user_id=user_id, email=email, role=role)
    return {"Authorization": f"Bearer {token}"}


class TestLogin:
    def test_valid_credentials_return_tokens(self, client, users, audit_events):
        resp = _login(client, "admin@zencap.co", "correct-horse")
        assert resp.status_code == 200
        body = resp.json()
        assert body["user"]["role"] == "admin"
        claims = security.decode_access_token(body["tokens"]["access_token"])
        assert claims["sub"] == "1" and claims["role"] == "admin"
        assert claims["iss"] == security.TOKEN_ISSUER
        assert users[1]["last_login_at"] is not None
        assert audit_events[-1][0] == "LOGIN_SUCCESS"

    def test_wrong_password_is_401_and_audited(self, client, users, audit_events):
        resp = _login(client, "admin@zencap.co", "wrong")
        assert resp.status_code == 401
        assert audit_events[-1][0] == "LOGIN_FAILURE"

    def test_unknown_email_is_401(self, client, users, audit_events):
        assert _login(client, "nobody@example.com", "whatever").status_code == 401

    def test_inactive_user_is_403(self, client, users, audit_events):
        users[2]["is_active"] = False
        assert _login(client, "buyer@example.com", "buyer-password").status_code == 403
        assert audit_events[-1][1]["result"] == "blocked"


class TestRefresh:
    def test_refresh_rotates_token(self, client, users, audit_events):
        tokens = _login(client, "buyer@example.com", "buyer-password").json()["tokens"]
        resp = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert resp.status_code == 200
        assert resp.json()["refresh_token"] != tokens["refresh_token"]

    def test_reused_token_revokes_every_session(self, client, users, audit_events):
        tokens = _login(client, "buyer@example.com", "buyer-password").json()["tokens"]
        rotated = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).json()

        replay = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert replay.status_code == 401
        assert replay.json()["detail"] == "Refresh token reuse detected."
        assert audit_events[-1][0] == "REFRESH_TOKEN_REUSE"

        # The token issued by the legitimate rotation is gone too.
        after = client.post("/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
        assert after.status_code == 401

    def test_retried_expired_token_keeps_other_sessions(self, client, users, refresh_store, audit_events):
        first = _login(client, "buyer@example.com", "buyer-password").json()["tokens"]
        second = _login(client, "buyer@example.com", "buyer-password").json()["tokens"]
        expired_row = refresh_store[security.hash_refresh_token(first["refresh_token"])]
        expired_row["expires_at"] = datetime.now(timezone.utc) - timedelta(minutes=1)

        for _ in range(2):
            resp = client.post("/auth/refresh", json={"refresh_token": first["refresh_token"]})
            assert resp.status_code == 401
            assert resp.json()["detail"] == "Refresh token is expired."

        assert client.post("/auth/refresh", json={"refresh_token": second["refresh_token"]}).status_code == 200
        assert "REFRESH_TOKEN_REUSE" not in [event for event, _ in audit_events]

    def test_logged_out_token_is_plain_401(self, client, users, audit_events):
        first = _login(client, "buyer@example.com", "buyer-password").json()["tokens"]
        second = _login(client, "buyer@example.com", "buyer-password").json()["tokens"]

        logout = client.post(
            "/auth/logout",
            json={"refresh_token": first["refresh_token"]},
            headers={"Authorization": f"Bearer {first['access_token']}"},
        )
        assert logout.json() == {"ok": True, "revoked": "session"}

        resp = client.post("/auth/refresh", json={"refresh_token": first["refresh_token"]})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Refresh token is revoked."

        assert client.post("/auth/refresh", json={"refresh_token": second["refresh_token"]}).status_code == 200
        assert "REFRESH_TOKEN_REUSE" not in [event for event, _ in audit_events]

    def test_rotation_links_old_token_to_new(self, client, users, refresh_store, audit_events):
        tokens = _login(client, "buyer@example.com", "buyer-password").json()["tokens"]
        rotated = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).json()
        old_row = refresh_store[security.hash_refresh_token(tokens["refresh_token"])]
        new_row = refresh_store[security.hash_refresh_token(rotated["refresh_token"])]
        assert old_row["replaced_by_token_id"] == new_row["id"]

    def test_unknown_token_is_401(self, client, users):
        resp = client.post("/auth/refresh", json={"refresh_token": "x" * 40})
        assert resp.status_code == 401

    def test_expired_token_is_401(self, client, users, monkeypatch):
        async def expired_token(token_hash):
            return {
                "id": 9,
                "user_id": 2,
                "revoked_at": None,
                "expires_at": datetime.now(timezone.utc) - timedelta(days=1),
            }

        monkeypatch.setattr(auth_repository, "get_refresh_token_by_hash", expired_token)
        resp = client.post("/auth/refresh", json={"refresh_token": "y" * 40})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Refresh token is expired."


class TestAccessTokens:
    def test_me_with_bearer_token(self, client, users):
        resp = client.get("/auth/me", headers=_bearer(2, "buyer@example.com", "customer"))
        assert resp.status_code == 200
        assert resp.json()["email"] == "buyer@example.com"

    def test_malformed_header_is_401(self, client):
        assert client.get("/auth/me", headers={"Authorization": "Token abc"}).status_code == 401

    def test_foreign_issuer_is_rejected(self, client, users):
        token = jwt.encode(
            {"sub": "2", "type": "access", "iss": "someone-else", "exp": int(time.time()) + 60},
            security.jwt_secret(),
            algorithm="HS256",
        )
        assert client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_customer_cannot_reach_admin_routes(self, client, users):
        resp = client.get("/admin/overview", headers=_bearer(2, "buyer@example.com", "customer"))
        assert resp.status_code == 403


class TestUserAdmin:
    def test_weak_password_is_400(self, client, users):
        resp = client.post(
            "/auth/users",
            json={"email": "new@zencap.co", "password": "letters-only"},
            headers=_bearer(1, "admin@zencap.co", "admin"),
        )
        assert resp.status_code == 400

    def test_duplicate_email_is_409(self, client, users):
        resp = client.post(
            "/auth/users",
            json={"email": "buyer@example.com", "password": "s3cure-password"},
            headers=_bearer(1, "admin@zencap.co", "admin"),
        )
        assert resp.status_code == 409

    def test_create_user(self, client, users, monkeypatch, audit_events):
        async def fake_create_user(*, email, password_hash, name, role):
            assert security.verify_password("s3cure-password", password_hash)
            return {"id": 3, "email": email, "name": name, "role": role, "is_active": True, "created_at": CREATED_AT}

        monkeypatch.setattr(auth_repository, "create_user", fake_create_user)
        resp = client.post(
            "/auth/users",
            json={"email": "analyst@zencap.co", "password": "s3cure-password", "name": "Analyst", "role": "admin"},
            headers=_bearer(1, "admin@zencap.co", "admin"),
        )
        assert resp.status_code == 201
        assert resp.json()["role"] == "admin"
        assert audit_events[-1][0] == "USER_CREATED"

    def test_admin_cannot_deactivate_self(self, client, users):
        resp = client.patch(
            "/auth/users/1",
            json={"is_active": False},
            headers=_bearer(1, "admin@zencap.co", "admin"),
        )
        assert resp.status_code == 400

    def test_deactivation_revokes_sessions(self, client, users, monkeypatch, audit_events):
        revoked = []

        async def fake_update_user(user_id, *, role, is_active):
            return {**users[user_id], "is_active": is_active}

        async def fake_revoke_all(user_id):
            revoked.append(user_id)
            return 2

        monkeypatch.setattr(auth_repository, "update_user", fake_update_user)
        monkeypatch.setattr(auth_repository, "revoke_all_refresh_tokens_for_user", fake_revoke_all)
        resp = client.patch(
            "/auth/users/2",
            json={"is_active": False},
            headers=_bearer(1, "admin@zencap.co", "admin"),
        )
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False
        assert revoked == [2]
        assert audit_events[-1][0] == "USER_UPDATED"


def test_role_guard_rejects_unknown_roles():
    with pytest.raises(ValueError):
        dependencies.require_roles("superuser")


class TestRegister:
    @pytest.fixture
    def created(self, users, monkeypatch):
        rows = []

        async def fake_create_user(*, email, password_hash, name, role):
            row = {
                "id": 10 + len(rows),
                "email": email,
                "name": name,
                "password_hash": password_hash,
                "role": role,
                "is_active": True,
                "created_at": CREATED_AT,
            }
            rows.append(row)
            users[row["id"]] = row
            return row

        monkeypatch.setattr(auth_repository, "create_user", fake_create_user)
        return rows

    def test_register_creates_customer_and_signs_in(self, client, created, audit_events):
        resp = client.post(
            "/auth/register",
            json={"email": " New.Buyer@Example.com ", "password": "s3cure-password", "name": "New Buyer"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["user"]["role"] == "customer"
        assert body["user"]["email"] == "new.buyer@example.com"
        assert created[0]["role"] == "customer"
        assert security.verify_password("s3cure-password", created[0]["password_hash"])
        assert audit_events[-1][0] == "USER_REGISTERED"

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['tokens']['access_token']}"})
        assert me.status_code == 200
        assert me.json()["name"] == "New Buyer"

    def test_role_cannot_be_chosen(self, client, created, audit_events):
        resp = client.post(
            "/auth/register",
            json={"email": "sneaky@example.com", "password": "s3cure-password", "name": "S", "role": "admin"},
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "customer"

    def test_missing_name_is_400(self, client, created):
        resp = client.post("/auth/register", json={"email": "a@example.com", "password": "s3cure-password"})
        assert resp.status_code == 400
        assert created == []

    def test_invalid_email_is_400(self, client, created):
        resp = client.post("/auth/register", json={"email": "not-an-email", "password": "s3cure-password", "name": "A"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid email format."

    def test_weak_password_is_400(self, client, created):
        resp = client.post("/auth/register", json={"email": "a@example.com", "password": "short1", "name": "A"})
        assert resp.status_code == 400
        assert created == []

    def test_duplicate_email_is_409(self, client, created):
        resp = client.post(
            "/auth/register",
            json={"email": "buyer@example.com", "password": "s3cure-password", "name": "Dup"},
        )
        assert resp.status_code == 409
        assert created == []

    def test_register_is_rate_limited(self, client, created, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_AUTH_MAX", "2")
        codes = [client.post("/auth/register", json={}).status_code for _ in range(3)]
        assert codes == [400, 400, 429]
