"""Route-level tests for registration, login, e-mail verification and accounts."""

import asyncio
from datetime import datetime
from typing import Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.cache.in_memory import InMemoryCacheStore
from app.core.errors import CacheStoreError

JANE = {"email": "jane@example.com", "username": "jane", "password": "s3cret-pass"}


class UnreachableResetStore(InMemoryCacheStore):
    async def reset(self) -> int:
        raise CacheStoreError("connection refused")


def _register(client: TestClient, payload: dict | None = None) -> dict:
    response = client.post("/v1/users", json=payload or JANE)
    assert response.status_code == 201, response.text
    return response.json()["data"]["user"]


def _login(client: TestClient, email: str = JANE["email"], password: str = JANE["password"]) -> dict:
    response = client.post("/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def _bearer(token_data: dict) -> dict:
    return {"Authorization": f"Bearer {token_data['access_token']}"}


class TestRegistration:
    def test_register_creates_unverified_user(self, client: TestClient) -> None:
        response = client.post("/v1/users", json=JANE)

        assert response.status_code == 201
        data = response.json()["data"]
        user = data["user"]
        assert data["access_token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 3600

        assert user["id"] == 1
        assert user["email"] == "jane@example.com"
        assert user["role"] == "user"
        assert user["is_email_verified"] is False
        assert "password" not in user
        assert "password_hash" not in user
        assert "email_verification_token" not in user

    def test_registration_token_signs_the_user_in(self, client: TestClient) -> None:
        data = client.post("/v1/users", json=JANE).json()["data"]

        response = client.get(f"/v1/users/{data['user']['id']}", headers=_bearer(data))

        assert response.status_code == 200
        assert response.json()["data"]["email"] == JANE["email"]

    def test_email_is_normalized_and_unique(self, client: TestClient) -> None:
        _register(client)

        response = client.post("/v1/users", json={**JANE, "email": "JANE@Example.com"})

        assert response.status_code == 409
        assert response.json()["code"] == "email_taken"

    def test_invalid_email_rejected(self, client: TestClient) -> None:
        response = client.post("/v1/users", json={**JANE, "email": "not-an-email"})

        assert response.status_code == 422

    def test_registration_is_limited_per_ip(self, client: TestClient) -> None:
        for i in range(10):
            _register(client, {**JANE, "email": f"user{i}@example.com", "username": f"user{i}"})

        response = client.post("/v1/users", json={**JANE, "email": "late@example.com"})

        assert response.status_code == 429
        assert response.json()["message"] == "Too many registration attempts. Please try again later."


class TestLogin:
    def test_login_returns_bearer_token(self, client: TestClient) -> None:
        _register(client)

        data = _login(client)

        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 3600
        assert data["user"]["email"] == "jane@example.com"

    def test_wrong_password_and_unknown_email_look_the_same(self, client: TestClient) -> None:
        _register(client)

        wrong = client.post("/v1/auth/login", json={"email": JANE["email"], "password": "nope-nope"})
        unknown = client.post("/v1/auth/login", json={"email": "ghost@example.com", "password": "nope-nope"})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json()["message"] == unknown.json()["message"] == "Invalid email or password"


class TestEmailVerification:
    def test_me_requires_verified_email(self, client: TestClient, verification_token) -> None:
        _register(client)
        headers = _bearer(_login(client))

        blocked = client.get("/v1/auth/me", headers=headers)
        assert blocked.status_code == 403
        assert blocked.json()["code"] == "email_not_verified"

        verified = client.post("/v1/auth/verify-email", json={"token": verification_token(JANE["email"])})
        assert verified.status_code == 200
        assert verified.json()["data"]["is_email_verified"] is True

        # Same token: the verification flag is read from the account, not the token
        me = client.get("/v1/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json()["data"]["email"] == JANE["email"]

    def test_verification_refreshes_cached_user(self, client: TestClient, verification_token) -> None:
        user = _register(client)
        headers = _bearer(_login(client))
        assert client.get(f"/v1/users/{user['id']}", headers=headers).json()["data"]["is_email_verified"] is False

        client.post("/v1/auth/verify-email", json={"token": verification_token(JANE["email"])})

        assert client.get(f"/v1/users/{user['id']}", headers=headers).json()["data"]["is_email_verified"] is True

    def test_token_is_single_use(self, client: TestClient, verification_token) -> None:
        _register(client)
        token = verification_token(JANE["email"])

        assert client.post("/v1/auth/verify-email", json={"token": token}).status_code == 200
        response = client.post("/v1/auth/verify-email", json={"token": token})

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_verification_token"

    def test_expired_token_rejected(self, client: TestClient, app: FastAPI, verification_token) -> None:
        user = _register(client)
        token = verification_token(JANE["email"])
        asyncio.run(
            app.state.user_service.repository.update(
                user["id"], {"email_verification_expires_at": datetime(2000, 1, 1)}
            )
        )

        response = client.post("/v1/auth/verify-email", json={"token": token})

        assert response.status_code == 400
        assert response.json()["code"] == "verification_token_expired"


class TestAccounts:
    @pytest.fixture
    def jane_headers(self, client: TestClient) -> dict:
        _register(client)
        return _bearer(_login(client))

    def test_user_reads_own_account_only(self, client: TestClient, jane_headers: dict) -> None:
        _register(client, {"email": "bob@example.com", "username": "bob", "password": "another-pass"})

        assert client.get("/v1/users/1", headers=jane_headers).status_code == 200
        response = client.get("/v1/users/2", headers=jane_headers)

        assert response.status_code == 403
        assert response.json()["code"] == "not_owner"

    def test_user_cannot_promote_self(self, client: TestClient, jane_headers: dict) -> None:
        response = client.patch("/v1/users/1", json={"role": "admin"}, headers=jane_headers)

        assert response.status_code == 403

    def test_user_updates_username_and_password(self, client: TestClient, jane_headers: dict) -> None:
        response = client.patch(
            "/v1/users/1", json={"username": "jane.d", "password": "brand-new-pass"}, headers=jane_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["username"] == "jane.d"
        assert _login(client, password="brand-new-pass")["user"]["username"] == "jane.d"

    def test_admin_lists_updates_and_deletes(self, client: TestClient, auth_header) -> None:
        _register(client)
        admin = auth_header(user_id=99, role="admin")

        listed = client.get("/v1/users", headers=admin)
        assert [u["email"] for u in listed.json()["data"]] == ["jane@example.com"]

        promoted = client.patch("/v1/users/1", json={"role": "moderator"}, headers=admin)
        assert promoted.json()["data"]["role"] == "moderator"

        assert client.delete("/v1/users/1", headers=admin).status_code == 200
        assert client.get("/v1/users", headers=admin).json()["data"] == []
        assert client.get("/v1/users/1", headers=admin).status_code == 404

    def test_user_list_requires_admin(self, client: TestClient, jane_headers: dict) -> None:
        assert client.get("/v1/users", headers=jane_headers).status_code == 403


class TestAdminCacheReset:
    def test_reset_clears_namespace(self, client: TestClient, auth_header, memory_store) -> None:
        admin = auth_header(role="admin")
        client.get("/v1/products", headers=admin)
        assert asyncio.run(memory_store.get("products:all")) == []

        response = client.post("/v1/admin/cache/reset", headers=admin)

        assert response.status_code == 200
        assert response.json()["data"]["message"].startswith("Cache reset:")
        assert memory_store.stats()["entries"] == 0

    def test_reset_requires_admin(self, client: TestClient, auth_header) -> None:
        response = client.post("/v1/admin/cache/reset", headers=auth_header(user_id=5, role="moderator"))

        assert response.status_code == 403

    def test_store_outage_returns_503(self, make_app: Callable[..., FastAPI], auth_header) -> None:
        client = TestClient(make_app(cache_store=UnreachableResetStore()))

        response = client.post("/v1/admin/cache/reset", headers=auth_header(role="admin"))

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "cache_unavailable"
        assert body["error"] == "Service Unavailable"


def test_readiness_reports_cache_status(client: TestClient) -> None:
    response = client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "cache": "up"}
