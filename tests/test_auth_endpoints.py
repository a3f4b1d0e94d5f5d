"""Tests for authentication endpoints and the error envelope."""

import pytest

from conftest import TEST_PASSWORD, create_user, make_auth_headers
from models.user import UserRole


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_returns_token_and_user(self, client, technician):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "T1@example.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["token"]
        assert body["data"]["user"]["email"] == "t1@example.com"
        assert body["data"]["user"]["role"] == UserRole.TECHNICIAN.value
        assert "password_hash" not in body["data"]["user"]

        me = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {body['data']['token']}"},
        )
        assert me.status_code == 200
        assert me.json()["data"]["id"] == str(technician.id)

    @pytest.mark.asyncio
    async def test_wrong_password_is_unauthorized(self, client, technician):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "t1@example.com", "password": "wrong-password"},
        )

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid email or password"}

    @pytest.mark.asyncio
    async def test_inactive_user_cannot_log_in(self, client, db_session):
        await create_user(
            db_session, email="gone@example.com", role=UserRole.CLIENT, first_name="Gone", active=False
        )

        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "gone@example.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 403
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_malformed_login_is_validation_error(self, client):
        response = await client.post("/api/v1/auth/login", json={"email": "not-an-email"})

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation error"
        assert body["errors"]


class TestCurrentUser:
    @pytest.mark.asyncio
    async def test_me_requires_token(self, client):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_me_rejects_garbage_token(self, client):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_deactivated_user_token_is_refused(self, client, db_session, technician):
        headers = make_auth_headers(technician)
        technician.active = False
        await db_session.commit()

        response = await client.get("/api/v1/auth/me", headers=headers)

        assert response.status_code == 403


class TestRegister:
    NEW_USER = {
        "first_name": "Nora",
        "last_name": "Nueva",
        "email": "nora@example.com",
        "password": "secret123",
        "role": UserRole.TECHNICIAN.value,
    }

    @pytest.mark.asyncio
    async def test_admin_registers_user(self, client, admin_user):
        response = await client.post(
            "/api/v1/auth/register",
            json=self.NEW_USER,
            headers=make_auth_headers(admin_user),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["email"] == "nora@example.com"
        assert data["role"] == UserRole.TECHNICIAN.value

        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "nora@example.com", "password": "secret123"},
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_non_admin_cannot_register(self, client, technician):
        response = await client.post(
            "/api/v1/auth/register",
            json=self.NEW_USER,
            headers=make_auth_headers(technician),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, client, admin_user, technician):
        response = await client.post(
            "/api/v1/auth/register",
            json={**self.NEW_USER, "email": "t1@example.com"},
            headers=make_auth_headers(admin_user),
        )

        assert response.status_code == 409
        assert response.json()["success"] is False


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_reports_database(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["database"] == "ok"
