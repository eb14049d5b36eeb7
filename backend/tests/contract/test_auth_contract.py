"""
Contract tests for the authentication endpoints.
POST /auth/login, GET /auth/me, PUT /auth/password, POST /auth/logout.
"""

import os
from datetime import datetime, UTC, timedelta

import jwt
import pytest
from fastapi import status
from httpx import AsyncClient

pytestmark = [pytest.mark.contract, pytest.mark.auth]


class TestAuthLogin:
    """Contract tests for POST /auth/login."""

    @pytest.mark.asyncio
    async def test_login_with_valid_credentials(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/auth/login", json={"email": "admin@example.com", "password": "admin123"}
        )
        assert response.status_code == status.HTTP_200_OK, response.text

        body = response.json()
        assert body["status"] == "success"
        data = body["data"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] > 0
        assert data["user"]["email"] == "admin@example.com"
        assert data["role"]["name"] == "Chairwoman"
        assert data["permissions"]["fullAccess"] is True
        assert data["permissions"]["manageRoles"] is True
        assert "password_hash" not in data["user"]

    @pytest.mark.asyncio
    async def test_login_by_username(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/auth/login", json={"username": "sam supervisor", "password": "super123"}
        )
        assert response.status_code == status.HTTP_200_OK, response.text
        assert response.json()["data"]["user"]["email"] == "supervisor@example.com"

    @pytest.mark.asyncio
    async def test_login_with_wrong_password(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/auth/login", json={"email": "admin@example.com", "password": "nope"}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        body = response.json()
        assert body["status"] == "error"
        assert body["error"]["code"] == "AUTH_INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_login_requires_identifier(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/auth/login", json={"password": "admin123"})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestAuthenticatedEndpoints:

    @pytest.mark.asyncio
    async def test_me_returns_profile_and_permissions(self, staff_client: AsyncClient):
        response = await staff_client.get("/api/v1/auth/me")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == "staff@example.com"
        assert data["role"]["name"] == "Staff"
        assert data["permissions"]["fullAccess"] is False
        assert data["permissions"]["viewInventory"] is True
        assert data["permissions"]["manageRoles"] is False

    @pytest.mark.asyncio
    async def test_missing_token_is_unauthorized(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/auth/me")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_garbage_token_is_invalid(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["code"] == "AUTH_INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_expired_token_rejected(self, async_client: AsyncClient):
        secret = os.getenv("JWT_SECRET", "dev-insecure-secret-change")
        alg = os.getenv("JWT_ALGORITHM", "HS256")
        expired = jwt.encode(
            {"sub": "00000000-0000-0000-0000-000000000000", "exp": datetime.now(UTC) - timedelta(hours=1)},
            secret,
            algorithm=alg,
        )
        response = await async_client.get("/api/v1/inventory", headers={"Authorization": f"Bearer {expired}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["code"] == "AUTH_TOKEN_EXPIRED"

    @pytest.mark.asyncio
    async def test_logout(self, auth_client: AsyncClient):
        response = await auth_client.post("/api/v1/auth/logout")
        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Successfully logged out"


class TestPasswordChange:

    @staticmethod
    async def _new_employee_client(auth_client: AsyncClient, async_client: AsyncClient):
        roles = (await auth_client.get("/api/v1/roles")).json()["data"]["roles"]
        staff_role = next(r for r in roles if r["name"] == "Staff")
        created = await auth_client.post("/api/v1/employees", json={
            "name": "Priya Packer", "email": "priya@example.com", "password": "packer1", "roleId": staff_role["id"],
        })
        assert created.status_code == 201, created.text
        login = await async_client.post("/api/v1/auth/login", json={"email": "priya@example.com", "password": "packer1"})
        token = login.json()["data"]["access_token"]
        return {"Authorization": f"Bearer {token}"}

    @pytest.mark.asyncio
    async def test_change_password_then_login_with_new(self, auth_client: AsyncClient, async_client: AsyncClient):
        headers = await self._new_employee_client(auth_client, async_client)
        response = await async_client.put(
            "/api/v1/auth/password",
            json={"current_password": "packer1", "new_password": "packer22"},
            headers=headers,
        )
        assert response.status_code == 200, response.text

        old = await async_client.post("/api/v1/auth/login", json={"email": "priya@example.com", "password": "packer1"})
        assert old.status_code == 401
        new = await async_client.post("/api/v1/auth/login", json={"email": "priya@example.com", "password": "packer22"})
        assert new.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_current_password(self, auth_client: AsyncClient, async_client: AsyncClient):
        headers = await self._new_employee_client(auth_client, async_client)
        response = await async_client.put(
            "/api/v1/auth/password",
            json={"current_password": "wrong", "new_password": "packer22"},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Current password is incorrect"

    @pytest.mark.asyncio
    async def test_short_new_password(self, auth_client: AsyncClient, async_client: AsyncClient):
        headers = await self._new_employee_client(auth_client, async_client)
        response = await async_client.put(
            "/api/v1/auth/password",
            json={"current_password": "packer1", "new_password": "abc"},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
