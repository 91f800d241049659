"""
Integration tests for authentication endpoints.
"""

import pytest

from tests.factories import DEFAULT_PASSWORD, UserFactory, auth_headers


class TestRegister:
    @pytest.mark.asyncio
    async def test_new_accounts_are_viewers(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"email": "new@example.com", "password": "longenough1", "name": "New Person"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["role"] == "VIEWER"
        assert "hashed_password" not in data

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client, ops_user):
        response = await client.post(
            "/api/auth/register",
            json={"email": ops_user.email, "password": "longenough1", "name": "Dup"},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_short_password(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"email": "short@example.com", "password": "abc", "name": "Short"},
        )

        assert response.status_code == 400


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_and_me(self, client, ops_user):
        response = await client.post(
            "/api/auth/login", json={"email": ops_user.email, "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 200
        token = response.json()["access_token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == ops_user.email
        assert me.json()["role"] == "OPS"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, ops_user):
        response = await client.post(
            "/api/auth/login", json={"email": ops_user.email, "password": "not-the-password"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_inactive_user(self, client, db_session):
        user = await UserFactory.create(db_session, is_active=False)

        response = await client.post(
            "/api/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 401


class TestMe:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        assert (await client.get("/api/auth/me")).status_code == 401

    @pytest.mark.asyncio
    async def test_bad_token(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_of_deactivated_user(self, client, db_session, ops_user):
        headers = auth_headers(ops_user)
        ops_user.is_active = False
        await db_session.commit()

        assert (await client.get("/api/auth/me", headers=headers)).status_code == 401
