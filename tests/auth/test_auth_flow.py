"""Account lifecycle over HTTP: signup, login, change-password, delete."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from mamba.auth.service import create_user, verify_credentials
from mamba.errors import DuplicateEmailError, ValidationError
from mamba.storage.memory import MemoryStorage


async def _signup(client: AsyncClient, email: str = "alice@example.com", password: str = "secret1"):
    return await client.post("/auth/signup", json={"email": email, "password": password})


class TestSignup:
    async def test_signup_returns_user(self, client: AsyncClient):
        response = await _signup(client)
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "alice@example.com"
        assert data["id"]
        assert "password" not in data
        assert "passwordHash" not in data

    async def test_signup_normalizes_email(self, client: AsyncClient):
        response = await _signup(client, email="  Alice@Example.COM ")
        assert response.status_code == 201
        assert response.json()["email"] == "alice@example.com"

    async def test_duplicate_email_case_insensitive(self, client: AsyncClient):
        await _signup(client, email="a@b.co")
        response = await _signup(client, email="A@B.CO")
        assert response.status_code == 400
        assert response.json()["error"] == "Email already registered"

    async def test_short_password_rejected(self, client: AsyncClient):
        response = await _signup(client, password="abc")
        assert response.status_code == 400
        assert "at least 6" in response.json()["error"]

    async def test_invalid_email_rejected(self, client: AsyncClient):
        response = await _signup(client, email="not-an-email")
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email address"

    async def test_missing_fields_rejected(self, client: AsyncClient):
        response = await client.post("/auth/signup", json={"email": "x@y.co"})
        assert response.status_code == 400


class TestLogin:
    async def test_login_success(self, client: AsyncClient):
        created = (await _signup(client)).json()
        response = await client.post("/auth/login", json={"email": "ALICE@example.com", "password": "secret1"})
        assert response.status_code == 200
        assert response.json() == {"id": created["id"], "email": "alice@example.com"}

    async def test_wrong_password(self, client: AsyncClient):
        await _signup(client)
        response = await client.post("/auth/login", json={"email": "alice@example.com", "password": "wrong!!"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    async def test_unknown_email_same_error(self, client: AsyncClient):
        response = await client.post("/auth/login", json={"email": "nobody@example.com", "password": "secret1"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"


class TestChangePassword:
    async def test_change_password(self, client: AsyncClient, mock_notifier: AsyncMock):
        await _signup(client)
        response = await client.post(
            "/auth/change-password",
            json={"email": "alice@example.com", "oldPassword": "secret1", "newPassword": "secret2"},
        )
        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_notifier.send_password_changed.assert_awaited_once_with("alice@example.com")

        old = await client.post("/auth/login", json={"email": "alice@example.com", "password": "secret1"})
        new = await client.post("/auth/login", json={"email": "alice@example.com", "password": "secret2"})
        assert old.status_code == 401
        assert new.status_code == 200

    async def test_wrong_current_password(self, client: AsyncClient, mock_notifier: AsyncMock):
        await _signup(client)
        response = await client.post(
            "/auth/change-password",
            json={"email": "alice@example.com", "oldPassword": "nope123", "newPassword": "secret2"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Current password is incorrect"
        mock_notifier.send_password_changed.assert_not_awaited()

    async def test_weak_new_password(self, client: AsyncClient):
        await _signup(client)
        response = await client.post(
            "/auth/change-password",
            json={"email": "alice@example.com", "oldPassword": "secret1", "newPassword": "abc"},
        )
        assert response.status_code == 400


class TestDeleteAccount:
    async def test_delete_account(self, client: AsyncClient, mock_notifier: AsyncMock):
        await _signup(client)
        response = await client.post("/auth/delete-account", json={"email": "alice@example.com", "password": "secret1"})
        assert response.status_code == 200
        mock_notifier.send_account_deleted.assert_awaited_once_with("alice@example.com")

        login = await client.post("/auth/login", json={"email": "alice@example.com", "password": "secret1"})
        assert login.status_code == 401

    async def test_delete_frees_email_for_signup(self, client: AsyncClient):
        await _signup(client)
        await client.post("/auth/delete-account", json={"email": "alice@example.com", "password": "secret1"})
        assert (await _signup(client)).status_code == 201

    async def test_delete_with_wrong_password(self, client: AsyncClient):
        await _signup(client)
        response = await client.post("/auth/delete-account", json={"email": "alice@example.com", "password": "bad-pass"})
        assert response.status_code == 401


class TestAuthService:
    async def test_duplicate_raises(self):
        storage = MemoryStorage()
        await create_user(storage, "dup@example.com", "secret1")
        with pytest.raises(DuplicateEmailError):
            await create_user(storage, "DUP@example.com", "secret1")

    async def test_password_stored_hashed(self):
        storage = MemoryStorage()
        await create_user(storage, "h@example.com", "secret1")
        user = await storage.get_user_by_email("h@example.com")
        assert user is not None
        assert user.password_hash != "secret1"
        assert user.password_hash.startswith("$argon2id$")

    async def test_verify_credentials_malformed_email(self):
        assert await verify_credentials(MemoryStorage(), "bad email", "secret1") is None

    async def test_verify_credentials_unknown_and_wrong_password(self):
        storage = MemoryStorage()
        await create_user(storage, "v@example.com", "secret1")
        assert await verify_credentials(storage, "nobody@example.com", "secret1") is None
        assert await verify_credentials(storage, "v@example.com", "wrong-pass") is None
        user = await verify_credentials(storage, "V@Example.com", "secret1")
        assert user is not None
        assert user.email == "v@example.com"

    async def test_empty_password_rejected(self):
        with pytest.raises(ValidationError):
            await create_user(MemoryStorage(), "e@example.com", "")
