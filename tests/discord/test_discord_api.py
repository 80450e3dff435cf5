"""Discord access endpoints and the REST role client."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
from httpx import AsyncClient

from mamba.discord.client import DiscordRoleClient, get_role_client, reset_role_client


async def _grant(client: AsyncClient, **body):
    payload = {"email": "r@example.com", **body}
    return await client.post("/discord/grant-access", json=payload)


class TestGrantAccess:
    async def test_grant_default_duration(self, client: AsyncClient):
        response = await _grant(client)
        assert response.status_code == 200
        data = response.json()
        assert data["accessId"]
        assert data["expiresAt"].startswith("2026-02-15T12:00:00")

    async def test_grant_with_discord_user_adds_role(self, client: AsyncClient, mock_role_client: AsyncMock):
        response = await _grant(client, discordUserId="123", durationDays=7)
        assert response.status_code == 200
        assert response.json()["expiresAt"].startswith("2026-01-22")
        mock_role_client.add_role.assert_awaited_once_with("123")

    async def test_duration_out_of_range(self, client: AsyncClient):
        response = await _grant(client, durationDays=1000)
        assert response.status_code == 400

    async def test_malformed_email_is_rejected(self, client: AsyncClient, storage, mock_role_client: AsyncMock):
        response = await _grant(client, email="garbage", discordUserId="123")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email address"}
        assert await storage.get_discord_access("garbage") is None
        mock_role_client.add_role.assert_not_awaited()


class TestLinkAndStatus:
    async def test_link_flow(self, client: AsyncClient, mock_role_client: AsyncMock):
        await _grant(client)

        linked = await client.post("/discord/link", json={"email": "r@example.com", "discordUserId": "123"})
        assert linked.status_code == 200
        assert linked.json()["alreadyLinked"] is False
        assert linked.json()["roleGranted"] is True

        again = await client.post("/discord/link", json={"email": "r@example.com", "discordUserId": "123"})
        assert again.json()["alreadyLinked"] is True

        other = await client.post("/discord/link", json={"email": "r@example.com", "discordUserId": "456"})
        assert other.status_code == 409

    async def test_malformed_email_is_400_everywhere(self, client: AsyncClient):
        status = await client.get("/discord/access/not-an-email")
        assert status.status_code == 400
        assert status.json() == {"error": "Invalid email address"}

        link = await client.post("/discord/link", json={"email": "not-an-email", "discordUserId": "1"})
        assert link.status_code == 400

        revoke = await client.post("/discord/revoke-access", json={"email": "not-an-email"})
        assert revoke.status_code == 400

    async def test_link_unknown_email(self, client: AsyncClient):
        response = await client.post("/discord/link", json={"email": "x@example.com", "discordUserId": "1"})
        assert response.status_code == 404
        assert response.json()["error"] == "No access found for this email"

    async def test_status_tracks_clock(self, client: AsyncClient, clock):
        await _grant(client, durationDays=2)

        active = (await client.get("/discord/access/r@example.com")).json()
        assert active["hasAccess"] is True
        assert active["daysRemaining"] == 2

        clock.advance(days=2)
        expired = (await client.get("/discord/access/r@example.com")).json()
        assert expired["hasAccess"] is False
        assert expired["daysRemaining"] == 0

        link = await client.post("/discord/link", json={"email": "r@example.com", "discordUserId": "1"})
        assert link.status_code == 403

    async def test_status_without_record(self, client: AsyncClient):
        response = await client.get("/discord/access/nobody@example.com")
        assert response.json() == {"hasAccess": False, "expiresAt": None, "daysRemaining": 0}


class TestRevokeAccess:
    async def test_revoke(self, client: AsyncClient, mock_role_client: AsyncMock):
        await _grant(client, discordUserId="123")
        response = await client.post("/discord/revoke-access", json={"email": "r@example.com"})
        assert response.status_code == 200
        assert response.json() == {"success": True}
        mock_role_client.remove_role.assert_awaited_once_with("123")

        status = (await client.get("/discord/access/r@example.com")).json()
        assert status["hasAccess"] is False

    async def test_revoke_unknown_is_404(self, client: AsyncClient):
        response = await client.post("/discord/revoke-access", json={"email": "nobody@example.com"})
        assert response.status_code == 404


class TestDiscordRoleClient:
    def _client(self, handler) -> DiscordRoleClient:
        return DiscordRoleClient(
            bot_token="bot-token",
            guild_id="g1",
            role_id="r1",
            transport=httpx.MockTransport(handler),
        )

    async def test_add_role(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        assert await self._client(handler).add_role("123") is True
        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/api/v10/guilds/g1/members/123/roles/r1"
        assert seen[0].headers["Authorization"] == "Bot bot-token"

    async def test_remove_role(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "DELETE"
            return httpx.Response(204)

        assert await self._client(handler).remove_role("123") is True

    async def test_rejected_request(self):
        client = self._client(lambda request: httpx.Response(403, json={"message": "Missing Permissions"}))
        assert await client.add_role("123") is False

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        assert await self._client(handler).add_role("123") is False

    async def test_unconfigured_client_does_nothing(self):
        client = DiscordRoleClient()
        assert client.is_configured is False
        assert await client.add_role("123") is False

    def test_singleton_reads_settings(self):
        reset_role_client()
        try:
            client = get_role_client()
            assert get_role_client() is client
            assert client.is_configured is False
        finally:
            reset_role_client()
