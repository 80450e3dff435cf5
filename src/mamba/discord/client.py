"""Discord REST client for adding and removing the access role."""

from __future__ import annotations

import httpx
import structlog

from mamba.config import get_settings

logger = structlog.get_logger()

DISCORD_API_BASE = "https://discord.com/api/v10"


class DiscordRoleClient:
    """Grants and removes one guild role through the bot token.

    Every call is best effort: failures are logged and reported as False.
    An unconfigured client does nothing and returns False.
    """

    def __init__(
        self,
        bot_token: str | None = None,
        guild_id: str | None = None,
        role_id: str | None = None,
        base_url: str = DISCORD_API_BASE,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.bot_token = bot_token
        self.guild_id = guild_id
        self.role_id = role_id
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.guild_id and self.role_id)

    def _role_url(self, discord_user_id: str) -> str:
        return f"{self.base_url}/guilds/{self.guild_id}/members/{discord_user_id}/roles/{self.role_id}"

    async def _request(self, method: str, discord_user_id: str, reason: str) -> bool:
        if not self.is_configured:
            logger.info("discord_role_skipped", action=method, discord_user_id=discord_user_id)
            return False

        headers = {
            "Authorization": f"Bot {self.bot_token}",
            "X-Audit-Log-Reason": reason,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, self._role_url(discord_user_id), headers=headers)
        except httpx.HTTPError:
            logger.exception("discord_role_request_failed", action=method, discord_user_id=discord_user_id)
            return False

        if response.status_code != 204:
            logger.warning(
                "discord_role_rejected",
                action=method,
                discord_user_id=discord_user_id,
                status_code=response.status_code,
            )
            return False
        return True

    async def add_role(self, discord_user_id: str, reason: str = "Mamba access granted") -> bool:
        ok = await self._request("PUT", discord_user_id, reason)
        if ok:
            logger.info("discord_role_added", discord_user_id=discord_user_id)
        return ok

    async def remove_role(self, discord_user_id: str, reason: str = "Mamba access revoked") -> bool:
        ok = await self._request("DELETE", discord_user_id, reason)
        if ok:
            logger.info("discord_role_removed", discord_user_id=discord_user_id)
        return ok


_role_client: DiscordRoleClient | None = None


def get_role_client() -> DiscordRoleClient:
    """Get or create the role client singleton (FastAPI dependency)."""
    global _role_client  # noqa: PLW0603
    if _role_client is None:
        settings = get_settings()
        _role_client = DiscordRoleClient(
            bot_token=settings.discord_bot_token,
            guild_id=settings.discord_guild_id,
            role_id=settings.discord_role_id,
        )
    return _role_client


def reset_role_client() -> None:
    """Reset the role client singleton (for testing)."""
    global _role_client  # noqa: PLW0603
    _role_client = None
