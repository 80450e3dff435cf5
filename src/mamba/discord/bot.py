"""
Discord bot exposing the access commands.

    /link email          customer binds their purchase email to their account
    /grant user days     admin grants access outside the payment flow
    /revoke email user   admin revokes access

Run with ``python -m mamba.discord.bot``. Replies are short ephemeral
messages; the rules live in ``mamba.discord.service``.
"""

from __future__ import annotations

from datetime import datetime

import discord
import structlog
from discord import app_commands
from discord.ext import commands

from mamba.clock import ensure_aware, utcnow
from mamba.config import Settings, get_settings
from mamba.discord.client import DiscordRoleClient, get_role_client
from mamba.discord.service import admin_grant, link_discord, revoke
from mamba.errors import AccessExpiredError, ConflictError, MambaError, NotFoundError
from mamba.middleware.logging import setup_logging
from mamba.payments.products import MAX_ACCESS_DAYS
from mamba.storage import Storage, close_storage, init_storage

logger = structlog.get_logger()


def _date(value: datetime) -> str:
    return ensure_aware(value).strftime("%Y-%m-%d")


def link_error_message(exc: MambaError, email: str) -> str:
    """User-facing text for a failed ``/link``."""
    if isinstance(exc, NotFoundError):
        return f"The email `{email}` has no Mamba Receipts access."
    if isinstance(exc, AccessExpiredError):
        return f"Access for `{email}` has expired."
    if isinstance(exc, ConflictError):
        return "This email is already linked to another Discord account."
    return exc.message


class AccessCog(commands.Cog):
    def __init__(self, bot: commands.Bot, storage: Storage, role_client: DiscordRoleClient) -> None:
        self.bot = bot
        self.storage = storage
        self.role_client = role_client

    @app_commands.command(name="link", description="Link your purchase email to receive Mamba Receipts access")
    @app_commands.describe(email="Email used for the Mamba Receipts purchase")
    async def link_command(self, interaction: discord.Interaction, email: str) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            result = await link_discord(
                self.storage, self.role_client, email, str(interaction.user.id), now=utcnow()
            )
        except MambaError as exc:
            await interaction.followup.send(link_error_message(exc, email), ephemeral=True)
            return

        text = "Your account is already linked." if result.already_linked else "Account linked!"
        text += f" Access is valid until **{_date(result.access.expires_at)}**."
        if not result.role_granted:
            text += " The role could not be assigned right now, please contact support."
        await interaction.followup.send(text, ephemeral=True)

    @app_commands.command(name="grant", description="[ADMIN] Grant Mamba Receipts access to a user")
    @app_commands.describe(user="Discord user to grant access to", days="Number of days of access")
    @app_commands.default_permissions(administrator=True)
    @app_commands.guild_only()
    async def grant_command(
        self,
        interaction: discord.Interaction,
        user: discord.User,
        days: app_commands.Range[int, 1, MAX_ACCESS_DAYS],
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            record = await admin_grant(self.storage, self.role_client, str(user.id), days, now=utcnow())
        except MambaError as exc:
            await interaction.followup.send(f"Could not grant access: {exc.message}", ephemeral=True)
            return

        expiry = _date(record.expires_at)
        try:
            await user.send(
                f"**You have received Mamba Receipts access!**\n\n"
                f"Access for: {days} days\nExpires: {expiry}"
            )
            dm_note = "DM sent."
        except discord.HTTPException:
            logger.warning("discord_dm_failed", discord_user_id=str(user.id))
            dm_note = "Could not DM the user."
        await interaction.followup.send(f"Granted access to {user.mention} until **{expiry}**. {dm_note}", ephemeral=True)

    @app_commands.command(name="revoke", description="[ADMIN] Revoke Mamba Receipts access")
    @app_commands.describe(email="Email to revoke access from", user="Discord user to remove the role from")
    @app_commands.default_permissions(administrator=True)
    @app_commands.guild_only()
    async def revoke_command(self, interaction: discord.Interaction, email: str, user: discord.User) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            await revoke(self.storage, self.role_client, email, str(user.id))
        except MambaError as exc:
            await interaction.followup.send(f"Could not revoke access: {exc.message}", ephemeral=True)
            return
        await interaction.followup.send(f"Revoked access for `{email}` from {user.mention}.", ephemeral=True)


class MambaBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        super().__init__(command_prefix=commands.when_mentioned, intents=discord.Intents.default())
        self.settings = settings
        self.storage: Storage | None = None

    async def setup_hook(self) -> None:
        self.storage = await init_storage(self.settings)
        await self.add_cog(AccessCog(self, self.storage, get_role_client()))

        if self.settings.discord_guild_id:
            guild = discord.Object(id=int(self.settings.discord_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
        else:
            synced = await self.tree.sync()
        logger.info("discord_commands_synced", count=len(synced))

    async def close(self) -> None:
        await super().close()
        await close_storage()


def main() -> None:
    settings = get_settings()
    setup_logging(settings)
    if not settings.discord_bot_token:
        msg = "MAMBA_DISCORD_BOT_TOKEN is not set"
        raise SystemExit(msg)
    MambaBot(settings).run(settings.discord_bot_token, log_handler=None)


if __name__ == "__main__":
    main()
