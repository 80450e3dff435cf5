"""Shared FastAPI dependencies.

Routers receive their collaborators through these functions so tests can
swap them with ``app.dependency_overrides``.
"""

from mamba.clock import Clock, get_clock
from mamba.discord.client import DiscordRoleClient, get_role_client
from mamba.email.service import EmailService, get_email_service
from mamba.redis_client import get_redis_or_none
from mamba.storage import Storage, get_storage


def get_notifier() -> EmailService:
    """Email service bound to Redis (for per-recipient rate limiting) when configured."""
    return get_email_service(redis=get_redis_or_none())


__all__ = [
    "Clock",
    "DiscordRoleClient",
    "EmailService",
    "Storage",
    "get_clock",
    "get_notifier",
    "get_role_client",
    "get_storage",
]
