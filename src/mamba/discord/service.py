"""
Discord access registry and the linking protocol.

One access record per email. A record starts unbound (``pending``) after a
receipts purchase, binds once to a Discord account through ``/link``, and is
deleted on revoke. Whether a record grants access is computed on read from
its expiry; nothing sweeps expired records.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from mamba.auth.service import normalize_email
from mamba.clock import ensure_aware
from mamba.db.models import PENDING_DISCORD_ID
from mamba.errors import AccessExpiredError, ConflictError, NotFoundError, ValidationError
from mamba.payments.products import MAX_ACCESS_DAYS

if TYPE_CHECKING:
    from mamba.db.models import DiscordAccess
    from mamba.discord.client import DiscordRoleClient
    from mamba.storage import Storage

logger = structlog.get_logger()

ADMIN_EMAIL_DOMAIN = "mamba.local"


@dataclass(frozen=True)
class AccessStatus:
    has_access: bool
    expires_at: datetime | None
    days_remaining: int


@dataclass(frozen=True)
class LinkResult:
    access: DiscordAccess
    already_linked: bool
    role_granted: bool


def admin_email_for(discord_user_id: str) -> str:
    """Synthetic registry key for grants made outside the payment flow."""
    return f"admin-{discord_user_id}@{ADMIN_EMAIL_DOMAIN}"


def registry_key(email: str) -> str:
    """Normalize an email used as a registry key. Synthetic admin keys skip validation."""
    candidate = (email or "").strip().lower()
    if candidate.startswith("admin-") and candidate.endswith(f"@{ADMIN_EMAIL_DOMAIN}"):
        return candidate
    return normalize_email(candidate)


def has_access(record: DiscordAccess | None, now: datetime) -> bool:
    return record is not None and now < ensure_aware(record.expires_at)


def days_remaining(expires_at: datetime, now: datetime) -> int:
    """Whole days left, rounded up; 0 once expired."""
    remaining = (ensure_aware(expires_at) - now).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / 86400)


def _check_days(days: int) -> timedelta:
    if days < 1 or days > MAX_ACCESS_DAYS:
        msg = f"Duration must be between 1 and {MAX_ACCESS_DAYS} days"
        raise ValidationError(msg)
    return timedelta(days=days)


def _check_discord_id(discord_user_id: str) -> str:
    value = (discord_user_id or "").strip()
    if not value or value == PENDING_DISCORD_ID:
        msg = "A Discord user id is required"
        raise ValidationError(msg)
    return value


# ---------------------------------------------------------------------------
# Grants
# ---------------------------------------------------------------------------


async def grant_for_payment(
    storage: Storage,
    email: str,
    session_id: str,
    days: int,
    *,
    now: datetime,
) -> tuple[DiscordAccess, bool]:
    """
    Entitle ``email`` after a receipts purchase, keyed by the payment session.

    A first purchase creates an unbound record. A renewal extends the current
    expiry and keeps the binding. Replaying the same session changes nothing;
    the second value of the result is False in that case.
    """
    record, changed = await storage.grant_discord_access_for_payment(
        email, session_id, _check_days(days), now=now
    )
    if changed:
        logger.info(
            "discord_access_granted",
            access_id=record.id,
            session_id=session_id,
            expires_at=ensure_aware(record.expires_at).isoformat(),
            bound=record.is_bound,
        )
    return record, changed


async def admin_grant(
    storage: Storage,
    role_client: DiscordRoleClient,
    discord_user_id: str | None,
    days: int,
    *,
    now: datetime,
    email: str | None = None,
    order_id: str | None = None,
) -> DiscordAccess:
    """
    Create a fresh access record, replacing any earlier one for the email.

    Without an email the record is keyed by the synthetic admin address of the
    Discord user. Without a Discord user id the record starts unbound.
    """
    duration = _check_days(days)
    user_id = _check_discord_id(discord_user_id) if discord_user_id else None
    if email:
        key = registry_key(email)
    elif user_id:
        key = admin_email_for(user_id)
    else:
        msg = "Either an email or a Discord user id is required"
        raise ValidationError(msg)

    record = await storage.replace_discord_access(
        key,
        user_id or PENDING_DISCORD_ID,
        now + duration,
        now=now,
    )
    logger.info("discord_access_admin_granted", access_id=record.id, order_id=order_id, days=days)

    if user_id:
        await role_client.add_role(user_id)
    return record


# ---------------------------------------------------------------------------
# Linking
# ---------------------------------------------------------------------------


def _reject_unbindable(record: DiscordAccess | None, discord_user_id: str, now: datetime) -> DiscordAccess:
    """Return ``record`` if it can bind to ``discord_user_id``, else raise the error explaining why not."""
    if record is None:
        msg = "No access found for this email"
        raise NotFoundError(msg)
    if not has_access(record, now):
        msg = "Access for this email has expired"
        raise AccessExpiredError(msg)
    if record.discord_user_id not in (PENDING_DISCORD_ID, discord_user_id):
        msg = "This email is already linked to another Discord account"
        raise ConflictError(msg)
    return record


async def link_discord(
    storage: Storage,
    role_client: DiscordRoleClient,
    email: str,
    discord_user_id: str,
    *,
    now: datetime,
) -> LinkResult:
    """
    Bind an email entitlement to a Discord account and grant the role.

    Linking the same account again succeeds without changes.

    Raises:
        NotFoundError: No access record for the email.
        AccessExpiredError: The record has expired.
        ConflictError: The record is bound to a different Discord account.
    """
    email = registry_key(email)
    discord_user_id = _check_discord_id(discord_user_id)

    current = _reject_unbindable(await storage.get_discord_access(email), discord_user_id, now)
    already_linked = current.discord_user_id == discord_user_id

    bound = await storage.bind_discord_user(email, discord_user_id, now=now)
    if bound is None:
        # state changed between the read and the conditional update
        _reject_unbindable(await storage.get_discord_access(email), discord_user_id, now)
        msg = "Access for this email changed, try again"
        raise ConflictError(msg)

    if not already_linked:
        logger.info("discord_access_linked", access_id=bound.id, discord_user_id=discord_user_id)
    role_granted = await role_client.add_role(discord_user_id)
    return LinkResult(access=bound, already_linked=already_linked, role_granted=role_granted)


# ---------------------------------------------------------------------------
# Revoke / status
# ---------------------------------------------------------------------------


async def revoke(
    storage: Storage,
    role_client: DiscordRoleClient,
    email: str,
    discord_user_id: str | None = None,
) -> DiscordAccess:
    """
    Delete the access record and remove the role.

    The role is removed from ``discord_user_id`` when given, else from the
    account the record was bound to.

    Raises:
        NotFoundError: No access record for the email.
    """
    email = registry_key(email)
    record = await storage.delete_discord_access(email)
    if record is None:
        msg = "No access found for this email"
        raise NotFoundError(msg)
    logger.info("discord_access_revoked", access_id=record.id)

    targets = {uid for uid in (discord_user_id, record.discord_user_id) if uid and uid != PENDING_DISCORD_ID}
    for uid in sorted(targets):
        await role_client.remove_role(uid)
    return record


async def access_status(storage: Storage, email: str, *, now: datetime) -> AccessStatus:
    record = await storage.get_discord_access(registry_key(email))
    if record is None:
        return AccessStatus(has_access=False, expires_at=None, days_remaining=0)
    expires_at = ensure_aware(record.expires_at)
    return AccessStatus(
        has_access=has_access(record, now),
        expires_at=expires_at,
        days_remaining=days_remaining(expires_at, now),
    )
