"""
Payment event handling and fulfillment dispatch.

A completed checkout becomes exactly one fulfillment:

    receipts            Discord access record (pending until /link) + instructions email
    obywatel / basic    one access code from the pool + code email
    obywatel / premium  ticket instructions email only

Redelivery of the same session is safe at every step. The payment_events
ledger short-circuits sessions already fulfilled, and each write is keyed by
the session id so a redelivery racing the first delivery reuses the same
code or access record. Records are written first; emails and role grants
run afterwards and only log on failure.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from mamba.codes.service import claim_code
from mamba.config import get_settings
from mamba.discord.service import grant_for_payment
from mamba.errors import PoolContendedError, PoolExhaustedError
from mamba.orders.service import settle_session
from mamba.payments.products import Fulfillment, ProductPolicy, normalize_link_id, policy_for_link
from mamba.payments.schemas import (
    CHECKOUT_COMPLETED,
    CHECKOUT_EXPIRED,
    CHECKOUT_PAYMENT_FAILED,
    CheckoutSession,
    WebhookEvent,
)

if TYPE_CHECKING:
    from mamba.discord.client import DiscordRoleClient
    from mamba.email.service import EmailService
    from mamba.storage import Storage

logger = structlog.get_logger()

Notification = Callable[[], Awaitable[object]]


@dataclass(frozen=True)
class WebhookOutcome:
    """What the handler did with one event. Never an error for the processor."""

    status: str  # fulfilled | duplicate | ignored | rejected | exhausted | failed | settled
    session_id: str | None = None
    fulfillment: Fulfillment | None = None
    reason: str | None = None

    @property
    def duplicate(self) -> bool:
        return self.status == "duplicate"

    def response_body(self) -> dict[str, bool]:
        body = {"received": True}
        if self.duplicate:
            body["duplicate"] = True
        return body


@dataclass
class FulfillmentContext:
    storage: Storage
    notifier: EmailService
    role_client: DiscordRoleClient
    now: datetime


# ---------------------------------------------------------------------------
# Strategies: persist, then return the notifications to send
# ---------------------------------------------------------------------------


async def _fulfill_discord_access(
    ctx: FulfillmentContext, session: CheckoutSession, email: str, policy: ProductPolicy
) -> list[Notification]:
    days = policy.access_days(get_settings().default_access_days)
    record, _ = await grant_for_payment(ctx.storage, email, session.id, days, now=ctx.now)

    notifications: list[Notification] = [
        lambda: ctx.notifier.send_receipts_instructions(email, record.expires_at),
    ]
    if record.is_bound:
        # renewal of an already linked account
        notifications.append(lambda: ctx.role_client.add_role(record.discord_user_id))
    return notifications


async def _fulfill_access_code(
    ctx: FulfillmentContext, session: CheckoutSession, email: str, policy: ProductPolicy
) -> list[Notification]:
    code = await claim_code(ctx.storage, policy.family.value, email, now=ctx.now, claim_key=session.id)
    generator_link = get_settings().generator_link
    return [lambda: ctx.notifier.send_access_code(email, code.code, generator_link)]


async def _fulfill_ticket(
    ctx: FulfillmentContext, session: CheckoutSession, email: str, policy: ProductPolicy
) -> list[Notification]:
    return [lambda: ctx.notifier.send_premium_ticket(email)]


Strategy = Callable[[FulfillmentContext, CheckoutSession, str, ProductPolicy], Awaitable[list[Notification]]]

STRATEGIES: dict[Fulfillment, Strategy] = {
    Fulfillment.DISCORD_ACCESS: _fulfill_discord_access,
    Fulfillment.ACCESS_CODE: _fulfill_access_code,
    Fulfillment.TICKET: _fulfill_ticket,
}

_missing = set(Fulfillment) - set(STRATEGIES)
if _missing:
    msg = f"Fulfillment strategies missing for: {sorted(f.value for f in _missing)}"
    raise RuntimeError(msg)


async def _notify(notifications: list[Notification], session_id: str) -> None:
    for send in notifications:
        try:
            ok = await send()
        except Exception:
            logger.exception("notification_failed", session_id=session_id)
            continue
        if ok is False:
            logger.warning("notification_failed", session_id=session_id)


# ---------------------------------------------------------------------------
# Event handlers
# ---------------------------------------------------------------------------


async def handle_checkout_completed(ctx: FulfillmentContext, session: CheckoutSession) -> WebhookOutcome:
    """Fulfill one completed checkout session at most once."""
    email = session.email
    link_id = normalize_link_id(session.payment_link)
    log = logger.bind(session_id=session.id, payment_link=link_id)

    if not email:
        log.warning("payment_event_missing_email")
        return WebhookOutcome("rejected", session.id, reason="missing email")

    policy = policy_for_link(link_id)
    if policy is None:
        log.warning("payment_event_unknown_link")
        return WebhookOutcome("rejected", session.id, reason="unknown payment link")

    event, created = await ctx.storage.record_payment_event(
        session.id, email, link_id, policy.family.value, now=ctx.now
    )
    if not created and event.fulfilled_at is not None:
        log.info("payment_event_duplicate")
        return WebhookOutcome("duplicate", session.id, policy.fulfillment)

    await settle_session(ctx.storage, session.id, "paid")

    fulfillment = policy.fulfillment
    try:
        notifications = await STRATEGIES[fulfillment](ctx, session, email, policy)
    except PoolExhaustedError:
        # left unfulfilled so a replay after replenishment delivers the code
        log.error("payment_fulfillment_pool_exhausted", product_family=policy.family.value)
        return WebhookOutcome("exhausted", session.id, fulfillment, reason="access code pool exhausted")
    except PoolContendedError:
        log.warning("payment_fulfillment_pool_contended", product_family=policy.family.value)
        return WebhookOutcome("failed", session.id, fulfillment, reason="access code pool busy")
    except Exception:
        log.exception("payment_fulfillment_failed", fulfillment=fulfillment.value)
        return WebhookOutcome("failed", session.id, fulfillment, reason="fulfillment error")

    await ctx.storage.mark_payment_event_fulfilled(session.id, now=ctx.now)
    log.info("payment_fulfilled", fulfillment=fulfillment.value, product=policy.label)

    await _notify(notifications, session.id)
    return WebhookOutcome("fulfilled", session.id, fulfillment)


async def handle_checkout_failed(ctx: FulfillmentContext, session: CheckoutSession) -> WebhookOutcome:
    """Expired or failed checkout: mark the matching pending order failed."""
    order = await settle_session(ctx.storage, session.id, "failed")
    logger.info("payment_checkout_failed", session_id=session.id, order_id=order.id if order else None)
    return WebhookOutcome("settled", session.id)


async def handle_event(ctx: FulfillmentContext, event: WebhookEvent) -> WebhookOutcome:
    """
    Route one authenticated event. Always returns an outcome.

    Unhandled event types are acknowledged and ignored.
    """
    logger.info("payment_event_received", event_id=event.id, event_type=event.type)

    if event.type not in (CHECKOUT_COMPLETED, CHECKOUT_EXPIRED, CHECKOUT_PAYMENT_FAILED):
        return WebhookOutcome("ignored", reason=f"unhandled event type {event.type}")

    try:
        session = event.checkout_session()
    except ValueError:
        logger.warning("payment_event_malformed_session", event_id=event.id, event_type=event.type)
        return WebhookOutcome("rejected", reason="malformed checkout session")

    try:
        if event.type == CHECKOUT_COMPLETED:
            return await handle_checkout_completed(ctx, session)
        return await handle_checkout_failed(ctx, session)
    except Exception:
        logger.exception("payment_event_failed", event_id=event.id, session_id=session.id)
        return WebhookOutcome("failed", session.id, reason="internal error")
