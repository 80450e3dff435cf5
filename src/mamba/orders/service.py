"""
Order ledger.

Orders start pending and move once, to paid or failed. Re-applying the
current status is a no-op so webhook redelivery can drive updates safely.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from mamba.auth.service import normalize_email
from mamba.errors import InvalidTransitionError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from mamba.db.models import Order
    from mamba.storage import Storage

logger = structlog.get_logger()

VALID_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["paid", "failed"],
    "paid": [],
    "failed": [],
}


def validate_transition(current: str, target: str) -> None:
    """Raise unless ``current -> target`` is an edge of the order state machine."""
    if target not in VALID_TRANSITIONS:
        msg = f"Unknown order status: {target}"
        raise ValidationError(msg)
    if target not in VALID_TRANSITIONS.get(current, []):
        msg = f"Cannot move order from {current} to {target}"
        raise InvalidTransitionError(msg)


async def create_order(
    storage: Storage,
    email: str,
    product_id: str,
    product_name: str,
    price: str,
    *,
    now: datetime,
    stripe_session_id: str | None = None,
) -> Order:
    """Record a new pending order."""
    if not product_id or not product_name or not price:
        msg = "productId, productName and price are required"
        raise ValidationError(msg)
    order = await storage.create_order(
        normalize_email(email),
        product_id,
        product_name,
        price,
        stripe_session_id,
        now=now,
    )
    logger.info("order_created", order_id=order.id, product_id=product_id)
    return order


async def list_orders(storage: Storage, email: str) -> list[Order]:
    return await storage.list_orders_by_email(normalize_email(email))


async def list_paid_orders(storage: Storage, email: str) -> list[Order]:
    return [o for o in await list_orders(storage, email) if o.status == "paid"]


async def update_status(storage: Storage, order_id: str, status: str) -> Order:
    """
    Move an order along the state machine.

    Raises:
        NotFoundError: Unknown order id.
        ValidationError: ``status`` is not a known status.
        InvalidTransitionError: The edge is not allowed, or the order changed
            concurrently to a different status.
    """
    order = await storage.get_order(order_id)
    if order is None:
        msg = "Order not found"
        raise NotFoundError(msg)
    if order.status == status:
        return order

    validate_transition(order.status, status)
    updated = await storage.set_order_status(order_id, order.status, status)
    if updated is None:
        # lost a race; re-read to report the state that won
        current = await storage.get_order(order_id)
        if current is not None and current.status == status:
            return current
        msg = "Order status changed concurrently"
        raise InvalidTransitionError(msg)

    logger.info("order_status_changed", order_id=order_id, status=status)
    return updated


async def settle_session(storage: Storage, session_id: str, status: str) -> Order | None:
    """
    Apply ``status`` to the order created for a checkout session, if any.

    Used by the payment webhook: a missing order or a disallowed edge is
    logged and skipped, never raised.
    """
    order = await storage.get_order_by_stripe_session(session_id)
    if order is None:
        return None
    try:
        return await update_status(storage, order.id, status)
    except InvalidTransitionError:
        logger.warning("order_settle_skipped", order_id=order.id, status=status, current=order.status)
        return None
