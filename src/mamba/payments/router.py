"""Payment processor webhook."""

from __future__ import annotations

import stripe
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError

from mamba.clock import Clock
from mamba.config import Settings, get_settings
from mamba.dependencies import (
    DiscordRoleClient,
    EmailService,
    Storage,
    get_clock,
    get_notifier,
    get_role_client,
    get_storage,
)
from mamba.payments.schemas import CHECKOUT_COMPLETED, SimulatedCheckoutRequest, WebhookEvent
from mamba.payments.service import FulfillmentContext, handle_event

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["Payments"])
debug_router = APIRouter(prefix="/webhooks", tags=["Payments"])


def verify_signature(payload: bytes, sig_header: str | None, settings: Settings) -> None:
    """
    Check the processor signature header against the webhook secret.

    Without a configured secret, unsigned events are accepted outside
    production only.
    """
    secret = settings.stripe_webhook_secret
    if not secret:
        if settings.environment == "production":
            logger.error("payment_webhook_secret_missing")
            raise HTTPException(status_code=500, detail="Webhook secret not configured")
        return

    if not sig_header:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")
    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            sig_header,
            secret,
            tolerance=settings.stripe_webhook_tolerance_seconds,
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
        logger.warning("payment_webhook_bad_signature")
        raise HTTPException(status_code=400, detail="Invalid signature") from e


def parse_event(payload: bytes) -> WebhookEvent:
    try:
        return WebhookEvent.model_validate_json(payload)
    except PydanticValidationError as e:
        raise HTTPException(status_code=400, detail="Invalid payload") from e


@router.post("/payments")
async def payments_webhook(
    request: Request,
    storage: Storage = Depends(get_storage),  # noqa: B008
    notifier: EmailService = Depends(get_notifier),  # noqa: B008
    role_client: DiscordRoleClient = Depends(get_role_client),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> dict[str, bool]:
    """Receive a processor event. 200 for every authenticated, parseable event."""
    payload = await request.body()
    verify_signature(payload, request.headers.get("stripe-signature"), get_settings())
    event = parse_event(payload)

    ctx = FulfillmentContext(storage=storage, notifier=notifier, role_client=role_client, now=clock())
    outcome = await handle_event(ctx, event)
    return outcome.response_body()


@debug_router.post("/payments/test")
async def simulate_checkout(
    body: SimulatedCheckoutRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
    notifier: EmailService = Depends(get_notifier),  # noqa: B008
    role_client: DiscordRoleClient = Depends(get_role_client),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> dict[str, object]:
    """Run a synthetic completed checkout through the real handler (debug builds only)."""
    now = clock()
    event = WebhookEvent.model_validate(
        {
            "type": CHECKOUT_COMPLETED,
            "data": {
                "object": {
                    "id": f"cs_test_{int(now.timestamp() * 1000)}",
                    "customer_email": body.email,
                    "payment_link": body.link_id,
                }
            },
        }
    )
    ctx = FulfillmentContext(storage=storage, notifier=notifier, role_client=role_client, now=now)
    outcome = await handle_event(ctx, event)
    return {
        **outcome.response_body(),
        "status": outcome.status,
        "sessionId": outcome.session_id,
        "fulfillment": outcome.fulfillment.value if outcome.fulfillment else None,
    }
