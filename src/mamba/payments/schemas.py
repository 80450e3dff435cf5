"""Payment processor webhook payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mamba.payments.products import TEST_PAYMENT_LINK
from mamba.schemas import CamelModel

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"
CHECKOUT_PAYMENT_FAILED = "checkout.session.async_payment_failed"


class CustomerDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str | None = None


class CheckoutSession(BaseModel):
    """The fields of a checkout session object the handler reads."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    customer_email: str | None = None
    customer_details: CustomerDetails | None = None
    payment_link: str | None = None

    @property
    def email(self) -> str | None:
        """Explicit customer_email, else the email collected at checkout."""
        email = self.customer_email or (self.customer_details.email if self.customer_details else None)
        return email.strip().lower() if email and email.strip() else None


class EventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: dict[str, Any]


class WebhookEvent(BaseModel):
    """Envelope of every processor event: ``{type, data: {object}}``."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    type: str = Field(..., min_length=1)
    data: EventData

    def checkout_session(self) -> CheckoutSession:
        return CheckoutSession.model_validate(self.data.object)


class SimulatedCheckoutRequest(CamelModel):
    """Debug trigger: simulate a completed checkout for a payment link."""

    email: str = "test@example.com"
    link_id: str = TEST_PAYMENT_LINK
