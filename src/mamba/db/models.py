"""ORM models for the storefront fulfillment tables.

The same classes serve as plain records for the in-memory backend, so every
default that matters is set explicitly by the storage layer rather than
relying on server defaults.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from mamba.db.base import Base

# discord_user_id value until the customer runs the link command
PENDING_DISCORD_ID = "pending"

ORDER_STATUSES = ("pending", "paid", "failed")
PRODUCT_TYPES = ("obywatel", "receipts")


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table. Email is stored lowercased."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class Order(Base):
    """Purchase record. Status moves pending -> paid | failed only."""

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'paid', 'failed')", name="ck_orders_status"),
        Index("ix_orders_email", "email"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    product_name: Mapped[str] = mapped_column(String(256), nullable=False)
    price: Mapped[str] = mapped_column(String(64), nullable=False)
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Access codes
# ---------------------------------------------------------------------------


class AccessCode(Base):
    """Pre-seeded single-use redemption code.

    ``order_id`` holds the payment session (or order) that claimed the code
    and is unique, so one payment can never consume two codes.
    """

    __tablename__ = "access_codes"
    __table_args__ = (
        CheckConstraint("product_type IN ('obywatel', 'receipts')", name="ck_access_codes_product_type"),
        Index("ix_access_codes_unused", "product_type", "is_used"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    code: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    product_type: Mapped[str] = mapped_column(String(16), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    order_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Discord access
# ---------------------------------------------------------------------------


class DiscordAccess(Base):
    """Time-limited Discord role entitlement, one per email."""

    __tablename__ = "discord_access"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    discord_user_id: Mapped[str] = mapped_column(String(64), nullable=False, default=PENDING_DISCORD_ID)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @property
    def is_bound(self) -> bool:
        return self.discord_user_id != PENDING_DISCORD_ID


# ---------------------------------------------------------------------------
# Obywatel forms
# ---------------------------------------------------------------------------


class ObywatelForm(Base):
    """Customer-submitted document form, opaque payload."""

    __tablename__ = "obywatel_forms"
    __table_args__ = (Index("ix_obywatel_forms_email", "email"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    order_id: Mapped[str] = mapped_column(String(255), nullable=False)
    form_data: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )
    access_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Payment events (webhook idempotency ledger)
# ---------------------------------------------------------------------------


class PaymentEvent(Base):
    """One row per completed checkout session seen on the webhook."""

    __tablename__ = "payment_events"

    session_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    payment_link: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_family: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
