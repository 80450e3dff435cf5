"""Fulfillment tables.

Creates users, orders, access_codes, discord_access, obywatel_forms and the
payment_events webhook ledger.

Revision ID: 001_fulfillment_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_fulfillment_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all fulfillment tables."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- orders ---
    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("product_id", sa.String(128), nullable=False),
        sa.Column("product_name", sa.String(256), nullable=False),
        sa.Column("price", sa.String(64), nullable=False),
        sa.Column("stripe_session_id", sa.String(255), nullable=True, unique=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('pending', 'paid', 'failed')", name="ck_orders_status"),
    )
    op.create_index("ix_orders_email", "orders", ["email"])

    # --- access_codes ---
    op.create_table(
        "access_codes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(128), nullable=False, unique=True),
        sa.Column("product_type", sa.String(16), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("order_id", sa.String(255), nullable=True, unique=True),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("product_type IN ('obywatel', 'receipts')", name="ck_access_codes_product_type"),
    )
    op.create_index("ix_access_codes_unused", "access_codes", ["product_type", "is_used"])

    # --- discord_access ---
    op.create_table(
        "discord_access",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("discord_user_id", sa.String(64), nullable=False, server_default="pending"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("stripe_session_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- obywatel_forms ---
    op.create_table(
        "obywatel_forms",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("order_id", sa.String(255), nullable=False),
        sa.Column("form_data", postgresql.JSONB(), nullable=False),
        sa.Column("access_link", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_obywatel_forms_email", "obywatel_forms", ["email"])

    # --- payment_events ---
    op.create_table(
        "payment_events",
        sa.Column("session_id", sa.String(255), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("payment_link", sa.String(255), nullable=True),
        sa.Column("product_family", sa.String(16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop all fulfillment tables."""
    op.drop_table("payment_events")
    op.drop_index("ix_obywatel_forms_email", table_name="obywatel_forms")
    op.drop_table("obywatel_forms")
    op.drop_table("discord_access")
    op.drop_index("ix_access_codes_unused", table_name="access_codes")
    op.drop_table("access_codes")
    op.drop_index("ix_orders_email", table_name="orders")
    op.drop_table("orders")
    op.drop_table("users")
