"""Request/response schemas for order endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from mamba.schemas import CamelModel


class CreateOrderRequest(CamelModel):
    email: str = Field(..., min_length=1, max_length=320)
    product_id: str = Field(..., min_length=1, max_length=128)
    product_name: str = Field(..., min_length=1, max_length=256)
    price: str = Field(..., min_length=1, max_length=64)
    stripe_session_id: str | None = Field(None, max_length=255)


class UpdateOrderStatusRequest(CamelModel):
    status: Literal["pending", "paid", "failed"]


class OrderResponse(CamelModel):
    id: str
    email: str
    product_id: str
    product_name: str
    price: str
    stripe_session_id: str | None = None
    status: str
    created_at: datetime


class PaidOrdersResponse(CamelModel):
    """Whether the customer has any paid order, plus those orders."""

    paid: bool
    orders: list[OrderResponse]
    count: int
