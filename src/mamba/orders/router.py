"""Order endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from mamba.clock import Clock
from mamba.db.models import Order
from mamba.dependencies import Storage, get_clock, get_storage
from mamba.orders.schemas import (
    CreateOrderRequest,
    OrderResponse,
    PaidOrdersResponse,
    UpdateOrderStatusRequest,
)
from mamba.orders.service import create_order, list_orders, list_paid_orders, update_status

router = APIRouter(prefix="/orders", tags=["Orders"])


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        email=order.email,
        product_id=order.product_id,
        product_name=order.product_name,
        price=order.price,
        stripe_session_id=order.stripe_session_id,
        status=order.status,
        created_at=order.created_at,
    )


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order_endpoint(
    body: CreateOrderRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> OrderResponse:
    """Create a pending order."""
    order = await create_order(
        storage,
        body.email,
        body.product_id,
        body.product_name,
        body.price,
        now=clock(),
        stripe_session_id=body.stripe_session_id,
    )
    return _order_response(order)


@router.get("/{email}", response_model=list[OrderResponse])
async def list_orders_endpoint(
    email: str,
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[OrderResponse]:
    """All orders for an email, newest first."""
    return [_order_response(o) for o in await list_orders(storage, email)]


@router.get("/{email}/paid", response_model=PaidOrdersResponse)
async def paid_orders_endpoint(
    email: str,
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> PaidOrdersResponse:
    """Paid orders for an email."""
    orders = [_order_response(o) for o in await list_paid_orders(storage, email)]
    return PaidOrdersResponse(paid=bool(orders), orders=orders, count=len(orders))


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order_endpoint(
    order_id: str,
    body: UpdateOrderStatusRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> OrderResponse:
    """Move an order to paid or failed."""
    return _order_response(await update_status(storage, order_id, body.status))
