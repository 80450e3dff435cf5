"""Unit tests for the order status state machine."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mamba.errors import InvalidTransitionError, NotFoundError, ValidationError
from mamba.orders.service import (
    VALID_TRANSITIONS,
    create_order,
    settle_session,
    update_status,
    validate_transition,
)
from mamba.storage.memory import MemoryStorage

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class TestValidTransitions:
    def test_pending_can_be_paid_or_failed(self):
        assert VALID_TRANSITIONS["pending"] == ["paid", "failed"]

    def test_terminal_states_have_no_edges(self):
        assert VALID_TRANSITIONS["paid"] == []
        assert VALID_TRANSITIONS["failed"] == []

    @pytest.mark.parametrize("target", ["paid", "failed"])
    def test_pending_edges_allowed(self, target: str):
        validate_transition("pending", target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [("paid", "pending"), ("paid", "failed"), ("failed", "paid"), ("failed", "pending")],
    )
    def test_terminal_edges_rejected(self, current: str, target: str):
        with pytest.raises(InvalidTransitionError):
            validate_transition(current, target)

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            validate_transition("pending", "refunded")


class TestUpdateStatus:
    async def _order(self, storage: MemoryStorage, session_id: str | None = None):
        return await create_order(
            storage,
            "Buyer@Example.com",
            "obywatel-basic",
            "Obywatel",
            "29.99",
            now=NOW,
            stripe_session_id=session_id,
        )

    async def test_new_order_is_pending(self):
        order = await self._order(MemoryStorage())
        assert order.status == "pending"
        assert order.email == "buyer@example.com"

    async def test_pending_to_paid(self):
        storage = MemoryStorage()
        order = await self._order(storage)
        updated = await update_status(storage, order.id, "paid")
        assert updated.status == "paid"

    async def test_same_status_is_noop(self):
        storage = MemoryStorage()
        order = await self._order(storage)
        await update_status(storage, order.id, "paid")
        again = await update_status(storage, order.id, "paid")
        assert again.status == "paid"

    async def test_paid_cannot_fail(self):
        storage = MemoryStorage()
        order = await self._order(storage)
        await update_status(storage, order.id, "paid")
        with pytest.raises(InvalidTransitionError):
            await update_status(storage, order.id, "failed")

    async def test_unknown_order(self):
        with pytest.raises(NotFoundError):
            await update_status(MemoryStorage(), "missing", "paid")


class TestSettleSession:
    async def test_settles_matching_order(self):
        storage = MemoryStorage()
        order = await create_order(storage, "a@example.com", "p", "P", "1", now=NOW, stripe_session_id="cs_1")
        settled = await settle_session(storage, "cs_1", "paid")
        assert settled is not None
        assert settled.id == order.id
        assert settled.status == "paid"

    async def test_no_order_for_session(self):
        assert await settle_session(MemoryStorage(), "cs_none", "paid") is None

    async def test_disallowed_edge_is_skipped(self):
        storage = MemoryStorage()
        await create_order(storage, "a@example.com", "p", "P", "1", now=NOW, stripe_session_id="cs_2")
        await settle_session(storage, "cs_2", "paid")
        assert await settle_session(storage, "cs_2", "failed") is None
        order = await storage.get_order_by_stripe_session("cs_2")
        assert order is not None
        assert order.status == "paid"
