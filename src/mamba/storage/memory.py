"""
In-process storage backend.

Every operation runs under one asyncio lock, which makes each call atomic
inside a single process. Records are copied on the way in and out so callers
never hold a live reference into the store.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any, TypeVar

from sqlalchemy import inspect

from mamba.clock import ensure_aware
from mamba.db.models import (
    PENDING_DISCORD_ID,
    AccessCode,
    DiscordAccess,
    ObywatelForm,
    Order,
    PaymentEvent,
    User,
    new_id,
)
from mamba.errors import ConflictError
from mamba.storage.base import Storage

T = TypeVar("T")


def _copy(record: T) -> T:
    """Detached copy of an ORM record with the same column values."""
    mapper = inspect(type(record))
    values = {attr.key: getattr(record, attr.key) for attr in mapper.column_attrs}
    return type(record)(**values)


class MemoryStorage(Storage):
    """Dict-backed store for tests and local runs."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._users: dict[str, User] = {}
        self._orders: dict[str, Order] = {}
        self._codes: dict[str, AccessCode] = {}
        self._access: dict[str, DiscordAccess] = {}
        self._events: dict[str, PaymentEvent] = {}
        self._forms: dict[str, ObywatelForm] = {}

    # ---------------------------------------------------------------------
    # Users
    # ---------------------------------------------------------------------

    async def create_user(self, email: str, password_hash: str, *, now: datetime) -> User:
        async with self._lock:
            if email in self._users:
                msg = "Email already registered"
                raise ConflictError(msg)
            user = User(id=new_id(), email=email, password_hash=password_hash, created_at=now)
            self._users[email] = user
            return _copy(user)

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._lock:
            user = self._users.get(email)
            return _copy(user) if user else None

    async def update_password_hash(self, email: str, password_hash: str) -> bool:
        async with self._lock:
            user = self._users.get(email)
            if user is None:
                return False
            user.password_hash = password_hash
            return True

    async def delete_user(self, email: str) -> bool:
        async with self._lock:
            return self._users.pop(email, None) is not None

    # ---------------------------------------------------------------------
    # Orders
    # ---------------------------------------------------------------------

    async def create_order(
        self,
        email: str,
        product_id: str,
        product_name: str,
        price: str,
        stripe_session_id: str | None,
        *,
        now: datetime,
    ) -> Order:
        async with self._lock:
            if stripe_session_id and any(
                o.stripe_session_id == stripe_session_id for o in self._orders.values()
            ):
                msg = "An order for this checkout session already exists"
                raise ConflictError(msg)
            order = Order(
                id=new_id(),
                email=email,
                product_id=product_id,
                product_name=product_name,
                price=price,
                stripe_session_id=stripe_session_id,
                status="pending",
                created_at=now,
            )
            self._orders[order.id] = order
            return _copy(order)

    async def get_order(self, order_id: str) -> Order | None:
        async with self._lock:
            order = self._orders.get(order_id)
            return _copy(order) if order else None

    async def list_orders_by_email(self, email: str) -> list[Order]:
        async with self._lock:
            orders = [o for o in self._orders.values() if o.email == email]
            orders.sort(key=lambda o: o.created_at, reverse=True)
            return [_copy(o) for o in orders]

    async def get_order_by_stripe_session(self, session_id: str) -> Order | None:
        async with self._lock:
            for order in self._orders.values():
                if order.stripe_session_id == session_id:
                    return _copy(order)
            return None

    async def set_order_status(self, order_id: str, expected: str, status: str) -> Order | None:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None or order.status != expected:
                return None
            order.status = status
            return _copy(order)

    # ---------------------------------------------------------------------
    # Access codes
    # ---------------------------------------------------------------------

    async def seed_access_codes(self, entries: Iterable[tuple[str, str]], *, now: datetime) -> int:
        async with self._lock:
            known = {c.code for c in self._codes.values()}
            inserted = 0
            for code, product_type in entries:
                if code in known:
                    continue
                record = AccessCode(
                    id=new_id(),
                    code=code,
                    product_type=product_type,
                    email=None,
                    order_id=None,
                    is_used=False,
                    used_at=None,
                    created_at=now,
                )
                self._codes[record.id] = record
                known.add(code)
                inserted += 1
            return inserted

    async def claim_access_code(
        self,
        product_type: str,
        email: str,
        order_id: str | None,
        *,
        now: datetime,
    ) -> AccessCode | None:
        async with self._lock:
            if order_id is not None:
                for code in self._codes.values():
                    if code.order_id == order_id:
                        return _copy(code)
            for code in self._codes.values():
                if code.product_type == product_type and not code.is_used:
                    code.is_used = True
                    code.email = email
                    code.order_id = order_id
                    code.used_at = now
                    return _copy(code)
            return None

    async def get_access_code_by_order(self, order_id: str) -> AccessCode | None:
        async with self._lock:
            for code in self._codes.values():
                if code.order_id == order_id:
                    return _copy(code)
            return None

    async def count_unused_codes(self, product_type: str) -> int:
        async with self._lock:
            return sum(1 for c in self._codes.values() if c.product_type == product_type and not c.is_used)

    # ---------------------------------------------------------------------
    # Discord access
    # ---------------------------------------------------------------------

    async def get_discord_access(self, email: str) -> DiscordAccess | None:
        async with self._lock:
            record = self._access.get(email)
            return _copy(record) if record else None

    async def grant_discord_access_for_payment(
        self,
        email: str,
        session_id: str,
        duration: timedelta,
        *,
        now: datetime,
    ) -> tuple[DiscordAccess, bool]:
        async with self._lock:
            record = self._access.get(email)
            if record is None:
                record = DiscordAccess(
                    id=new_id(),
                    email=email,
                    discord_user_id=PENDING_DISCORD_ID,
                    expires_at=now + duration,
                    stripe_session_id=session_id,
                    created_at=now,
                )
                self._access[email] = record
                return _copy(record), True
            if record.stripe_session_id == session_id:
                return _copy(record), False
            record.expires_at = max(ensure_aware(record.expires_at), now) + duration
            record.stripe_session_id = session_id
            return _copy(record), True

    async def replace_discord_access(
        self,
        email: str,
        discord_user_id: str,
        expires_at: datetime,
        *,
        now: datetime,
    ) -> DiscordAccess:
        async with self._lock:
            record = DiscordAccess(
                id=new_id(),
                email=email,
                discord_user_id=discord_user_id,
                expires_at=expires_at,
                stripe_session_id=None,
                created_at=now,
            )
            self._access[email] = record
            return _copy(record)

    async def bind_discord_user(
        self,
        email: str,
        discord_user_id: str,
        *,
        now: datetime,
    ) -> DiscordAccess | None:
        async with self._lock:
            record = self._access.get(email)
            if record is None or ensure_aware(record.expires_at) <= now:
                return None
            if record.discord_user_id not in (PENDING_DISCORD_ID, discord_user_id):
                return None
            record.discord_user_id = discord_user_id
            return _copy(record)

    async def delete_discord_access(self, email: str) -> DiscordAccess | None:
        async with self._lock:
            record = self._access.pop(email, None)
            return _copy(record) if record else None

    # ---------------------------------------------------------------------
    # Payment events
    # ---------------------------------------------------------------------

    async def record_payment_event(
        self,
        session_id: str,
        email: str,
        payment_link: str | None,
        product_family: str | None,
        *,
        now: datetime,
    ) -> tuple[PaymentEvent, bool]:
        async with self._lock:
            existing = self._events.get(session_id)
            if existing is not None:
                return _copy(existing), False
            event = PaymentEvent(
                session_id=session_id,
                email=email,
                payment_link=payment_link,
                product_family=product_family,
                created_at=now,
                fulfilled_at=None,
            )
            self._events[session_id] = event
            return _copy(event), True

    async def mark_payment_event_fulfilled(self, session_id: str, *, now: datetime) -> None:
        async with self._lock:
            event = self._events.get(session_id)
            if event is not None and event.fulfilled_at is None:
                event.fulfilled_at = now

    # ---------------------------------------------------------------------
    # Obywatel forms
    # ---------------------------------------------------------------------

    async def create_form(
        self,
        email: str,
        order_id: str,
        form_data: dict[str, Any],
        access_link: str | None,
        *,
        now: datetime,
    ) -> ObywatelForm:
        async with self._lock:
            form = ObywatelForm(
                id=new_id(),
                email=email,
                order_id=order_id,
                form_data=dict(form_data),
                access_link=access_link,
                created_at=now,
                submitted_at=None,
            )
            self._forms[form.id] = form
            return _copy(form)

    async def list_forms_by_email(self, email: str) -> list[ObywatelForm]:
        async with self._lock:
            forms = [f for f in self._forms.values() if f.email == email]
            forms.sort(key=lambda f: f.created_at, reverse=True)
            return [_copy(f) for f in forms]

    async def mark_form_submitted(self, form_id: str, *, now: datetime) -> ObywatelForm | None:
        async with self._lock:
            form = self._forms.get(form_id)
            if form is None:
                return None
            if form.submitted_at is None:
                form.submitted_at = now
            return _copy(form)

    async def ping(self) -> None:
        return None
