"""
SQLAlchemy storage backend (PostgreSQL in production, SQLite in tests).

Every public method opens its own session and transaction. The two
contention points are pushed into single conditional statements:

- access-code claim: ``UPDATE ... WHERE id = (SELECT ... FOR UPDATE SKIP
  LOCKED LIMIT 1) AND is_used = false RETURNING *``
- Discord bind: ``UPDATE ... WHERE email = ? AND discord_user_id IN
  ('pending', ?) AND expires_at > now RETURNING *``
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import delete, func, or_, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

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
from mamba.errors import ConflictError, PoolContendedError
from mamba.storage.base import Storage

logger = structlog.get_logger()

_CLAIM_ATTEMPTS = 5
_SEED_BATCH = 100


class SqlStorage(Storage):
    """Durable store over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], dialect: str = "postgresql") -> None:
        self._session = session_factory
        self._dialect = dialect

    # ---------------------------------------------------------------------
    # Users
    # ---------------------------------------------------------------------

    async def create_user(self, email: str, password_hash: str, *, now: datetime) -> User:
        user = User(id=new_id(), email=email, password_hash=password_hash, created_at=now)
        try:
            async with self._session() as session, session.begin():
                session.add(user)
        except IntegrityError as e:
            msg = "Email already registered"
            raise ConflictError(msg) from e
        return user

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._session() as session:
            result = await session.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    async def update_password_hash(self, email: str, password_hash: str) -> bool:
        async with self._session() as session, session.begin():
            result = await session.execute(
                update(User).where(User.email == email).values(password_hash=password_hash)
            )
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def delete_user(self, email: str) -> bool:
        async with self._session() as session, session.begin():
            result = await session.execute(delete(User).where(User.email == email))
        return result.rowcount > 0  # type: ignore[attr-defined]

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
        try:
            async with self._session() as session, session.begin():
                session.add(order)
        except IntegrityError as e:
            msg = "An order for this checkout session already exists"
            raise ConflictError(msg) from e
        return order

    async def get_order(self, order_id: str) -> Order | None:
        async with self._session() as session:
            return await session.get(Order, order_id)

    async def list_orders_by_email(self, email: str) -> list[Order]:
        async with self._session() as session:
            result = await session.execute(
                select(Order).where(Order.email == email).order_by(Order.created_at.desc())
            )
            return list(result.scalars().all())

    async def get_order_by_stripe_session(self, session_id: str) -> Order | None:
        async with self._session() as session:
            result = await session.execute(select(Order).where(Order.stripe_session_id == session_id))
            return result.scalar_one_or_none()

    async def set_order_status(self, order_id: str, expected: str, status: str) -> Order | None:
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == expected)
            .values(status=status)
            .returning(Order)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session, session.begin():
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    # ---------------------------------------------------------------------
    # Access codes
    # ---------------------------------------------------------------------

    def _insert(self, model: Any) -> Any:
        """Dialect-specific INSERT that supports ON CONFLICT."""
        if self._dialect == "sqlite":
            return sqlite_insert(model)
        return pg_insert(model)

    async def seed_access_codes(self, entries: Iterable[tuple[str, str]], *, now: datetime) -> int:
        rows = [
            {
                "id": new_id(),
                "code": code,
                "product_type": product_type,
                "is_used": False,
                "created_at": now,
            }
            for code, product_type in entries
        ]
        if not rows:
            return 0
        async with self._session() as session, session.begin():
            before = await session.scalar(select(func.count()).select_from(AccessCode))
            for i in range(0, len(rows), _SEED_BATCH):
                stmt = self._insert(AccessCode).values(rows[i : i + _SEED_BATCH])
                await session.execute(stmt.on_conflict_do_nothing(index_elements=["code"]))
            after = await session.scalar(select(func.count()).select_from(AccessCode))
        return int(after or 0) - int(before or 0)

    async def claim_access_code(
        self,
        product_type: str,
        email: str,
        order_id: str | None,
        *,
        now: datetime,
    ) -> AccessCode | None:
        for _ in range(_CLAIM_ATTEMPTS):
            if order_id is not None:
                existing = await self.get_access_code_by_order(order_id)
                if existing is not None:
                    return existing
            try:
                claimed = await self._claim_once(product_type, email, order_id, now)
            except IntegrityError:
                # another delivery of the same payment claimed first
                logger.info("access_code_claim_raced", order_id=order_id)
                continue
            if claimed is not None:
                return claimed
            if await self.count_unused_codes(product_type) == 0:
                return None
        if order_id is not None:
            existing = await self.get_access_code_by_order(order_id)
            if existing is not None:
                return existing
        logger.warning("access_code_claim_contended", product_type=product_type, order_id=order_id)
        msg = "Access codes are busy, try again"
        raise PoolContendedError(msg)

    async def _claim_once(
        self,
        product_type: str,
        email: str,
        order_id: str | None,
        now: datetime,
    ) -> AccessCode | None:
        pool = aliased(AccessCode)
        candidate = (
            select(pool.id)
            .where(pool.product_type == product_type)
            .where(pool.is_used == False)  # noqa: E712
            .order_by(pool.created_at, pool.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(AccessCode)
            .where(AccessCode.id == candidate)
            .where(AccessCode.is_used == False)  # noqa: E712
            .values(is_used=True, email=email, order_id=order_id, used_at=now)
            .returning(AccessCode)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session, session.begin():
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_access_code_by_order(self, order_id: str) -> AccessCode | None:
        async with self._session() as session:
            result = await session.execute(select(AccessCode).where(AccessCode.order_id == order_id))
            return result.scalar_one_or_none()

    async def count_unused_codes(self, product_type: str) -> int:
        async with self._session() as session:
            count = await session.scalar(
                select(func.count())
                .select_from(AccessCode)
                .where(AccessCode.product_type == product_type)
                .where(AccessCode.is_used == False)  # noqa: E712
            )
            return int(count or 0)

    # ---------------------------------------------------------------------
    # Discord access
    # ---------------------------------------------------------------------

    async def get_discord_access(self, email: str) -> DiscordAccess | None:
        async with self._session() as session:
            result = await session.execute(select(DiscordAccess).where(DiscordAccess.email == email))
            return result.scalar_one_or_none()

    async def grant_discord_access_for_payment(
        self,
        email: str,
        session_id: str,
        duration: timedelta,
        *,
        now: datetime,
    ) -> tuple[DiscordAccess, bool]:
        try:
            return await self._grant_for_payment_once(email, session_id, duration, now)
        except IntegrityError:
            # concurrent first grant for this email inserted the row; retry as an update
            return await self._grant_for_payment_once(email, session_id, duration, now)

    async def _grant_for_payment_once(
        self,
        email: str,
        session_id: str,
        duration: timedelta,
        now: datetime,
    ) -> tuple[DiscordAccess, bool]:
        async with self._session() as session, session.begin():
            result = await session.execute(
                select(DiscordAccess).where(DiscordAccess.email == email).with_for_update()
            )
            record = result.scalar_one_or_none()
            if record is None:
                record = DiscordAccess(
                    id=new_id(),
                    email=email,
                    discord_user_id=PENDING_DISCORD_ID,
                    expires_at=now + duration,
                    stripe_session_id=session_id,
                    created_at=now,
                )
                session.add(record)
                return record, True
            if record.stripe_session_id == session_id:
                return record, False
            record.expires_at = max(ensure_aware(record.expires_at), now) + duration
            record.stripe_session_id = session_id
            return record, True

    async def replace_discord_access(
        self,
        email: str,
        discord_user_id: str,
        expires_at: datetime,
        *,
        now: datetime,
    ) -> DiscordAccess:
        record = DiscordAccess(
            id=new_id(),
            email=email,
            discord_user_id=discord_user_id,
            expires_at=expires_at,
            stripe_session_id=None,
            created_at=now,
        )
        async with self._session() as session, session.begin():
            await session.execute(delete(DiscordAccess).where(DiscordAccess.email == email))
            session.add(record)
        return record

    async def bind_discord_user(
        self,
        email: str,
        discord_user_id: str,
        *,
        now: datetime,
    ) -> DiscordAccess | None:
        stmt = (
            update(DiscordAccess)
            .where(DiscordAccess.email == email)
            .where(
                or_(
                    DiscordAccess.discord_user_id == PENDING_DISCORD_ID,
                    DiscordAccess.discord_user_id == discord_user_id,
                )
            )
            .where(DiscordAccess.expires_at > now)
            .values(discord_user_id=discord_user_id)
            .returning(DiscordAccess)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session, session.begin():
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def delete_discord_access(self, email: str) -> DiscordAccess | None:
        async with self._session() as session, session.begin():
            result = await session.execute(select(DiscordAccess).where(DiscordAccess.email == email))
            record = result.scalar_one_or_none()
            if record is not None:
                await session.delete(record)
            return record

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
        event = PaymentEvent(
            session_id=session_id,
            email=email,
            payment_link=payment_link,
            product_family=product_family,
            created_at=now,
            fulfilled_at=None,
        )
        try:
            async with self._session() as session, session.begin():
                session.add(event)
        except IntegrityError:
            async with self._session() as session:
                existing = await session.get(PaymentEvent, session_id)
            if existing is None:
                raise
            return existing, False
        return event, True

    async def mark_payment_event_fulfilled(self, session_id: str, *, now: datetime) -> None:
        async with self._session() as session, session.begin():
            await session.execute(
                update(PaymentEvent)
                .where(PaymentEvent.session_id == session_id)
                .where(PaymentEvent.fulfilled_at == None)  # noqa: E711
                .values(fulfilled_at=now)
            )

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
        form = ObywatelForm(
            id=new_id(),
            email=email,
            order_id=order_id,
            form_data=dict(form_data),
            access_link=access_link,
            created_at=now,
            submitted_at=None,
        )
        async with self._session() as session, session.begin():
            session.add(form)
        return form

    async def list_forms_by_email(self, email: str) -> list[ObywatelForm]:
        async with self._session() as session:
            result = await session.execute(
                select(ObywatelForm)
                .where(ObywatelForm.email == email)
                .order_by(ObywatelForm.created_at.desc())
            )
            return list(result.scalars().all())

    async def mark_form_submitted(self, form_id: str, *, now: datetime) -> ObywatelForm | None:
        async with self._session() as session, session.begin():
            form = await session.get(ObywatelForm, form_id)
            if form is None:
                return None
            if form.submitted_at is None:
                form.submitted_at = now
            return form

    async def ping(self) -> None:
        async with self._session() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
