"""
Storage interface.

The store is the single writer for every entity. Each method is one atomic
operation against the backend: callers never hold a lock or a transaction
across two calls, and nothing is cached between requests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from mamba.db.models import (
    AccessCode,
    DiscordAccess,
    ObywatelForm,
    Order,
    PaymentEvent,
    User,
)


class Storage(ABC):
    """Capability set shared by the memory and database backends."""

    # --- Users ---

    @abstractmethod
    async def create_user(self, email: str, password_hash: str, *, now: datetime) -> User:
        """Insert a user. Raises ConflictError if the email is taken."""

    @abstractmethod
    async def get_user_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    async def update_password_hash(self, email: str, password_hash: str) -> bool:
        """Replace the stored hash. Returns False for an unknown email."""

    @abstractmethod
    async def delete_user(self, email: str) -> bool:
        """Hard-delete a user. Returns False for an unknown email."""

    # --- Orders ---

    @abstractmethod
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
        """Insert a pending order. Raises ConflictError on a reused session id."""

    @abstractmethod
    async def get_order(self, order_id: str) -> Order | None: ...

    @abstractmethod
    async def list_orders_by_email(self, email: str) -> list[Order]: ...

    @abstractmethod
    async def get_order_by_stripe_session(self, session_id: str) -> Order | None: ...

    @abstractmethod
    async def set_order_status(self, order_id: str, expected: str, status: str) -> Order | None:
        """Compare-and-set the status. None if missing or not in ``expected``."""

    # --- Access codes ---

    @abstractmethod
    async def seed_access_codes(self, entries: Iterable[tuple[str, str]], *, now: datetime) -> int:
        """Insert (code, product_type) pairs, skipping existing codes. Returns inserted count."""

    @abstractmethod
    async def claim_access_code(
        self,
        product_type: str,
        email: str,
        order_id: str | None,
        *,
        now: datetime,
    ) -> AccessCode | None:
        """
        Atomically take one unused code of ``product_type`` and mark it used.

        When ``order_id`` already owns a code, that code is returned instead of
        consuming another one. Returns None only when no unused code remains.

        Raises:
            PoolContendedError: Unused codes remain but none could be taken.
        """

    @abstractmethod
    async def get_access_code_by_order(self, order_id: str) -> AccessCode | None: ...

    @abstractmethod
    async def count_unused_codes(self, product_type: str) -> int: ...

    # --- Discord access ---

    @abstractmethod
    async def get_discord_access(self, email: str) -> DiscordAccess | None: ...

    @abstractmethod
    async def grant_discord_access_for_payment(
        self,
        email: str,
        session_id: str,
        duration: timedelta,
        *,
        now: datetime,
    ) -> tuple[DiscordAccess, bool]:
        """
        Create or extend the entitlement for a paid session.

        A new record starts unbound with ``expires_at = now + duration``. An
        existing record keeps its binding and is extended from
        ``max(expires_at, now)``. Repeating the same ``session_id`` changes
        nothing. Returns ``(record, changed)``.
        """

    @abstractmethod
    async def replace_discord_access(
        self,
        email: str,
        discord_user_id: str,
        expires_at: datetime,
        *,
        now: datetime,
    ) -> DiscordAccess:
        """Drop any record for ``email`` and create a fresh one (admin grant)."""

    @abstractmethod
    async def bind_discord_user(
        self,
        email: str,
        discord_user_id: str,
        *,
        now: datetime,
    ) -> DiscordAccess | None:
        """
        Conditionally bind ``email`` to ``discord_user_id``.

        Succeeds only if the record exists, is not expired and is unbound or
        already bound to the same id. Returns None otherwise.
        """

    @abstractmethod
    async def delete_discord_access(self, email: str) -> DiscordAccess | None:
        """Remove the record and return it, or None if there was none."""

    # --- Payment events ---

    @abstractmethod
    async def record_payment_event(
        self,
        session_id: str,
        email: str,
        payment_link: str | None,
        product_family: str | None,
        *,
        now: datetime,
    ) -> tuple[PaymentEvent, bool]:
        """Insert-if-absent keyed by session id. Returns ``(event, created)``."""

    @abstractmethod
    async def mark_payment_event_fulfilled(self, session_id: str, *, now: datetime) -> None: ...

    # --- Obywatel forms ---

    @abstractmethod
    async def create_form(
        self,
        email: str,
        order_id: str,
        form_data: dict[str, Any],
        access_link: str | None,
        *,
        now: datetime,
    ) -> ObywatelForm: ...

    @abstractmethod
    async def list_forms_by_email(self, email: str) -> list[ObywatelForm]: ...

    @abstractmethod
    async def mark_form_submitted(self, form_id: str, *, now: datetime) -> ObywatelForm | None: ...

    # --- Lifecycle ---

    @abstractmethod
    async def ping(self) -> None:
        """Raise if the backend is unreachable."""

    async def close(self) -> None:
        """Release backend resources."""
        return None
