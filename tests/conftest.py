"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import time
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response

os.environ["MAMBA_STORAGE_BACKEND"] = "memory"
os.environ["MAMBA_EMAIL_PROVIDER"] = "console"
os.environ["MAMBA_REDIS_URL"] = ""
os.environ["MAMBA_DEBUG"] = "true"
os.environ["MAMBA_ENVIRONMENT"] = "test"
os.environ["MAMBA_LOG_FORMAT"] = "console"
os.environ["MAMBA_STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"

from mamba.clock import get_clock  # noqa: E402
from mamba.config import get_settings  # noqa: E402
from mamba.dependencies import get_notifier, get_role_client  # noqa: E402
from mamba.discord.client import DiscordRoleClient  # noqa: E402
from mamba.email.service import EmailService  # noqa: E402
from mamba.main import create_app  # noqa: E402
from mamba.storage import set_storage  # noqa: E402
from mamba.storage.memory import MemoryStorage  # noqa: E402

get_settings.cache_clear()

WEBHOOK_SECRET = "whsec_test_secret"
FROZEN_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FROZEN_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a processor signature header (``t=...,v1=...``) for a payload."""
    ts = timestamp if timestamp is not None else int(time.time())
    digest = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def checkout_event(
    session_id: str,
    email: str | None = "buyer@example.com",
    link_id: str | None = "28E4gA0l499Dg25eNygEg00",
    event_type: str = "checkout.session.completed",
) -> dict[str, Any]:
    return {
        "id": f"evt_{session_id}",
        "type": event_type,
        "data": {"object": {"id": session_id, "customer_email": email, "payment_link": link_id}},
    }


@pytest.fixture
def make_event() -> Callable[..., dict[str, Any]]:
    return checkout_event


@pytest.fixture
def sign() -> Callable[..., str]:
    return sign_payload


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def mock_notifier() -> AsyncMock:
    """Email service stand-in; every send reports success."""
    notifier = AsyncMock(spec=EmailService)
    for name in (
        "send_access_code",
        "send_receipts_instructions",
        "send_premium_ticket",
        "send_password_changed",
        "send_account_deleted",
    ):
        getattr(notifier, name).return_value = True
    return notifier


@pytest.fixture
def mock_role_client() -> AsyncMock:
    """Discord role client stand-in; every call reports success."""
    client = AsyncMock(spec=DiscordRoleClient)
    client.add_role.return_value = True
    client.remove_role.return_value = True
    return client


@pytest_asyncio.fixture
async def client(
    storage: MemoryStorage,
    clock: FrozenClock,
    mock_notifier: AsyncMock,
    mock_role_client: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app with in-memory storage and mocked side effects."""
    get_settings.cache_clear()
    app = create_app()
    set_storage(storage)
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: mock_notifier
    app.dependency_overrides[get_role_client] = lambda: mock_role_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    set_storage(None)


@pytest.fixture
def post_event(client: AsyncClient) -> Callable[[dict[str, Any]], Awaitable[Response]]:
    """POST a signed event to the payment webhook."""

    async def _post(event: dict[str, Any]) -> Response:
        payload = json.dumps(event)
        return await client.post(
            "/webhooks/payments",
            content=payload,
            headers={"Content-Type": "application/json", "stripe-signature": sign_payload(payload)},
        )

    return _post


@pytest.fixture
def seed_codes(storage: MemoryStorage) -> Callable[..., Awaitable[int]]:
    """Insert codes into the pool."""

    async def _seed(*codes: str, product_type: str = "obywatel") -> int:
        return await storage.seed_access_codes([(c, product_type) for c in codes], now=FROZEN_NOW)

    return _seed
