"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from mamba.auth.router import router as auth_router
from mamba.codes.router import router as codes_router
from mamba.codes.seed import seed_from_settings
from mamba.config import get_settings
from mamba.discord.router import router as discord_router
from mamba.forms.router import router as forms_router
from mamba.health.router import router as health_router
from mamba.middleware import setup_middleware
from mamba.orders.router import router as orders_router
from mamba.payments.router import debug_router as payments_debug_router
from mamba.payments.router import router as payments_router
from mamba.redis_client import close_redis, init_redis
from mamba.storage import close_storage, init_storage

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    storage = await init_storage(settings)
    await init_redis(settings.redis_url)

    # Seed the access code pool (idempotent)
    inserted = await seed_from_settings(storage)
    if settings.access_code_seed_file:
        logger.info("startup_seed_complete", inserted=inserted)

    yield

    await close_storage()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Mamba Services API",
        description="Storefront fulfillment: payment webhook, access codes, Discord access, accounts",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(orders_router)
    app.include_router(codes_router)
    app.include_router(discord_router)
    app.include_router(forms_router)
    app.include_router(payments_router)
    if settings.debug:
        app.include_router(payments_debug_router)

    return app


app = create_app()
