"""Storage backend selection and the process-wide instance."""

from __future__ import annotations

import structlog

from mamba.config import Settings
from mamba.storage.base import Storage
from mamba.storage.memory import MemoryStorage

logger = structlog.get_logger()

_storage: Storage | None = None


async def init_storage(settings: Settings) -> Storage:
    """Create the backend named by ``settings.storage_backend``."""
    global _storage  # noqa: PLW0603
    backend = settings.storage_backend.lower()

    if backend == "memory":
        _storage = MemoryStorage()
    elif backend == "database":
        from mamba.database import create_tables, get_engine, get_session_factory, init_db
        from mamba.storage.sql import SqlStorage

        await init_db(settings.database_url)
        if settings.database_create_tables:
            await create_tables()
        _storage = SqlStorage(get_session_factory(), dialect=get_engine().dialect.name)
    else:
        msg = f"Unsupported storage backend: {settings.storage_backend}"
        raise ValueError(msg)

    logger.info("storage_initialized", backend=backend)
    return _storage


async def close_storage() -> None:
    """Dispose of the backend."""
    global _storage  # noqa: PLW0603
    storage, _storage = _storage, None
    if storage is None:
        return
    await storage.close()
    if not isinstance(storage, MemoryStorage):
        from mamba.database import close_db

        await close_db()


def set_storage(storage: Storage | None) -> None:
    """Install a backend directly (tests, scripts)."""
    global _storage  # noqa: PLW0603
    _storage = storage


def get_storage() -> Storage:
    """Get the storage backend (FastAPI dependency)."""
    if _storage is None:
        msg = "Storage not initialized. Call init_storage() first."
        raise RuntimeError(msg)
    return _storage


__all__ = ["Storage", "close_storage", "get_storage", "init_storage", "set_storage"]
