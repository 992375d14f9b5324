"""Database dependency injection for FastAPI.

Provides the administrative engine, its session factory and the autocommit
DDL engine as process-wide singletons.
"""

from __future__ import annotations

import threading
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from infrastructure.database.engines import create_admin_engine, create_ddl_engine
from infrastructure.observability import DefaultConnectionProbe
from infrastructure.settings import get_admin_database_settings

# Module-level probe for observability
_probe = DefaultConnectionProbe()

# Module-level engine instances (created on first use)
_admin_engine: AsyncEngine | None = None
_ddl_engine: AsyncEngine | None = None
_admin_sessionmaker: async_sessionmaker[AsyncSession] | None = None

# Thread lock for safe engine initialization
_engine_lock = threading.Lock()


def get_admin_engine() -> AsyncEngine:
    """Get the administrative database engine (singleton).

    Creates engine on first call and caches for subsequent calls.
    Uses double-check locking for thread-safe initialization.
    Also creates and caches the sessionmaker for efficient session creation.

    Returns:
        Configured async engine for the administrative database
    """
    global _admin_engine, _admin_sessionmaker
    if _admin_engine is None:
        with _engine_lock:
            if _admin_engine is None:
                settings = get_admin_database_settings()
                _admin_engine = create_admin_engine(settings)
                _admin_sessionmaker = async_sessionmaker(
                    _admin_engine,
                    expire_on_commit=False,
                    class_=AsyncSession,
                )
                _probe.engine_created(server=settings.server, purpose="admin")
    return _admin_engine


def get_ddl_engine() -> AsyncEngine:
    """Get the autocommit engine used for server-level DDL (singleton)."""
    global _ddl_engine
    if _ddl_engine is None:
        with _engine_lock:
            if _ddl_engine is None:
                settings = get_admin_database_settings()
                _ddl_engine = create_ddl_engine(settings)
                _probe.engine_created(server=settings.server, purpose="ddl")
    return _ddl_engine


def get_admin_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Get the session factory bound to the administrative engine."""
    get_admin_engine()
    assert _admin_sessionmaker is not None
    return _admin_sessionmaker


async def get_admin_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an administrative session (FastAPI dependency).

    The session is configured to NOT auto-commit. Callers must explicitly
    manage transactions using `async with session.begin()`.

    Yields:
        AsyncSession for administrative database operations
    """
    async with get_admin_sessionmaker()() as session:
        yield session


async def close_database_connections() -> None:
    """Close the administrative engines.

    Should be called on application shutdown to properly cleanup connections.
    Also resets the sessionmaker to allow reinitialization.
    """
    global _admin_engine, _ddl_engine, _admin_sessionmaker

    if _admin_engine is not None:
        await _admin_engine.dispose()
        _probe.pool_closed(purpose="admin")
        _admin_engine = None
        _admin_sessionmaker = None

    if _ddl_engine is not None:
        await _ddl_engine.dispose()
        _probe.pool_closed(purpose="ddl")
        _ddl_engine = None
