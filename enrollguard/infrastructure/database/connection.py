# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database connection management using SQLAlchemy async.

Every tenant's enrollments live in one PostgreSQL database; queries are
scoped by tenant id. Uses SQLAlchemy 2.0 async API with asyncpg driver.

The engine is created lazily on first use. Dramatiq worker threads each
run their own event loop (see background.tasks.base), and async engines
are bound to the loop they were created in, so workers obtain a
thread-local manager via get_worker_db_manager().

Example:
    from enrollguard.infrastructure.database.connection import DatabaseManager

    manager = DatabaseManager(settings)
    async with manager.get_session() as session:
        result = await session.execute(select(Tenant))
        tenants = result.scalars().all()
    await manager.close()
"""

import threading
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from enrollguard.core.config.settings import Settings


class DatabaseError(Exception):
    """Base exception for database operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying SQLAlchemy or database error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class DatabaseManager:
    """Owns the async engine and sessionmaker for the platform database.

    Attributes:
        settings: Application settings containing database configuration.
    """

    def __init__(
        self,
        settings: "Settings",
        engine: AsyncEngine | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            settings: Application settings containing database configuration.
            engine: Optional pre-built engine (tests, alternative drivers).
        """
        self._settings = settings
        self._engine: AsyncEngine | None = engine
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get the async engine, creating it on first access.

        Raises:
            DatabaseError: If the engine cannot be created.
        """
        if self._engine is None:
            db = self._settings.database
            try:
                self._engine = create_async_engine(
                    db.url,
                    pool_size=db.pool_size,
                    max_overflow=db.max_overflow,
                    pool_pre_ping=True,
                    pool_recycle=1800,
                    echo=self._settings.debug and self._settings.log_level == "DEBUG",
                )
            except SQLAlchemyError as e:
                raise DatabaseError("Failed to initialize database connection", e) from e
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        """Get the sessionmaker bound to the engine."""
        if self._sessionmaker is None:
            self._sessionmaker = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return self._sessionmaker

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Get an async session.

        The session is committed on success and rolled back on exception.

        Yields:
            AsyncSession for database operations.

        Raises:
            DatabaseError: If a database operation fails.
        """
        async with self.sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError("Database operation failed", e) from e
            except Exception:
                await session.rollback()
                raise

    async def check_connection(self) -> bool:
        """Check if the database is reachable.

        Returns:
            True if the database is reachable, False otherwise.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, DatabaseError, OSError):
            return False

    async def close(self) -> None:
        """Dispose the connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    def reset(self) -> None:
        """Forget the engine without disposing it.

        Used when the owning event loop has been replaced; the old pool
        cannot be awaited from the new loop.
        """
        self._engine = None
        self._sessionmaker = None


# =============================================================================
# WORKER THREAD-LOCAL MANAGER
# =============================================================================

# Each Dramatiq worker thread gets its own manager instance
_thread_local_manager = threading.local()


def get_worker_db_manager() -> DatabaseManager:
    """Get the DatabaseManager for the current worker thread.

    Returns:
        Thread-local DatabaseManager instance.
    """
    manager = getattr(_thread_local_manager, "db_manager", None)

    if manager is None:
        from enrollguard.core.config import get_settings

        manager = DatabaseManager(get_settings())
        _thread_local_manager.db_manager = manager

    return manager


def _clear_thread_db_connections() -> None:
    """Drop the current thread's cached engine.

    Called by run_async() when a new event loop is created for a thread,
    so the engine is rebuilt on the new loop. Safe to call when no
    manager exists for the thread.
    """
    manager = getattr(_thread_local_manager, "db_manager", None)
    if manager is not None:
        manager.reset()


def reset_worker_db_manager() -> None:
    """Reset the worker DB manager for the current thread.

    Primarily used for testing to ensure clean state between tests.
    """
    _clear_thread_db_connections()
    _thread_local_manager.db_manager = None
