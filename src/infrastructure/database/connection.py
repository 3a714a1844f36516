# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database connection management using SQLAlchemy async.

The scoring database holds the authored requirements and components, the
append-only performance log, the mastery cache and the difficulty metric
snapshots. DatabaseManager owns one lazily created engine and sessionmaker.

Two access paths are provided:
1. Process-wide manager for FastAPI request handlers (init_database)
2. Thread-local managers for Dramatiq worker threads (get_worker_database)

Example:
    from src.infrastructure.database.connection import init_database

    db = await init_database(settings)

    async with db.get_session() as session:
        result = await session.execute(select(ContextMasteryCache))
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
    from src.core.config.settings import Settings


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
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class DatabaseManager:
    """Lazy async engine and session factory for the scoring database.

    Attributes:
        settings: Application settings.
    """

    def __init__(self, settings: "Settings") -> None:
        self.settings = settings
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get the async engine, creating it on first access.

        Raises:
            DatabaseError: If the engine cannot be created.
        """
        if self._engine is None:
            db = self.settings.database
            try:
                self._engine = create_async_engine(
                    db.url,
                    pool_size=db.pool_size,
                    max_overflow=db.max_overflow,
                    pool_pre_ping=True,
                    pool_recycle=1800,
                    echo=False,
                )
            except SQLAlchemyError as e:
                raise DatabaseError("Failed to create database engine", e) from e
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
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
        """Get an async session that commits on success and rolls back on error.

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
            True if a trivial query succeeds, False otherwise.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, DatabaseError, OSError):
            return False

    async def create_tables(self) -> None:
        """Create all tables known to the ORM metadata if missing.

        Raises:
            DatabaseError: If table creation fails.
        """
        from src.infrastructure.database.models import Base

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to create tables", e) from e

    def reset(self) -> None:
        """Forget the cached engine so it is rebuilt on the next access.

        Used when the owning thread switches to a new event loop; the old
        engine is bound to the previous loop and cannot be disposed from here.
        """
        self._engine = None
        self._sessionmaker = None

    async def close(self) -> None:
        """Dispose of the connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
        self.reset()


# =============================================================================
# PROCESS-WIDE MANAGER (API)
# =============================================================================

_database: DatabaseManager | None = None


async def init_database(settings: "Settings") -> DatabaseManager:
    """Initialize the process-wide database manager.

    Called once at application startup.

    Args:
        settings: Application settings containing database configuration.

    Returns:
        The initialized DatabaseManager.
    """
    global _database

    if _database is None:
        _database = DatabaseManager(settings)
        # Build the engine eagerly so misconfiguration fails at startup.
        _ = _database.engine
    return _database


def get_database() -> DatabaseManager:
    """Get the process-wide database manager.

    Raises:
        DatabaseError: If the database has not been initialized.
    """
    if _database is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _database


async def close_database() -> None:
    """Close the process-wide database manager."""
    global _database

    if _database is not None:
        await _database.close()
        _database = None


# =============================================================================
# WORKER THREAD-LOCAL MANAGER
# =============================================================================

# Each Dramatiq worker thread gets its own manager; async engines are bound
# to the event loop they were created in.
_thread_local = threading.local()


def get_worker_database() -> DatabaseManager:
    """Get the DatabaseManager for the current worker thread.

    Returns:
        Thread-local DatabaseManager instance.
    """
    manager = getattr(_thread_local, "db_manager", None)

    if manager is None:
        from src.core.config import get_settings

        manager = DatabaseManager(get_settings())
        _thread_local.db_manager = manager

    return manager


def _clear_thread_db_connections() -> None:
    """Drop the current thread's cached engine.

    Called by run_async() when a new event loop is created for a thread.
    """
    manager = getattr(_thread_local, "db_manager", None)
    if manager is not None:
        manager.reset()


def reset_worker_database() -> None:
    """Reset the worker manager for the current thread."""
    manager = getattr(_thread_local, "db_manager", None)
    if manager is not None:
        manager.reset()
        _thread_local.db_manager = None
