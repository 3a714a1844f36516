# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for PostgreSQL connections.

Example:
    from src.infrastructure.database import init_database

    db = await init_database(settings)
    async with db.get_session() as session:
        result = await session.execute(select(ContextPerformance))
"""

from src.infrastructure.database.connection import (
    DatabaseError,
    DatabaseManager,
    _clear_thread_db_connections,
    close_database,
    get_database,
    get_worker_database,
    init_database,
    reset_worker_database,
)

__all__ = [
    "DatabaseError",
    "DatabaseManager",
    "close_database",
    "get_database",
    "init_database",
    # Worker thread-local manager
    "get_worker_database",
    "reset_worker_database",
    "_clear_thread_db_connections",
]
