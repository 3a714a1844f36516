# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

Dependencies are used to:
- Get the database manager
- Get service instances

Example:
    @router.get("/mastery/{student_id}")
    async def get_overview(
        student_id: UUID,
        aggregator: MasteryAggregator = Depends(get_mastery_aggregator),
    ):
        ...
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status

from src.core.config import get_settings
from src.domains.analytics.difficulty import DifficultyMetricsCalculator
from src.domains.analytics.mastery import MasteryAggregator
from src.domains.scoring.service import ScoringService
from src.infrastructure.database.connection import (
    DatabaseError,
    DatabaseManager,
    close_database,
    get_database,
    init_database,
)

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


def get_db_manager() -> DatabaseManager:
    """Get the process-wide database manager.

    Raises:
        HTTPException: If the database has not been initialized.
    """
    try:
        return get_database()
    except DatabaseError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized",
        )


DatabaseDep = Annotated[DatabaseManager, Depends(get_db_manager)]


def get_mastery_aggregator(db: DatabaseDep) -> MasteryAggregator:
    return MasteryAggregator(db, get_settings())


def get_scoring_service(
    db: DatabaseDep,
    mastery: Annotated[MasteryAggregator, Depends(get_mastery_aggregator)],
) -> ScoringService:
    return ScoringService(db, get_settings(), mastery=mastery)


def get_difficulty_calculator(
    db: DatabaseDep,
    mastery: Annotated[MasteryAggregator, Depends(get_mastery_aggregator)],
) -> DifficultyMetricsCalculator:
    return DifficultyMetricsCalculator(db, get_settings(), mastery=mastery)
