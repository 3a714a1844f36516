# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics background tasks.

Tasks for difficulty metric recomputes and deferred mastery updates.
"""

import logging
from datetime import date
from typing import Any
from uuid import UUID

import dramatiq

from src.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from src.infrastructure.background.tasks.base import run_async

# Setup broker before defining actors
setup_dramatiq()

logger = logging.getLogger(__name__)


@dramatiq.actor(
    queue_name=Queues.DIFFICULTY,
    max_retries=2,
    time_limit=120000,  # 2 minutes
    priority=Priority.NORMAL,
)
def recompute_difficulty_metrics(
    context_type: str,
    context_value: str,
    period_start: str,
    period_end: str,
) -> dict[str, Any]:
    """Recompute the difficulty snapshot for one context and period.

    Args:
        context_type: Context type.
        context_value: Context value.
        period_start: First day of the period (YYYY-MM-DD).
        period_end: Last day of the period (YYYY-MM-DD), inclusive.

    Returns:
        The stored snapshot as a dictionary.
    """

    async def _recompute() -> dict[str, Any]:
        from src.domains.analytics.difficulty import DifficultyMetricsCalculator
        from src.infrastructure.database.connection import get_worker_database
        from src.models.scoring import ContextKey

        calculator = DifficultyMetricsCalculator(get_worker_database())
        metric = await calculator.recompute(
            ContextKey(context_type=context_type, context_value=context_value),
            date.fromisoformat(period_start),
            date.fromisoformat(period_end),
        )
        return metric.model_dump(mode="json")

    return run_async(_recompute())


@dramatiq.actor(
    queue_name=Queues.DIFFICULTY,
    max_retries=1,
    time_limit=1800000,  # 30 minutes
    priority=Priority.LOW,
)
def recompute_all_difficulty_metrics(
    period_start: str,
    period_end: str,
) -> dict[str, Any]:
    """Recompute difficulty snapshots for every context active in a period.

    Args:
        period_start: First day of the period (YYYY-MM-DD).
        period_end: Last day of the period (YYYY-MM-DD), inclusive.

    Returns:
        Recompute summary with counts and per-context errors.
    """

    async def _recompute_all() -> dict[str, Any]:
        from src.domains.analytics.difficulty import DifficultyMetricsCalculator
        from src.infrastructure.database.connection import get_worker_database

        calculator = DifficultyMetricsCalculator(get_worker_database())
        summary = await calculator.recompute_all(
            date.fromisoformat(period_start),
            date.fromisoformat(period_end),
        )
        return summary.to_dict()

    return run_async(_recompute_all())


@dramatiq.actor(
    queue_name=Queues.MASTERY,
    max_retries=5,
    min_backoff=1000,  # 1 second
    time_limit=30000,  # 30 seconds
    priority=Priority.HIGH,
)
def update_context_mastery(student_id: str, performance_id: str) -> dict[str, Any]:
    """Apply a committed performance row to the mastery cache.

    Queued when the online update after scoring failed. Raising lets
    Dramatiq retry with backoff. Redelivery is safe: a row the cache already
    holds is skipped, and an older row replays the log.

    Args:
        student_id: Student who made the attempt.
        performance_id: ID of the ContextPerformance row.

    Returns:
        The updated mastery state, or a skip reason.
    """

    async def _update() -> dict[str, Any]:
        from sqlalchemy import select

        from src.domains.analytics.mastery import MasteryAggregator
        from src.infrastructure.database.connection import get_worker_database
        from src.infrastructure.database.models.scoring import ContextPerformance
        from src.models.scoring import ContextPerformanceResponse

        db = get_worker_database()
        async with db.get_session() as session:
            result = await session.execute(
                select(ContextPerformance).where(ContextPerformance.id == UUID(performance_id))
            )
            row = result.scalar_one_or_none()

        if row is None or row.component_id is None:
            logger.warning("Skipping mastery update: performance %s not applicable", performance_id)
            return {"performance_id": performance_id, "processed": False}

        performance = ContextPerformanceResponse.model_validate(row)
        state = await MasteryAggregator(db).update_mastery(
            UUID(student_id), performance.context_key, performance
        )
        return {
            "performance_id": performance_id,
            "processed": True,
            "mastery": state.model_dump(mode="json"),
        }

    return run_async(_update())


def get_analytics_actors() -> list:
    """Get all analytics actors."""
    return [
        recompute_difficulty_metrics,
        recompute_all_difficulty_metrics,
        update_context_mastery,
    ]
