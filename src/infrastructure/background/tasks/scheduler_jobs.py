# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler job wrapper actors.

These actors are what APScheduler enqueues. Each dispatches the actual
work to other actors.

Actors:
    - daily_difficulty_metrics_job: Runs nightly, queues the difficulty
      recompute for the trailing period
"""

import logging
from typing import Any

import dramatiq

from src.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from src.infrastructure.background.tasks.base import run_async

setup_dramatiq()

logger = logging.getLogger(__name__)


@dramatiq.actor(
    queue_name=Queues.DEFAULT,
    max_retries=1,
    time_limit=60000,  # 1 minute
    priority=Priority.NORMAL,
)
def daily_difficulty_metrics_job() -> dict[str, Any]:
    """Scheduler job: queue the nightly difficulty recompute.

    Returns:
        The queued period, or the failure.
    """
    logger.info("Daily difficulty metrics job triggered")

    async def _execute() -> dict[str, Any]:
        from src.infrastructure.background.scheduler import execute_daily_difficulty_recompute

        return await execute_daily_difficulty_recompute()

    try:
        result = run_async(_execute())
        logger.info(
            "Daily difficulty metrics job completed: period %s..%s",
            result["period_start"],
            result["period_end"],
        )
        return result
    except Exception as e:
        logger.error("Daily difficulty metrics job failed: %s", e, exc_info=True)
        return {"status": "failed", "error": str(e)}


def get_scheduler_job_actors() -> list:
    """Get all scheduler job actors."""
    return [daily_difficulty_metrics_job]
