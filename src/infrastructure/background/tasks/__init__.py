# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors.

- Analytics: difficulty recomputes, deferred mastery updates
- Scheduler Jobs: periodic scheduled triggers

Usage:
    from src.infrastructure.background.tasks import recompute_difficulty_metrics

    recompute_difficulty_metrics.send("position", "A", "2025-01-01", "2025-01-31")

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4
"""

from src.infrastructure.background.tasks.analytics import (
    get_analytics_actors,
    recompute_all_difficulty_metrics,
    recompute_difficulty_metrics,
    update_context_mastery,
)
from src.infrastructure.background.tasks.base import run_async
from src.infrastructure.background.tasks.scheduler_jobs import (
    daily_difficulty_metrics_job,
    get_scheduler_job_actors,
)

__all__ = [
    # Analytics
    "recompute_difficulty_metrics",
    "recompute_all_difficulty_metrics",
    "update_context_mastery",
    # Scheduler Jobs
    "daily_difficulty_metrics_job",
    # Utilities
    "run_async",
    "get_all_actors",
]


def get_all_actors() -> list:
    """Get list of all defined actors."""
    actors = []
    actors.extend(get_analytics_actors())
    actors.extend(get_scheduler_job_actors())
    return actors
