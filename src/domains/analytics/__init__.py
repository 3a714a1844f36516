# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics domain services.

- Mastery: online per-submission updates of the context mastery cache
- Difficulty: offline batch difficulty snapshots per context and period

Usage:
    from src.domains.analytics import MasteryAggregator

    aggregator = MasteryAggregator(db)
    state = await aggregator.update_mastery(student_id, key, performance)

    from src.domains.analytics import DifficultyMetricsCalculator

    calculator = DifficultyMetricsCalculator(db)
    metric = await calculator.recompute(key, period_start, period_end)
"""

from src.domains.analytics.difficulty import (
    DifficultyMetricsCalculator,
    RecomputeSummary,
    calculate_difficulty_metric,
    classify_difficulty,
    discrimination_index,
)
from src.domains.analytics.mastery import (
    MasteryAggregator,
    apply_performance,
    overall_mastery,
)

__all__ = [
    # Mastery
    "MasteryAggregator",
    "apply_performance",
    "overall_mastery",
    # Difficulty
    "DifficultyMetricsCalculator",
    "RecomputeSummary",
    "calculate_difficulty_metric",
    "classify_difficulty",
    "discrimination_index",
]
