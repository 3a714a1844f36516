# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Context difficulty metrics.

Offline batch statistics over the ContextPerformance log, one snapshot per
(context, calculation period):

- avg_success_rate: correct attempts / attempts
- discrimination_index: success rate of the strongest students minus
  that of the weakest, students ranked by overall mastery
- std_deviation: population standard deviation of per-attempt
  achieved/possible ratios
- difficulty_level: bucketed from avg_success_rate with configured thresholds

Only rows tied to an authored component count, and selected distractors
are left out: a distractor row records a wrong pick, not an attempt on the
distractor's context.

Snapshots are upserted on (context, period). last_calculated is the newest
attempt read, so rerunning over unchanged data writes an identical
snapshot. Small samples are still written, flagged low_confidence.

Usage:
    from src.domains.analytics import DifficultyMetricsCalculator

    calculator = DifficultyMetricsCalculator(db)

    # Trigger async recompute (via Dramatiq)
    calculator.queue_recompute(key, period_start, period_end)

    # Direct recompute (blocking)
    metric = await calculator.recompute(key, period_start, period_end)
"""

import logging
import statistics
import uuid
import warnings
from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.settings import DifficultySettings, Settings, get_settings
from src.domains.analytics.mastery import MasteryAggregator
from src.domains.scoring.exceptions import (
    DifficultyMetricNotFoundError,
    InsufficientDataWarning,
    ScoringError,
)
from src.infrastructure.database.connection import DatabaseError, DatabaseManager
from src.infrastructure.database.models.analytics import ContextDifficultyMetric
from src.infrastructure.database.models.scoring import ContextPerformance
from src.models.analytics import DifficultyLevel, DifficultyMetricResponse
from src.models.scoring import ContextKey, ContextPerformanceResponse, PerformanceOutcome
from src.utils.datetime import ensure_utc, period_bounds

logger = logging.getLogger(__name__)


def classify_difficulty(success_rate: float, settings: DifficultySettings) -> DifficultyLevel:
    """Bucket a success rate into a difficulty level."""
    if success_rate < settings.hard_threshold:
        return DifficultyLevel.HARD
    if success_rate > settings.easy_threshold:
        return DifficultyLevel.EASY
    return DifficultyLevel.MEDIUM


def discrimination_index(
    rows: Sequence[ContextPerformanceResponse],
    mastery_scores: Mapping[uuid.UUID, float],
    group_fraction: float,
) -> float | None:
    """Compute the upper/lower group discrimination index.

    Students are ranked by overall mastery, highest first, ties broken by
    student ID. Students without a score rank as 0.0. Each group holds
    ``round(n * group_fraction)`` students, at least one and never more
    than half. Success rates are pooled over the group's attempts.

    Returns:
        A value in [-1, 1], or None with fewer than two students.
    """
    students = sorted(
        {r.student_id for r in rows},
        key=lambda s: (-mastery_scores.get(s, 0.0), str(s)),
    )
    n = len(students)
    if n < 2:
        return None

    size = min(max(1, round(n * group_fraction)), n // 2)
    top = set(students[:size])
    bottom = set(students[-size:])

    def success_rate(group: set[uuid.UUID]) -> float:
        attempts = [r for r in rows if r.student_id in group]
        return sum(1 for r in attempts if r.is_correct) / len(attempts)

    return success_rate(top) - success_rate(bottom)


def calculate_difficulty_metric(
    context_key: ContextKey,
    period_start: date,
    period_end: date,
    rows: Sequence[ContextPerformanceResponse],
    mastery_scores: Mapping[uuid.UUID, float],
    settings: DifficultySettings,
) -> DifficultyMetricResponse:
    """Compute a difficulty snapshot from performance rows.

    Pure function; ``last_calculated`` is left unset so identical inputs
    give identical snapshots.
    """
    attempts = len(rows)
    correct = sum(1 for r in rows if r.is_correct)
    success = correct / attempts if attempts else 0.0

    ratios = [
        float(r.achieved_marks / r.possible_marks) if r.possible_marks > 0 else 0.0
        for r in rows
    ]
    std_deviation = statistics.pstdev(ratios) if ratios else 0.0

    times = [r.time_spent_seconds for r in rows if r.time_spent_seconds is not None]

    return DifficultyMetricResponse(
        context_type=context_key.context_type,
        context_value=context_key.context_value,
        calculation_period_start=period_start,
        calculation_period_end=period_end,
        avg_success_rate=success,
        discrimination_index=discrimination_index(
            rows, mastery_scores, settings.discrimination_group_fraction
        ),
        std_deviation=std_deviation,
        difficulty_level=classify_difficulty(success, settings),
        student_count=len({r.student_id for r in rows}),
        attempt_count=attempts,
        avg_time_seconds=statistics.fmean(times) if times else None,
        median_time_seconds=float(statistics.median(times)) if times else None,
        low_confidence=attempts < settings.min_sample_size,
    )


class RecomputeSummary:
    """Result of recomputing every active context for a period.

    Attributes:
        period_start: First day of the period.
        period_end: Last day of the period.
        contexts_processed: Snapshots written.
        low_confidence: Snapshots flagged low_confidence.
        errors: Context keys that failed, with their error message.
    """

    def __init__(self, period_start: date, period_end: date) -> None:
        self.period_start = period_start
        self.period_end = period_end
        self.contexts_processed = 0
        self.low_confidence = 0
        self.errors: dict[str, str] = {}

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "period_start": str(self.period_start),
            "period_end": str(self.period_end),
            "contexts_processed": self.contexts_processed,
            "low_confidence": self.low_confidence,
            "errors": dict(self.errors),
        }


class DifficultyMetricsCalculator:
    """Service for context difficulty snapshots.

    Attributes:
        settings: Application settings.
    """

    def __init__(
        self,
        db: DatabaseManager,
        settings: Settings | None = None,
        mastery: MasteryAggregator | None = None,
    ) -> None:
        self._db = db
        self.settings = settings or get_settings()
        self._mastery = mastery or MasteryAggregator(db, self.settings)

    def queue_recompute(
        self,
        context_key: ContextKey,
        period_start: date,
        period_end: date,
    ) -> None:
        """Trigger an async recompute via Dramatiq."""
        from src.infrastructure.background.tasks import recompute_difficulty_metrics

        recompute_difficulty_metrics.send(
            context_type=context_key.context_type,
            context_value=context_key.context_value,
            period_start=period_start.isoformat(),
            period_end=period_end.isoformat(),
        )

        logger.info(
            "Queued difficulty recompute: context=%s, period=%s..%s",
            context_key,
            period_start,
            period_end,
        )

    async def recompute(
        self,
        context_key: ContextKey,
        period_start: date,
        period_end: date,
        mastery_scores: Mapping[uuid.UUID, float] | None = None,
    ) -> DifficultyMetricResponse:
        """Recompute and store the snapshot for one context and period.

        Args:
            context_key: Context to summarize.
            period_start: First day of the period.
            period_end: Last day of the period (inclusive).
            mastery_scores: Overall mastery per student. Read from the
                mastery cache when omitted.

        Returns:
            The stored snapshot.

        Raises:
            ValueError: If period_end precedes period_start.
            DatabaseError: If reading or writing fails.
        """
        start, end = period_bounds(period_start, period_end)

        async with self._db.get_session() as db:
            result = await db.execute(
                select(ContextPerformance)
                .where(
                    ContextPerformance.context_type == context_key.context_type,
                    ContextPerformance.context_value == context_key.context_value,
                    ContextPerformance.component_id.is_not(None),
                    ContextPerformance.outcome != PerformanceOutcome.DISTRACTOR.value,
                    ContextPerformance.created_at >= start,
                    ContextPerformance.created_at < end,
                )
                .order_by(ContextPerformance.created_at, ContextPerformance.id)
            )
            rows = [ContextPerformanceResponse.model_validate(r) for r in result.scalars().all()]

            if mastery_scores is None:
                mastery_scores = await self._mastery.get_overall_scores(
                    {r.student_id for r in rows}, session=db
                )

            metric = calculate_difficulty_metric(
                context_key,
                period_start,
                period_end,
                rows,
                mastery_scores,
                self.settings.difficulty,
            )
            # Stamped with the newest attempt read, never the wall clock.
            as_of = max(
                (ensure_utc(r.created_at) for r in rows if r.created_at is not None),
                default=end,
            )
            metric = metric.model_copy(update={"last_calculated": as_of})

            if metric.low_confidence:
                message = (
                    f"Difficulty for {context_key} over {period_start}..{period_end} "
                    f"is based on {metric.attempt_count} attempts "
                    f"(minimum {self.settings.difficulty.min_sample_size})"
                )
                logger.warning(message)
                warnings.warn(message, InsufficientDataWarning, stacklevel=2)

            await self._upsert(db, metric)

        logger.info(
            "Recomputed difficulty for %s: rate=%.3f level=%s attempts=%d students=%d",
            context_key,
            metric.avg_success_rate,
            metric.difficulty_level.value,
            metric.attempt_count,
            metric.student_count,
        )
        return metric

    async def recompute_all(self, period_start: date, period_end: date) -> RecomputeSummary:
        """Recompute snapshots for every context with activity in the period.

        A failing context is recorded in the summary and does not stop the
        others.
        """
        start, end = period_bounds(period_start, period_end)
        summary = RecomputeSummary(period_start, period_end)

        async with self._db.get_session() as db:
            result = await db.execute(
                select(ContextPerformance.context_type, ContextPerformance.context_value)
                .where(
                    ContextPerformance.component_id.is_not(None),
                    ContextPerformance.outcome != PerformanceOutcome.DISTRACTOR.value,
                    ContextPerformance.created_at >= start,
                    ContextPerformance.created_at < end,
                )
                .distinct()
                .order_by(ContextPerformance.context_type, ContextPerformance.context_value)
            )
            keys = [
                ContextKey(context_type=context_type, context_value=context_value)
                for context_type, context_value in result.all()
            ]

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", InsufficientDataWarning)
            for key in keys:
                try:
                    metric = await self.recompute(key, period_start, period_end)
                except (DatabaseError, ScoringError) as e:
                    logger.error("Difficulty recompute failed for %s: %s", key, e, exc_info=True)
                    summary.errors[str(key)] = str(e)
                    continue
                summary.contexts_processed += 1
                if metric.low_confidence:
                    summary.low_confidence += 1

        logger.info(
            "Difficulty recompute complete: period=%s..%s, contexts=%d, low_confidence=%d, errors=%d",
            period_start,
            period_end,
            summary.contexts_processed,
            summary.low_confidence,
            len(summary.errors),
        )
        return summary

    async def get_metrics(
        self,
        context_key: ContextKey,
        period_start: date,
        period_end: date,
    ) -> DifficultyMetricResponse:
        """Read a stored snapshot.

        Raises:
            DifficultyMetricNotFoundError: If no snapshot exists.
        """
        async with self._db.get_session() as db:
            result = await db.execute(
                select(ContextDifficultyMetric).where(
                    ContextDifficultyMetric.context_type == context_key.context_type,
                    ContextDifficultyMetric.context_value == context_key.context_value,
                    ContextDifficultyMetric.calculation_period_start == period_start,
                    ContextDifficultyMetric.calculation_period_end == period_end,
                )
            )
            row = result.scalar_one_or_none()

        if row is None:
            raise DifficultyMetricNotFoundError(
                f"No difficulty metrics for {context_key} over {period_start}..{period_end}",
                {
                    "context_type": context_key.context_type,
                    "context_value": context_key.context_value,
                    "period_start": str(period_start),
                    "period_end": str(period_end),
                },
            )

        metric = DifficultyMetricResponse.model_validate(row)
        return metric.model_copy(update={"last_calculated": ensure_utc(row.last_calculated)})

    async def _upsert(self, db: AsyncSession, metric: DifficultyMetricResponse) -> None:
        values = metric.model_dump()
        values["difficulty_level"] = metric.difficulty_level.value

        stmt = insert(ContextDifficultyMetric).values(id=uuid.uuid4(), **values)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_context_difficulty_period",
            set_={
                key: stmt.excluded[key]
                for key in values
                if key
                not in (
                    "context_type",
                    "context_value",
                    "calculation_period_start",
                    "calculation_period_end",
                )
            },
        )
        await db.execute(stmt)
