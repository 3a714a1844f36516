# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Context mastery aggregation.

Maintains ContextMasteryCache rows, one per (student, context), from the
stream of scored ContextPerformance rows. Every update is a
read-modify-write, serialized two ways:

1. A keyed asyncio lock per (student, context) within the process.
2. Optimistic versioning in the database: updates only apply when the
   stored version still matches the one read, and first inserts rely on
   the unique constraint. A lost race raises ConcurrencyConflictError and
   is retried.

Mastery formulas:
    mastery_level = total_marks_achieved / total_marks_possible
    weighted_mastery = decay * previous + (1 - decay) * attempt_ratio

The first attempt seeds weighted_mastery with its own ratio. Both values
are clamped to [0, 1]; zero possible marks gives a ratio of 0.

Each state remembers the newest row folded in, ordered by (created_at, id).
A row already applied is skipped. A row older than that mark (a deferred
retry landing after newer attempts) triggers a replay of the performance
log, so the cache always matches rebuild_mastery.

Example:
    aggregator = MasteryAggregator(db)
    state = await aggregator.update_mastery(student_id, key, performance)
    print(f"{state.mastery_level:.2f} after {state.total_attempts} attempts")
"""

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.settings import Settings, get_settings
from src.domains.scoring.exceptions import (
    ConcurrencyConflictError,
    MasteryUnavailableError,
)
from src.infrastructure.database.connection import DatabaseManager
from src.infrastructure.database.models.analytics import ContextMasteryCache
from src.infrastructure.database.models.scoring import ContextPerformance
from src.models.analytics import ContextMasteryResponse, MasteryOverview
from src.models.scoring import ContextKey, ContextPerformanceResponse
from src.utils.datetime import ensure_utc, utc_now
from src.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

MASTERED_THRESHOLD = 0.8
STRUGGLING_THRESHOLD = 0.3

_LOG_START = datetime.min.replace(tzinfo=timezone.utc)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _ratio(achieved: Decimal, possible: Decimal) -> float:
    if possible <= 0:
        return 0.0
    return _clamp(float(achieved / possible))


def _log_position(
    created_at: datetime | None,
    performance_id: uuid.UUID | None,
) -> tuple[datetime, int]:
    """Position of a row in the performance log, ordered by (created_at, id)."""
    return (ensure_utc(created_at) or _LOG_START, performance_id.int if performance_id else -1)


def apply_performance(
    current: ContextMasteryResponse | None,
    student_id: uuid.UUID,
    context_key: ContextKey,
    performance: ContextPerformanceResponse,
    decay_rate: float,
) -> ContextMasteryResponse:
    """Fold one performance row into a mastery state.

    Pure function: the same state and row always give the same result, so
    replaying a performance log reproduces the cache exactly.

    first_attempt_at and last_attempt_at only ever widen, whatever order
    rows arrive in. weighted_mastery depends on order; MasteryAggregator
    replays the log instead of folding a row older than the state.

    Args:
        current: Existing state, or None before the first attempt.
        student_id: Student the state belongs to.
        context_key: Context the state belongs to.
        performance: The scored row to apply.
        decay_rate: Weight kept by the previous weighted mastery.

    Returns:
        The new state. ``version`` is carried over unchanged.
    """
    attempt_ratio = _ratio(performance.achieved_marks, performance.possible_marks)
    attempted_at = ensure_utc(performance.created_at)

    if current is None or current.total_attempts == 0:
        return ContextMasteryResponse(
            student_id=student_id,
            context_type=context_key.context_type,
            context_value=context_key.context_value,
            mastery_level=attempt_ratio,
            weighted_mastery=attempt_ratio,
            total_attempts=1,
            successful_attempts=1 if performance.is_correct else 0,
            total_marks_achieved=performance.achieved_marks,
            total_marks_possible=performance.possible_marks,
            first_attempt_at=attempted_at,
            last_attempt_at=attempted_at,
            last_performance_id=performance.id,
            last_updated=current.last_updated if current else None,
            version=current.version if current else 0,
        )

    achieved = current.total_marks_achieved + performance.achieved_marks
    possible = current.total_marks_possible + performance.possible_marks
    weighted = decay_rate * current.weighted_mastery + (1 - decay_rate) * attempt_ratio
    is_newest = _log_position(attempted_at, performance.id) > _log_position(
        current.last_attempt_at, current.last_performance_id
    )
    attempt_times = [t for t in (current.first_attempt_at, attempted_at) if t is not None]

    return current.model_copy(
        update={
            "mastery_level": _ratio(achieved, possible),
            "weighted_mastery": _clamp(weighted),
            "total_attempts": current.total_attempts + 1,
            "successful_attempts": current.successful_attempts
            + (1 if performance.is_correct else 0),
            "total_marks_achieved": achieved,
            "total_marks_possible": possible,
            "first_attempt_at": min(attempt_times, default=None),
            "last_attempt_at": attempted_at if is_newest else current.last_attempt_at,
            "last_performance_id": (
                performance.id if is_newest else current.last_performance_id
            ),
        }
    )


def overall_mastery(states: Iterable[ContextMasteryResponse]) -> float:
    """Attempt-weighted mean mastery across contexts.

    Falls back to the plain mean when no attempts are recorded.
    """
    states = list(states)
    if not states:
        return 0.0
    total_weight = sum(s.total_attempts for s in states)
    if total_weight > 0:
        return sum(s.mastery_level * s.total_attempts for s in states) / total_weight
    return sum(s.mastery_level for s in states) / len(states)


class MasteryAggregator:
    """Service layer for context mastery.

    Attributes:
        settings: Application settings (decay rate and retry budget).
    """

    # Shared so that every aggregator in the process serializes on the same keys.
    _locks = KeyedLock()

    def __init__(self, db: DatabaseManager, settings: Settings | None = None) -> None:
        self._db = db
        self.settings = settings or get_settings()

    async def update_mastery(
        self,
        student_id: uuid.UUID,
        context_key: ContextKey,
        performance: ContextPerformanceResponse,
    ) -> ContextMasteryResponse:
        """Apply one performance row to the student's mastery for a context.

        Args:
            student_id: Student who made the attempt.
            context_key: Context the attempt was made on.
            performance: The persisted performance row.

        Returns:
            The updated mastery state.

        Raises:
            MasteryUnavailableError: If conflicting writers win every retry.
            DatabaseError: If the database cannot be reached.
        """
        if performance.created_at is None:
            performance = performance.model_copy(update={"created_at": utc_now()})

        decay_rate = self.settings.mastery.decay_rate
        max_retries = self.settings.mastery.max_retries

        async with self._locks.hold((student_id, context_key)):
            for attempt in range(1, max_retries + 1):
                current = await self._load(student_id, context_key)
                applied = current is not None and current.total_attempts > 0

                if applied and performance.id is not None and (
                    performance.id == current.last_performance_id
                ):
                    logger.info(
                        "Performance %s already applied to mastery for student %s on %s",
                        performance.id,
                        student_id,
                        context_key,
                    )
                    return current

                try:
                    if applied and _log_position(
                        performance.created_at, performance.id
                    ) <= _log_position(current.last_attempt_at, current.last_performance_id):
                        logger.info(
                            "Performance %s is older than mastery for student %s on %s, "
                            "replaying the log",
                            performance.id,
                            student_id,
                            context_key,
                        )
                        replayed = await self._replay_log(student_id, context_key)
                        if replayed is None:
                            return current
                        saved = await self._save(
                            replayed.model_copy(update={"version": current.version}),
                            expected_version=current.version,
                        )
                    else:
                        updated = apply_performance(
                            current, student_id, context_key, performance, decay_rate
                        )
                        saved = await self._save(
                            updated, expected_version=current.version if current else None
                        )
                except ConcurrencyConflictError:
                    logger.warning(
                        "Mastery write conflict for student %s on %s (attempt %d/%d)",
                        student_id,
                        context_key,
                        attempt,
                        max_retries,
                    )
                    continue

                logger.debug(
                    "Updated mastery for student %s on %s: level=%.3f weighted=%.3f attempts=%d",
                    student_id,
                    context_key,
                    saved.mastery_level,
                    saved.weighted_mastery,
                    saved.total_attempts,
                )
                return saved

        raise MasteryUnavailableError(
            f"Mastery for student {student_id} on {context_key} is unavailable",
            {
                "student_id": str(student_id),
                "context_type": context_key.context_type,
                "context_value": context_key.context_value,
                "retries": max_retries,
            },
        )

    async def get_mastery(
        self,
        student_id: uuid.UUID,
        context_key: ContextKey,
    ) -> ContextMasteryResponse | None:
        """Get a student's mastery for one context, or None if never attempted."""
        return await self._load(student_id, context_key)

    async def get_overview(
        self,
        student_id: uuid.UUID,
        session: AsyncSession | None = None,
    ) -> MasteryOverview:
        """Get a roll-up of a student's mastery across every tracked context.

        Args:
            student_id: Student's unique identifier.
            session: Optional database session for transaction sharing.

        Returns:
            MasteryOverview with aggregated statistics.
        """

        async def _execute(db: AsyncSession) -> MasteryOverview:
            result = await db.execute(
                select(ContextMasteryCache)
                .where(ContextMasteryCache.student_id == student_id)
                .order_by(ContextMasteryCache.context_type, ContextMasteryCache.context_value)
            )
            states = [self._to_response(row) for row in result.scalars().all()]

            return MasteryOverview(
                student_id=student_id,
                overall_mastery=round(overall_mastery(states), 3),
                contexts_tracked=len(states),
                contexts_mastered=sum(
                    1 for s in states if s.mastery_level >= MASTERED_THRESHOLD
                ),
                contexts_learning=sum(
                    1
                    for s in states
                    if STRUGGLING_THRESHOLD <= s.mastery_level < MASTERED_THRESHOLD
                ),
                contexts_struggling=sum(
                    1 for s in states if s.mastery_level < STRUGGLING_THRESHOLD
                ),
                total_attempts=sum(s.total_attempts for s in states),
                contexts=states,
            )

        if session:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def get_overall_scores(
        self,
        student_ids: Iterable[uuid.UUID],
        session: AsyncSession | None = None,
    ) -> dict[uuid.UUID, float]:
        """Get the attempt-weighted overall mastery of several students.

        Students without any cached mastery are left out of the result.
        """
        ids = list(student_ids)
        if not ids:
            return {}

        async def _execute(db: AsyncSession) -> dict[uuid.UUID, float]:
            weighted = func.sum(
                ContextMasteryCache.mastery_level * ContextMasteryCache.total_attempts
            )
            attempts = func.sum(ContextMasteryCache.total_attempts)
            result = await db.execute(
                select(ContextMasteryCache.student_id, weighted, attempts)
                .where(ContextMasteryCache.student_id.in_(ids))
                .group_by(ContextMasteryCache.student_id)
            )
            scores: dict[uuid.UUID, float] = {}
            for student_id, weighted_sum, attempt_sum in result.all():
                if attempt_sum:
                    scores[student_id] = _clamp(float(weighted_sum) / float(attempt_sum))
                else:
                    scores[student_id] = 0.0
            return scores

        if session:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def rebuild_mastery(
        self,
        student_id: uuid.UUID,
        context_key: ContextKey,
    ) -> ContextMasteryResponse | None:
        """Re-derive a mastery row by replaying the performance log.

        Returns:
            The rebuilt state, or None when the student has no attempts.

        Raises:
            MasteryUnavailableError: If another writer changed the row meanwhile.
        """
        async with self._locks.hold((student_id, context_key)):
            state = await self._replay_log(student_id, context_key)
            if state is None:
                return None

            current = await self._load(student_id, context_key)
            state = state.model_copy(update={"version": current.version if current else 0})
            try:
                saved = await self._save(
                    state, expected_version=current.version if current else None
                )
            except ConcurrencyConflictError as e:
                raise MasteryUnavailableError(
                    f"Mastery for student {student_id} on {context_key} changed during rebuild",
                    {"student_id": str(student_id)},
                ) from e

        logger.info(
            "Rebuilt mastery for student %s on %s from %d attempts",
            student_id,
            context_key,
            saved.total_attempts,
        )
        return saved

    async def _replay_log(
        self,
        student_id: uuid.UUID,
        context_key: ContextKey,
    ) -> ContextMasteryResponse | None:
        """Fold every component row of the log, in (created_at, id) order."""
        decay_rate = self.settings.mastery.decay_rate

        async with self._db.get_session() as db:
            result = await db.execute(
                select(ContextPerformance)
                .where(
                    ContextPerformance.student_id == student_id,
                    ContextPerformance.context_type == context_key.context_type,
                    ContextPerformance.context_value == context_key.context_value,
                    ContextPerformance.component_id.is_not(None),
                )
                .order_by(ContextPerformance.created_at, ContextPerformance.id)
            )
            rows = [ContextPerformanceResponse.model_validate(r) for r in result.scalars().all()]

        state: ContextMasteryResponse | None = None
        for row in rows:
            state = apply_performance(state, student_id, context_key, row, decay_rate)
        return state

    async def _load(
        self,
        student_id: uuid.UUID,
        context_key: ContextKey,
    ) -> ContextMasteryResponse | None:
        async with self._db.get_session() as db:
            result = await db.execute(
                select(ContextMasteryCache).where(
                    ContextMasteryCache.student_id == student_id,
                    ContextMasteryCache.context_type == context_key.context_type,
                    ContextMasteryCache.context_value == context_key.context_value,
                )
            )
            row = result.scalar_one_or_none()
            return self._to_response(row) if row else None

    async def _save(
        self,
        state: ContextMasteryResponse,
        expected_version: int | None,
    ) -> ContextMasteryResponse:
        """Write a state, conditional on the version that was read.

        Raises:
            ConcurrencyConflictError: If another writer got there first.
        """
        now = utc_now()
        values = {
            "mastery_level": state.mastery_level,
            "weighted_mastery": state.weighted_mastery,
            "total_attempts": state.total_attempts,
            "successful_attempts": state.successful_attempts,
            "total_marks_achieved": state.total_marks_achieved,
            "total_marks_possible": state.total_marks_possible,
            "first_attempt_at": state.first_attempt_at,
            "last_attempt_at": state.last_attempt_at,
            "last_performance_id": state.last_performance_id,
            "last_updated": now,
        }

        async with self._db.get_session() as db:
            if expected_version is None:
                db.add(
                    ContextMasteryCache(
                        id=uuid.uuid4(),
                        student_id=state.student_id,
                        context_type=state.context_type,
                        context_value=state.context_value,
                        version=1,
                        **values,
                    )
                )
                try:
                    await db.flush()
                except IntegrityError as e:
                    raise ConcurrencyConflictError(
                        "Mastery row was created concurrently",
                        {"student_id": str(state.student_id)},
                    ) from e
                new_version = 1
            else:
                result = await db.execute(
                    update(ContextMasteryCache)
                    .where(
                        ContextMasteryCache.student_id == state.student_id,
                        ContextMasteryCache.context_type == state.context_type,
                        ContextMasteryCache.context_value == state.context_value,
                        ContextMasteryCache.version == expected_version,
                    )
                    .values(version=expected_version + 1, **values)
                )
                if result.rowcount != 1:
                    raise ConcurrencyConflictError(
                        "Mastery row changed since it was read",
                        {
                            "student_id": str(state.student_id),
                            "expected_version": expected_version,
                        },
                    )
                new_version = expected_version + 1

        return state.model_copy(update={"version": new_version, "last_updated": now})

    def _to_response(self, row: ContextMasteryCache) -> ContextMasteryResponse:
        return ContextMasteryResponse(
            student_id=row.student_id,
            context_type=row.context_type,
            context_value=row.context_value,
            mastery_level=float(row.mastery_level),
            weighted_mastery=float(row.weighted_mastery),
            total_attempts=row.total_attempts,
            successful_attempts=row.successful_attempts,
            total_marks_achieved=Decimal(row.total_marks_achieved),
            total_marks_possible=Decimal(row.total_marks_possible),
            first_attempt_at=ensure_utc(row.first_attempt_at),
            last_attempt_at=ensure_utc(row.last_attempt_at),
            last_performance_id=row.last_performance_id,
            last_updated=ensure_utc(row.last_updated),
            version=row.version,
        )
