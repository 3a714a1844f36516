# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Submission scoring service.

Orchestrates one submission end to end:

1. Resolve and validate the requirement (bounded by a timeout).
2. Assign the attempt number, serialized per (student, question) by a
   keyed lock in the process and a transaction-scoped PostgreSQL advisory
   lock across processes.
3. Score the responses.
4. Persist every ContextPerformance row in one transaction.
5. Feed each component row to the mastery aggregator.

Steps 1-4 either all happen or none do. Mastery updates run after the
commit; if one fails it is logged and queued for a Dramatiq retry, and the
committed rows are left untouched.

Example:
    service = ScoringService(db)
    result = await service.score_submission(
        SubmissionRequest(
            student_id=student_id,
            parent=QuestionRef(id=question_id),
            responses=[ResponseItem(context_type="position", context_value="A")],
        )
    )
    print(f"{result.achieved_marks}/{result.possible_marks}")
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.settings import Settings, get_settings
from src.domains.analytics.mastery import MasteryAggregator
from src.domains.scoring.exceptions import MasteryUnavailableError
from src.domains.scoring.matcher import score
from src.domains.scoring.resolver import RequirementResolver
from src.infrastructure.database.connection import DatabaseError, DatabaseManager
from src.infrastructure.database.models.scoring import ContextPerformance
from src.models.scoring import (
    ContextPerformanceResponse,
    ScoreResult,
    SubmissionRequest,
)
from src.utils.datetime import utc_now
from src.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


class ScoringService:
    """Service for scoring student submissions.

    Attributes:
        settings: Application settings.
    """

    # Attempt numbers are assigned under a per (student, parent) lock shared
    # by every service instance in the process.
    _attempt_locks = KeyedLock()

    def __init__(
        self,
        db: DatabaseManager,
        settings: Settings | None = None,
        resolver: RequirementResolver | None = None,
        mastery: MasteryAggregator | None = None,
    ) -> None:
        self._db = db
        self.settings = settings or get_settings()
        self._resolver = resolver or RequirementResolver(db, self.settings)
        self._mastery = mastery or MasteryAggregator(db, self.settings)

    async def score_submission(self, request: SubmissionRequest) -> ScoreResult:
        """Score and record a submission.

        Args:
            request: The student's submission.

        Returns:
            ScoreResult with the persisted per-context rows.

        Raises:
            RequirementNotFoundError: If the question has no requirement.
            RequirementTimeoutError: If the requirement lookup timed out.
            RequirementValidationError: If the requirement is malformed.
            DatabaseError: If the rows could not be written.
        """
        received_at = utc_now()
        parent = request.parent

        async with self._attempt_locks.hold((request.student_id, parent.kind, parent.id)):
            async with self._db.get_session() as session:
                resolved = await self._resolver.resolve(parent, session=session)
                attempt_number = await self._assign_attempt_number(session, request)

                result = score(
                    resolved,
                    request,
                    attempt_number=attempt_number,
                    negative_marking=self.settings.scoring.negative_marking,
                    recognized_types=self.settings.scoring.context_types,
                )
                rows = self._persist(session, request, result, received_at)
                await session.flush()

        result = result.model_copy(update={"per_context": rows, "received_at": received_at})

        logger.info(
            "Scored submission: student=%s, %s=%s, attempt=%d, marks=%s/%s, rejected=%d",
            request.student_id,
            parent.kind,
            parent.id,
            attempt_number,
            result.achieved_marks,
            result.possible_marks,
            len(result.rejected),
        )

        await self._update_mastery(request.student_id, rows)
        return result

    async def _assign_attempt_number(
        self,
        session: AsyncSession,
        request: SubmissionRequest,
    ) -> int:
        """Get the next attempt number for the student and question.

        Takes pg_advisory_xact_lock on the (student, question) pair first, so
        a concurrent submission in another process waits for this commit
        before reading the latest attempt.

        A caller-supplied number is kept only when it is greater than every
        stored attempt; otherwise the submission becomes the latest attempt.
        """
        parent = request.parent
        await session.execute(
            select(
                func.pg_advisory_xact_lock(
                    func.hashtext(f"{request.student_id}:{parent.kind}:{parent.id}")
                )
            )
        )
        result = await session.execute(
            select(func.max(ContextPerformance.attempt_number)).where(
                ContextPerformance.student_id == request.student_id,
                ContextPerformance.parent_type == parent.kind,
                ContextPerformance.parent_id == parent.id,
            )
        )
        latest = result.scalar() or 0

        if request.attempt_number is None:
            return latest + 1
        if request.attempt_number <= latest:
            logger.warning(
                "Attempt %d for student %s on %s=%s already recorded, assigning %d",
                request.attempt_number,
                request.student_id,
                parent.kind,
                parent.id,
                latest + 1,
            )
            return latest + 1
        return request.attempt_number

    def _persist(
        self,
        session: AsyncSession,
        request: SubmissionRequest,
        result: ScoreResult,
        received_at: datetime,
    ) -> list[ContextPerformanceResponse]:
        created_at = utc_now()
        saved: list[ContextPerformanceResponse] = []

        for row in result.per_context:
            row = row.model_copy(
                update={
                    "id": uuid.uuid4(),
                    "received_at": received_at,
                    "created_at": created_at,
                }
            )
            session.add(
                ContextPerformance(
                    id=row.id,
                    parent_type=request.parent.kind,
                    parent_id=request.parent.id,
                    student_id=request.student_id,
                    session_id=request.session_id,
                    component_id=row.component_id,
                    context_type=row.context_type,
                    context_value=row.context_value,
                    context_label=row.context_label,
                    achieved_marks=row.achieved_marks,
                    possible_marks=row.possible_marks,
                    penalty_marks=row.penalty_marks,
                    is_correct=row.is_correct,
                    is_credited=row.is_credited,
                    outcome=row.outcome.value,
                    confidence_score=row.confidence_score,
                    response_text=row.response_text,
                    time_spent_seconds=row.time_spent_seconds,
                    attempt_number=row.attempt_number,
                    received_at=received_at,
                    created_at=created_at,
                )
            )
            saved.append(row)

        return saved

    async def _update_mastery(
        self,
        student_id: uuid.UUID,
        rows: list[ContextPerformanceResponse],
    ) -> None:
        """Apply committed rows to mastery, queueing a retry on failure."""
        for row in rows:
            if row.component_id is None:
                continue
            try:
                await self._mastery.update_mastery(student_id, row.context_key, row)
            except (MasteryUnavailableError, DatabaseError) as e:
                logger.warning(
                    "Mastery update deferred for student %s on %s: %s",
                    student_id,
                    row.context_key,
                    e,
                )
                self._queue_mastery_update(student_id, row)

    def _queue_mastery_update(
        self,
        student_id: uuid.UUID,
        row: ContextPerformanceResponse,
    ) -> None:
        from src.infrastructure.background.tasks import update_context_mastery

        try:
            update_context_mastery.send(
                student_id=str(student_id),
                performance_id=str(row.id),
            )
        except Exception as e:
            logger.error(
                "Failed to queue mastery update for performance %s: %s",
                row.id,
                e,
                exc_info=True,
            )
