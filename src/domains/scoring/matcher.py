# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Response matching and scoring.

Pure scoring of a submission against a resolved requirement. No I/O
happens here: the scoring service resolves the requirement, calls score()
and persists the rows it returns.

Matching is by exact (context_type, context_value) key. A wrong answer is
a normal zero-credit outcome; score() never raises for one.

Policies:
    exact: every correct component must be matched, otherwise the whole
        requirement earns nothing.
    select_n_of_m: fewer than min_required matches earns nothing; at or
        above the floor each matched correct context is credited, in
        alternative_id order, up to max_required.

With negative marking enabled, the marks of each selected distractor are
subtracted from the credited total, which is floored at zero.
"""

import logging
from collections.abc import Iterable
from decimal import Decimal

from src.core.config.settings import DEFAULT_CONTEXT_TYPES
from src.domains.scoring.exceptions import InvalidResponseError
from src.models.scoring import (
    AnswerComponentResponse,
    ContextKey,
    ContextPerformanceResponse,
    PerformanceOutcome,
    RejectedResponse,
    RequirementType,
    ResolvedRequirement,
    ResponseItem,
    ScoreResult,
    SubmissionRequest,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _select_credited(
    resolved: ResolvedRequirement,
    matched: list[AnswerComponentResponse],
) -> tuple[set[int], bool]:
    """Pick the alternative_ids that earn marks under the requirement policy.

    Args:
        resolved: The requirement being scored.
        matched: Correct components matched by the response, in alternative_id order.

    Returns:
        Tuple of (credited alternative_ids, requirement satisfied).
    """
    requirement = resolved.requirement
    k = len(matched)

    if requirement.requirement_type == RequirementType.EXACT:
        satisfied = k == len(resolved.correct_components)
        if not satisfied:
            return set(), False
        return {c.alternative_id for c in matched}, True

    if k < requirement.min_required:
        return set(), False
    return {c.alternative_id for c in matched[: requirement.max_required]}, True


def score(
    resolved: ResolvedRequirement,
    submission: SubmissionRequest,
    *,
    attempt_number: int | None = None,
    negative_marking: bool = False,
    recognized_types: Iterable[str] = DEFAULT_CONTEXT_TYPES,
) -> ScoreResult:
    """Score a submission against a resolved requirement.

    Args:
        resolved: Validated requirement with its components.
        submission: The student's context-tagged responses.
        attempt_number: Attempt number stamped on every row. Defaults to
            the submission's own attempt number, or 1.
        negative_marking: Subtract selected distractor marks from the total.
        recognized_types: Context types accepted in responses.

    Returns:
        ScoreResult with one row per correct component (matched or missed),
        per selected distractor and per response that matched no component.
        Responses with an unrecognized context type are listed in
        ``rejected`` and otherwise ignored.
    """
    recognized = set(recognized_types)
    attempt = attempt_number or submission.attempt_number or 1

    by_key: dict[ContextKey, AnswerComponentResponse] = {
        c.context_key: c for c in resolved.components
    }

    rejected: list[RejectedResponse] = []
    responses: dict[ContextKey, ResponseItem] = {}
    unmatched: list[ResponseItem] = []
    seen: set[ContextKey] = set()

    for item in submission.responses:
        if item.context_type not in recognized:
            error = InvalidResponseError(
                f"Unrecognized context type {item.context_type!r}",
                context_type=item.context_type,
                context_value=item.context_value,
            )
            logger.info(
                "Rejected response from student %s: %s", submission.student_id, error.message
            )
            rejected.append(
                RejectedResponse(
                    context_type=item.context_type,
                    context_value=item.context_value,
                    reason=error.message,
                )
            )
            continue

        key = item.context_key
        if key in seen:
            rejected.append(
                RejectedResponse(
                    context_type=item.context_type,
                    context_value=item.context_value,
                    reason="Duplicate response for context, first occurrence kept",
                )
            )
            continue
        seen.add(key)

        if key in by_key:
            responses[key] = item
        else:
            unmatched.append(item)

    matched_correct = [
        c for c in resolved.correct_components if c.context_key in responses
    ]
    credited_ids, satisfied = _select_credited(resolved, matched_correct)

    def row(
        component: AnswerComponentResponse | None,
        item: ResponseItem | None,
        key: ContextKey,
        outcome: PerformanceOutcome,
    ) -> ContextPerformanceResponse:
        is_credited = component is not None and component.alternative_id in credited_ids
        is_correct_component = component is not None and component.is_correct
        penalty = ZERO
        if outcome == PerformanceOutcome.DISTRACTOR and negative_marking:
            penalty = component.marks
        return ContextPerformanceResponse(
            student_id=submission.student_id,
            session_id=submission.session_id,
            component_id=component.id if component else None,
            context_type=key.context_type,
            context_value=key.context_value,
            context_label=component.context_label if component else None,
            achieved_marks=component.marks if is_credited else ZERO,
            possible_marks=component.marks if is_correct_component else ZERO,
            penalty_marks=penalty,
            is_correct=outcome == PerformanceOutcome.CORRECT,
            is_credited=is_credited,
            outcome=outcome,
            response_text=item.response_text if item else None,
            confidence_score=item.confidence if item else None,
            time_spent_seconds=item.time_spent_seconds if item else None,
            attempt_number=attempt,
        )

    per_context: list[ContextPerformanceResponse] = []
    for component in resolved.components:
        item = responses.get(component.context_key)
        if component.is_correct:
            outcome = PerformanceOutcome.CORRECT if item else PerformanceOutcome.MISSED
        elif item:
            outcome = PerformanceOutcome.DISTRACTOR
        else:
            continue
        per_context.append(row(component, item, component.context_key, outcome))

    for item in unmatched:
        per_context.append(row(None, item, item.context_key, PerformanceOutcome.UNMATCHED))

    possible = sum((c.marks for c in resolved.correct_components), ZERO)
    credited = sum((r.achieved_marks for r in per_context), ZERO)
    penalties = sum((r.penalty_marks for r in per_context), ZERO)
    achieved = max(ZERO, credited - penalties)

    return ScoreResult(
        parent=resolved.parent,
        student_id=submission.student_id,
        attempt_number=attempt,
        achieved_marks=achieved,
        possible_marks=possible,
        penalty_marks=penalties,
        correct_matches=len(matched_correct),
        requirement_satisfied=satisfied,
        per_context=per_context,
        rejected=rejected,
    )
