# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Requirement resolution and validation.

Loads the answer requirement of a question or sub-question together with
its components (ordered by alternative_id) and checks every authored
invariant before anything is scored. A malformed requirement blocks scoring
of its question; the error lists all violations so authors can fix them in
one pass.

Example:
    resolver = RequirementResolver(db)
    resolved = await resolver.resolve(QuestionRef(id=question_id))
    for component in resolved.correct_components:
        ...
"""

import asyncio
import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.settings import Settings, get_settings
from src.domains.scoring.exceptions import (
    RequirementNotFoundError,
    RequirementTimeoutError,
    RequirementValidationError,
)
from src.infrastructure.database.connection import DatabaseManager
from src.infrastructure.database.models.scoring import AnswerComponent, AnswerRequirement
from src.models.scoring import (
    AnswerComponentResponse,
    AnswerRequirementResponse,
    ParentRef,
    RequirementType,
    ResolvedRequirement,
    make_parent_ref,
)

logger = logging.getLogger(__name__)


def validate_requirement(
    requirement: AnswerRequirementResponse,
    components: Sequence[AnswerComponentResponse],
    recognized_types: Iterable[str],
) -> list[str]:
    """Check a requirement and its components against the authoring rules.

    Args:
        requirement: The requirement to check.
        components: All components authored for the same parent.
        recognized_types: Context types that may appear on a component.

    Returns:
        Human-readable violations; empty when the requirement is valid.
    """
    violations: list[str] = []
    recognized = set(recognized_types)

    total = requirement.total_alternatives
    low = requirement.min_required
    high = requirement.max_required
    if not (1 <= low <= high <= total):
        violations.append(
            f"expected 1 <= min_required <= max_required <= total_alternatives, "
            f"got min={low} max={high} total={total}"
        )

    correct = [c for c in components if c.is_correct]
    if len(correct) != total:
        violations.append(
            f"total_alternatives is {total} but {len(correct)} correct components exist"
        )

    correct_marks = sum((c.marks for c in correct), Decimal("0"))
    if correct_marks != requirement.parent_marks:
        violations.append(
            f"correct component marks sum to {correct_marks}, "
            f"parent marks are {requirement.parent_marks}"
        )

    alternative_ids = sorted(c.alternative_id for c in components)
    if alternative_ids != list(range(1, len(components) + 1)):
        violations.append(
            f"alternative_id values must be unique and numbered 1..{len(components)}, "
            f"got {alternative_ids}"
        )

    key_counts = Counter((c.context_type, c.context_value) for c in components)
    for (context_type, context_value), count in sorted(key_counts.items()):
        if count > 1:
            violations.append(
                f"context {context_type}:{context_value} is used by {count} components"
            )

    for component in components:
        label = f"alternative {component.alternative_id}"
        if component.marks < 0:
            violations.append(f"{label} has negative marks {component.marks}")
        if component.context_type not in recognized:
            violations.append(f"{label} has unrecognized context type {component.context_type!r}")
        if component.parent != requirement.parent:
            violations.append(f"{label} belongs to a different parent")

    return violations


class RequirementResolver:
    """Loads and validates answer requirements.

    Session Injection:
        resolve() accepts an optional ``session`` so that callers can reuse
        an open transaction.

    Attributes:
        settings: Application settings (recognized types and timeout).
    """

    def __init__(self, db: DatabaseManager, settings: Settings | None = None) -> None:
        self._db = db
        self.settings = settings or get_settings()

    async def resolve(
        self,
        parent: ParentRef,
        session: AsyncSession | None = None,
    ) -> ResolvedRequirement:
        """Resolve the validated requirement for a question or sub-question.

        Args:
            parent: The question or sub-question being answered.
            session: Optional database session for transaction sharing.

        Returns:
            ResolvedRequirement with components ordered by alternative_id.

        Raises:
            RequirementNotFoundError: If no requirement exists for the parent.
            RequirementTimeoutError: If the lookup exceeds the configured budget.
            RequirementValidationError: If the authored data violates an invariant.
        """
        timeout = self.settings.scoring.requirement_timeout_seconds

        try:
            async with asyncio.timeout(timeout):
                if session:
                    requirement, components = await self._load(session, parent)
                else:
                    async with self._db.get_session() as db:
                        requirement, components = await self._load(db, parent)
        except TimeoutError as e:
            logger.warning(
                "Requirement lookup for %s %s timed out after %.1fs",
                parent.kind,
                parent.id,
                timeout,
            )
            raise RequirementTimeoutError(
                f"Timed out resolving requirement for {parent.kind} {parent.id}",
                timeout_seconds=timeout,
                details={"parent_type": parent.kind, "parent_id": str(parent.id)},
            ) from e

        if requirement is None:
            raise RequirementNotFoundError(
                f"No answer requirement for {parent.kind} {parent.id}",
                {"parent_type": parent.kind, "parent_id": str(parent.id)},
            )

        return self._build(parent, requirement, components)

    async def _load(
        self,
        db: AsyncSession,
        parent: ParentRef,
    ) -> tuple[AnswerRequirement | None, list[AnswerComponent]]:
        result = await db.execute(
            select(AnswerRequirement).where(
                AnswerRequirement.parent_type == parent.kind,
                AnswerRequirement.parent_id == parent.id,
            )
        )
        requirement = result.scalar_one_or_none()
        if requirement is None:
            return None, []

        result = await db.execute(
            select(AnswerComponent)
            .where(
                AnswerComponent.parent_type == parent.kind,
                AnswerComponent.parent_id == parent.id,
            )
            .order_by(AnswerComponent.alternative_id)
        )
        return requirement, list(result.scalars().all())

    def _build(
        self,
        parent: ParentRef,
        requirement: AnswerRequirement,
        components: list[AnswerComponent],
    ) -> ResolvedRequirement:
        try:
            requirement_type = RequirementType(requirement.requirement_type)
        except ValueError as e:
            raise RequirementValidationError(
                f"Invalid answer requirement for {parent.kind} {parent.id}",
                [f"unknown requirement type {requirement.requirement_type!r}"],
            ) from e

        req = AnswerRequirementResponse(
            id=requirement.id,
            parent=parent,
            requirement_type=requirement_type,
            total_alternatives=requirement.total_alternatives,
            min_required=requirement.min_required,
            max_required=requirement.max_required,
            parent_marks=Decimal(requirement.parent_marks),
        )
        comps = sorted(
            (self._to_component_response(c) for c in components),
            key=lambda c: c.alternative_id,
        )

        violations = validate_requirement(req, comps, self.settings.scoring.context_types)
        if violations:
            logger.error(
                "Answer requirement for %s %s is invalid: %s",
                parent.kind,
                parent.id,
                "; ".join(violations),
            )
            raise RequirementValidationError(
                f"Invalid answer requirement for {parent.kind} {parent.id}",
                violations,
                {"parent_type": parent.kind, "parent_id": str(parent.id)},
            )

        return ResolvedRequirement(requirement=req, components=tuple(comps))

    def _to_component_response(self, component: AnswerComponent) -> AnswerComponentResponse:
        return AnswerComponentResponse(
            id=component.id,
            parent=make_parent_ref(component.parent_type, component.parent_id),
            alternative_id=component.alternative_id,
            answer_text=component.answer_text or "",
            marks=Decimal(component.marks),
            context_type=component.context_type,
            context_value=component.context_value,
            context_label=component.context_label,
            is_correct=component.is_correct,
        )
