# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Answer requirement, component and performance tables.

answer_requirements and answer_components are written by the authoring
subsystem and only read here. context_performance is append-only: one row
per scored context of a submission.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    CreatedAtMixin,
    ParentColumnsMixin,
    UUIDPrimaryKeyMixin,
)

_PARENT_TYPE_CHECK = "parent_type IN ('question', 'sub_question')"


class AnswerRequirement(UUIDPrimaryKeyMixin, ParentColumnsMixin, CreatedAtMixin, Base):
    """Scoring rule for one question or sub-question."""

    __tablename__ = "answer_requirements"

    requirement_type: Mapped[str] = mapped_column(String(32), nullable=False)
    total_alternatives: Mapped[int] = mapped_column(nullable=False)
    min_required: Mapped[int] = mapped_column(nullable=False)
    max_required: Mapped[int] = mapped_column(nullable=False)
    parent_marks: Mapped[Decimal] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("parent_type", "parent_id", name="uq_answer_requirements_parent"),
        CheckConstraint(_PARENT_TYPE_CHECK, name="ck_answer_requirements_parent_type"),
        CheckConstraint(
            "requirement_type IN ('exact', 'select_n_of_m')",
            name="ck_answer_requirements_type",
        ),
        CheckConstraint(
            "min_required >= 1 AND min_required <= max_required "
            "AND max_required <= total_alternatives",
            name="ck_answer_requirements_bounds",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AnswerRequirement {self.parent_type}={self.parent_id} "
            f"type={self.requirement_type} {self.min_required}-{self.max_required}"
            f"/{self.total_alternatives}>"
        )


class AnswerComponent(UUIDPrimaryKeyMixin, ParentColumnsMixin, CreatedAtMixin, Base):
    """One authored alternative of a requirement, correct or distractor."""

    __tablename__ = "answer_components"

    alternative_id: Mapped[int] = mapped_column(nullable=False)
    answer_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    marks: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    context_type: Mapped[str] = mapped_column(String(64), nullable=False)
    context_value: Mapped[str] = mapped_column(String(255), nullable=False)
    context_label: Mapped[str | None] = mapped_column(String(255))
    is_correct: Mapped[bool] = mapped_column(nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint(
            "parent_type", "parent_id", "alternative_id", name="uq_answer_components_alternative"
        ),
        UniqueConstraint(
            "parent_type",
            "parent_id",
            "context_type",
            "context_value",
            name="uq_answer_components_context",
        ),
        CheckConstraint(_PARENT_TYPE_CHECK, name="ck_answer_components_parent_type"),
        CheckConstraint("marks >= 0", name="ck_answer_components_marks"),
    )


class ContextPerformance(UUIDPrimaryKeyMixin, ParentColumnsMixin, CreatedAtMixin, Base):
    """Scored outcome of one context of one submission. Never updated."""

    __tablename__ = "context_performance"

    student_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    session_id: Mapped[uuid.UUID | None] = mapped_column()
    component_id: Mapped[uuid.UUID | None] = mapped_column()
    context_type: Mapped[str] = mapped_column(String(64), nullable=False)
    context_value: Mapped[str] = mapped_column(String(255), nullable=False)
    context_label: Mapped[str | None] = mapped_column(String(255))
    achieved_marks: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    possible_marks: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    penalty_marks: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_correct: Mapped[bool] = mapped_column(nullable=False, default=False)
    is_credited: Mapped[bool] = mapped_column(nullable=False, default=False)
    outcome: Mapped[str] = mapped_column(String(16), nullable=False)
    confidence_score: Mapped[float | None] = mapped_column()
    response_text: Mapped[str | None] = mapped_column(Text)
    time_spent_seconds: Mapped[int | None] = mapped_column()
    attempt_number: Mapped[int] = mapped_column(nullable=False, default=1)
    received_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        CheckConstraint(_PARENT_TYPE_CHECK, name="ck_context_performance_parent_type"),
        CheckConstraint("attempt_number >= 1", name="ck_context_performance_attempt"),
        Index("ix_context_performance_student_parent", "student_id", "parent_type", "parent_id"),
        Index(
            "ix_context_performance_context_created",
            "context_type",
            "context_value",
            "created_at",
        ),
    )
