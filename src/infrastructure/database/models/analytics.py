# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery cache and difficulty metric tables."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, UUIDPrimaryKeyMixin
from src.utils.datetime import utc_now


class ContextMasteryCache(UUIDPrimaryKeyMixin, Base):
    """Running mastery estimate for one student and context.

    ``version`` is bumped on every write; updates are conditional on the
    version that was read. ``(last_attempt_at, last_performance_id)`` marks the
    newest performance row folded in.
    """

    __tablename__ = "context_mastery_cache"

    student_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    context_type: Mapped[str] = mapped_column(String(64), nullable=False)
    context_value: Mapped[str] = mapped_column(String(255), nullable=False)
    mastery_level: Mapped[float] = mapped_column(nullable=False, default=0.0)
    weighted_mastery: Mapped[float] = mapped_column(nullable=False, default=0.0)
    total_attempts: Mapped[int] = mapped_column(nullable=False, default=0)
    successful_attempts: Mapped[int] = mapped_column(nullable=False, default=0)
    total_marks_achieved: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    total_marks_possible: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    first_attempt_at: Mapped[datetime | None] = mapped_column()
    last_attempt_at: Mapped[datetime | None] = mapped_column()
    last_performance_id: Mapped[uuid.UUID | None] = mapped_column()
    last_updated: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint(
            "student_id", "context_type", "context_value", name="uq_context_mastery_student_context"
        ),
        CheckConstraint(
            "mastery_level >= 0 AND mastery_level <= 1", name="ck_context_mastery_level"
        ),
        CheckConstraint(
            "weighted_mastery >= 0 AND weighted_mastery <= 1", name="ck_context_mastery_weighted"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ContextMasteryCache student={self.student_id} "
            f"{self.context_type}:{self.context_value} mastery={self.mastery_level:.2f}>"
        )


class ContextDifficultyMetric(UUIDPrimaryKeyMixin, Base):
    """Difficulty snapshot for one context over one calculation period."""

    __tablename__ = "context_difficulty_metrics"

    context_type: Mapped[str] = mapped_column(String(64), nullable=False)
    context_value: Mapped[str] = mapped_column(String(255), nullable=False)
    calculation_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    calculation_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    avg_success_rate: Mapped[float] = mapped_column(nullable=False)
    discrimination_index: Mapped[float | None] = mapped_column()
    std_deviation: Mapped[float] = mapped_column(nullable=False, default=0.0)
    difficulty_level: Mapped[str] = mapped_column(String(16), nullable=False)
    student_count: Mapped[int] = mapped_column(nullable=False, default=0)
    attempt_count: Mapped[int] = mapped_column(nullable=False, default=0)
    avg_time_seconds: Mapped[float | None] = mapped_column()
    median_time_seconds: Mapped[float | None] = mapped_column()
    low_confidence: Mapped[bool] = mapped_column(nullable=False, default=False)
    last_calculated: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint(
            "context_type",
            "context_value",
            "calculation_period_start",
            "calculation_period_end",
            name="uq_context_difficulty_period",
        ),
        CheckConstraint(
            "difficulty_level IN ('easy', 'medium', 'hard')", name="ck_context_difficulty_level"
        ),
    )
