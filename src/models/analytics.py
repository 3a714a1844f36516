# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics models.

Pydantic models for per-student context mastery and per-context
difficulty metric snapshots.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DifficultyLevel(str, Enum):
    """Difficulty band derived from the average success rate."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ContextMasteryResponse(BaseModel):
    """A student's running mastery estimate for one context."""

    model_config = ConfigDict(from_attributes=True)

    student_id: UUID = Field(description="Student ID")
    context_type: str = Field(description="Context type")
    context_value: str = Field(description="Context value")
    mastery_level: float = Field(description="Cumulative achieved/possible ratio 0.0-1.0")
    weighted_mastery: float = Field(description="Recency-weighted mastery 0.0-1.0")
    total_attempts: int = Field(description="Attempts recorded for this context")
    successful_attempts: int = Field(description="Attempts answered correctly")
    total_marks_achieved: Decimal = Field(description="Marks achieved across attempts")
    total_marks_possible: Decimal = Field(description="Marks possible across attempts")
    first_attempt_at: datetime | None = Field(default=None, description="First attempt time")
    last_attempt_at: datetime | None = Field(default=None, description="Latest attempt time")
    last_performance_id: UUID | None = Field(
        default=None, description="Newest performance row folded into this state"
    )
    last_updated: datetime | None = Field(default=None, description="Last cache update")
    version: int = Field(default=0, description="Optimistic concurrency version")

    @property
    def success_rate(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.successful_attempts / self.total_attempts


class MasteryOverview(BaseModel):
    """Roll-up of a student's mastery across all contexts."""

    student_id: UUID = Field(description="Student ID")
    overall_mastery: float = Field(description="Attempt-weighted mastery 0.0-1.0")
    contexts_tracked: int = Field(description="Contexts with at least one attempt")
    contexts_mastered: int = Field(description="Contexts with mastery >= 0.8")
    contexts_learning: int = Field(description="Contexts with mastery in [0.3, 0.8)")
    contexts_struggling: int = Field(description="Contexts with mastery < 0.3")
    total_attempts: int = Field(description="Attempts across all contexts")
    contexts: list[ContextMasteryResponse] = Field(default_factory=list)


class DifficultyMetricResponse(BaseModel):
    """Difficulty snapshot for one context over one calculation period."""

    model_config = ConfigDict(from_attributes=True)

    context_type: str = Field(description="Context type")
    context_value: str = Field(description="Context value")
    calculation_period_start: date = Field(description="First day of the period")
    calculation_period_end: date = Field(description="Last day of the period (inclusive)")
    avg_success_rate: float = Field(description="Correct attempts / attempts")
    discrimination_index: float | None = Field(
        default=None, description="Top group success minus bottom group success"
    )
    std_deviation: float = Field(description="Population std deviation of score ratios")
    difficulty_level: DifficultyLevel = Field(description="Derived difficulty band")
    student_count: int = Field(description="Distinct students in the period")
    attempt_count: int = Field(description="Attempts in the period")
    avg_time_seconds: float | None = Field(default=None, description="Mean time spent")
    median_time_seconds: float | None = Field(default=None, description="Median time spent")
    low_confidence: bool = Field(default=False, description="Sample below minimum size")
    last_calculated: datetime | None = Field(default=None, description="Calculation time")
