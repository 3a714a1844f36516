# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scoring models.

Pydantic models for answer requirements, their components, student
submissions and the scored result. Marks are Decimal so that half marks
compare exactly; ratios are float.

A question or sub-question is referenced through ParentRef, a tagged
union discriminated by ``kind``. Exactly one parent is always set.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ParentKind(str, Enum):
    """Kinds of entity that own an answer requirement."""

    QUESTION = "question"
    SUB_QUESTION = "sub_question"


class QuestionRef(BaseModel):
    """Reference to a top-level question."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["question"] = "question"
    id: UUID = Field(description="Question ID")


class SubQuestionRef(BaseModel):
    """Reference to a sub-question."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["sub_question"] = "sub_question"
    id: UUID = Field(description="Sub-question ID")


ParentRef = Annotated[QuestionRef | SubQuestionRef, Field(discriminator="kind")]


def make_parent_ref(parent_type: str, parent_id: UUID) -> QuestionRef | SubQuestionRef:
    """Build a ParentRef from its stored (parent_type, parent_id) columns.

    Raises:
        ValueError: If parent_type is not a known ParentKind.
    """
    kind = ParentKind(parent_type)
    if kind == ParentKind.QUESTION:
        return QuestionRef(id=parent_id)
    return SubQuestionRef(id=parent_id)


class ContextKey(BaseModel):
    """Semantic context an alternative or response is tied to."""

    model_config = ConfigDict(frozen=True)

    context_type: str = Field(min_length=1, description="Context type, e.g. position or step")
    context_value: str = Field(min_length=1, description="Context value, e.g. A or 3")

    def __str__(self) -> str:
        return f"{self.context_type}:{self.context_value}"


class RequirementType(str, Enum):
    """How many correct alternatives a response must provide."""

    EXACT = "exact"
    SELECT_N_OF_M = "select_n_of_m"


class PerformanceOutcome(str, Enum):
    """How a performance row relates to the authored components."""

    CORRECT = "correct"
    MISSED = "missed"
    DISTRACTOR = "distractor"
    UNMATCHED = "unmatched"


# ============================================================================
# Requirement models
# ============================================================================


class AnswerRequirementResponse(BaseModel):
    """Authored scoring rule for a question or sub-question."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    parent: ParentRef
    requirement_type: RequirementType
    total_alternatives: int
    min_required: int
    max_required: int
    parent_marks: Decimal


class AnswerComponentResponse(BaseModel):
    """One authored alternative (correct or distractor) of a requirement."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    parent: ParentRef
    alternative_id: int
    answer_text: str
    marks: Decimal
    context_type: str
    context_value: str
    context_label: str | None = None
    is_correct: bool = True

    @property
    def context_key(self) -> ContextKey:
        return ContextKey(context_type=self.context_type, context_value=self.context_value)


class ResolvedRequirement(BaseModel):
    """A validated requirement with its components ordered by alternative_id."""

    model_config = ConfigDict(frozen=True)

    requirement: AnswerRequirementResponse
    components: tuple[AnswerComponentResponse, ...]

    @property
    def parent(self) -> QuestionRef | SubQuestionRef:
        return self.requirement.parent

    @property
    def correct_components(self) -> list[AnswerComponentResponse]:
        return [c for c in self.components if c.is_correct]

    @property
    def distractors(self) -> list[AnswerComponentResponse]:
        return [c for c in self.components if not c.is_correct]


# ============================================================================
# Submission models
# ============================================================================


class ResponseItem(BaseModel):
    """One (context, response) tuple of a submission."""

    context_type: str = Field(min_length=1, description="Context type")
    context_value: str = Field(min_length=1, description="Context value")
    response_text: str = Field(default="", description="Student's answer text")
    confidence: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Self-reported confidence 0.0-1.0"
    )
    time_spent_seconds: int | None = Field(
        default=None, ge=0, description="Time spent on this context"
    )

    @property
    def context_key(self) -> ContextKey:
        return ContextKey(context_type=self.context_type, context_value=self.context_value)


class SubmissionRequest(BaseModel):
    """A student's submission for one question or sub-question."""

    student_id: UUID = Field(description="Student ID")
    parent: ParentRef = Field(description="Question or sub-question answered")
    session_id: UUID | None = Field(default=None, description="Practice or exam session ID")
    attempt_number: int | None = Field(
        default=None, ge=1, description="Caller-supplied attempt number"
    )
    responses: list[ResponseItem] = Field(
        default_factory=list, description="Context-tagged responses"
    )


# ============================================================================
# Result models
# ============================================================================


class ContextPerformanceResponse(BaseModel):
    """Scored outcome for one context of a submission.

    ``achieved_marks`` holds the marks credited after requirement rules
    are applied. ``is_correct`` records context-level correctness even when
    the requirement as a whole earned nothing.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    student_id: UUID | None = None
    session_id: UUID | None = None
    component_id: UUID | None = None
    context_type: str
    context_value: str
    context_label: str | None = None
    achieved_marks: Decimal = Decimal("0")
    possible_marks: Decimal = Decimal("0")
    penalty_marks: Decimal = Decimal("0")
    is_correct: bool = False
    is_credited: bool = False
    outcome: PerformanceOutcome
    response_text: str | None = None
    confidence_score: float | None = None
    time_spent_seconds: int | None = None
    attempt_number: int = 1
    received_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def context_key(self) -> ContextKey:
        return ContextKey(context_type=self.context_type, context_value=self.context_value)


class RejectedResponse(BaseModel):
    """A response tuple that could not be scored."""

    context_type: str
    context_value: str
    reason: str


class ScoreResult(BaseModel):
    """Result of scoring one submission."""

    parent: ParentRef
    student_id: UUID | None = None
    attempt_number: int = 1
    achieved_marks: Decimal
    possible_marks: Decimal
    penalty_marks: Decimal = Decimal("0")
    correct_matches: int = 0
    requirement_satisfied: bool = False
    per_context: list[ContextPerformanceResponse] = Field(default_factory=list)
    rejected: list[RejectedResponse] = Field(default_factory=list)
    received_at: datetime | None = None

    @property
    def score_ratio(self) -> float:
        if self.possible_marks == 0:
            return 0.0
        return float(self.achieved_marks / self.possible_marks)
