# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for scoring and analytics models."""

from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from src.infrastructure.database.models import (
    AnswerComponent,
    AnswerRequirement,
    Base,
    ContextDifficultyMetric,
    ContextMasteryCache,
    ContextPerformance,
)
from src.models.analytics import ContextMasteryResponse
from src.models.scoring import (
    ContextKey,
    ParentKind,
    QuestionRef,
    ResponseItem,
    SubmissionRequest,
    SubQuestionRef,
    make_parent_ref,
)


@pytest.mark.unit
class TestParentRef:
    """Tests for question and sub-question references."""

    def test_submission_parses_tagged_parent(self):
        """Test that the kind tag selects the reference type."""
        sub_question_id = uuid4()

        request = SubmissionRequest.model_validate(
            {
                "student_id": str(uuid4()),
                "parent": {"kind": "sub_question", "id": str(sub_question_id)},
            }
        )

        assert isinstance(request.parent, SubQuestionRef)
        assert request.parent.id == sub_question_id

    def test_unknown_parent_kind_is_rejected(self):
        """Test that a parent must be a question or sub-question."""
        with pytest.raises(ValidationError):
            SubmissionRequest.model_validate(
                {"student_id": str(uuid4()), "parent": {"kind": "quiz", "id": str(uuid4())}}
            )

    def test_make_parent_ref(self):
        """Test rebuilding references from stored columns."""
        question_id = uuid4()

        assert make_parent_ref("question", question_id) == QuestionRef(id=question_id)
        assert isinstance(make_parent_ref(ParentKind.SUB_QUESTION.value, question_id), SubQuestionRef)
        with pytest.raises(ValueError):
            make_parent_ref("quiz", question_id)

    def test_question_and_sub_question_differ(self):
        """Test that equal ids of different kinds are different parents."""
        shared = uuid4()

        assert QuestionRef(id=shared) != SubQuestionRef(id=shared)


@pytest.mark.unit
class TestSubmissionModels:
    """Tests for submission validation."""

    def test_context_key_string(self):
        """Test the type:value rendering of a context key."""
        assert str(ContextKey(context_type="step", context_value="3")) == "step:3"

    def test_confidence_bounds(self):
        """Test that confidence must lie in [0, 1]."""
        with pytest.raises(ValidationError):
            ResponseItem(context_type="step", context_value="1", confidence=1.5)

    def test_attempt_number_is_positive(self):
        """Test that a caller-supplied attempt number starts at 1."""
        with pytest.raises(ValidationError):
            SubmissionRequest(student_id=uuid4(), parent=QuestionRef(id=uuid4()), attempt_number=0)

    def test_empty_context_is_rejected(self):
        """Test that a response needs a context type and value."""
        with pytest.raises(ValidationError):
            ResponseItem(context_type="", context_value="A")

    def test_mastery_success_rate(self):
        """Test the successful/total attempts ratio."""
        state = ContextMasteryResponse(
            student_id=uuid4(),
            context_type="step",
            context_value="1",
            mastery_level=0.5,
            weighted_mastery=0.5,
            total_attempts=4,
            successful_attempts=3,
            total_marks_achieved=Decimal("3"),
            total_marks_possible=Decimal("4"),
        )

        assert state.success_rate == 0.75


@pytest.mark.unit
class TestDatabaseModels:
    """Test database model definitions."""

    def test_tables_are_registered(self):
        """Verify every table is part of the metadata."""
        assert set(Base.metadata.tables) >= {
            AnswerRequirement.__tablename__,
            AnswerComponent.__tablename__,
            ContextPerformance.__tablename__,
            ContextMasteryCache.__tablename__,
            ContextDifficultyMetric.__tablename__,
        }

    def test_unique_constraints(self):
        """Verify the constraints concurrent writers rely on."""
        mastery = {c.name for c in ContextMasteryCache.__table__.constraints}
        difficulty = {c.name for c in ContextDifficultyMetric.__table__.constraints}

        assert "uq_context_mastery_student_context" in mastery
        assert "uq_context_difficulty_period" in difficulty

    def test_marks_are_numeric(self):
        """Verify marks are stored as exact numerics."""
        column = AnswerComponent.__table__.c.marks

        assert column.type.python_type is Decimal
