# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests
"""

import os

# Actor modules set up the broker at import time; keep them off Redis.
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")

from collections.abc import Callable
from contextlib import asynccontextmanager
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

from src.core.config import Settings, clear_settings_cache
from src.models.scoring import (
    AnswerComponentResponse,
    AnswerRequirementResponse,
    QuestionRef,
    RequirementType,
    ResolvedRequirement,
    ResponseItem,
    SubmissionRequest,
)


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Drop cached settings between tests so env overrides apply."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def test_settings() -> Settings:
    """Provide default settings for service tests."""
    return Settings()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def mock_session():
    """Create mock database session."""
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    return session


@pytest.fixture
def mock_db(mock_session):
    """Create mock DatabaseManager whose sessions all share mock_session."""

    @asynccontextmanager
    async def _get_session():
        yield mock_session

    db = MagicMock()
    db.get_session = MagicMock(side_effect=_get_session)
    return db


# =============================================================================
# Scoring Fixtures
# =============================================================================


@pytest.fixture
def student_id() -> UUID:
    """Provide a sample student ID for testing."""
    return UUID("550e8400-e29b-41d4-a716-446655440001")


@pytest.fixture
def question_ref() -> QuestionRef:
    """Provide a reference to a sample question."""
    return QuestionRef(id=UUID("550e8400-e29b-41d4-a716-446655440100"))


@pytest.fixture
def make_component(question_ref) -> Callable[..., AnswerComponentResponse]:
    """Factory for answer components of the sample question."""

    def _make(
        alternative_id: int,
        context_value: str,
        marks: str = "2",
        is_correct: bool = True,
        context_type: str = "position",
    ) -> AnswerComponentResponse:
        return AnswerComponentResponse(
            id=uuid4(),
            parent=question_ref,
            alternative_id=alternative_id,
            answer_text=f"Answer {context_value}",
            marks=Decimal(marks),
            context_type=context_type,
            context_value=context_value,
            context_label=f"Position {context_value}",
            is_correct=is_correct,
        )

    return _make


@pytest.fixture
def make_requirement(question_ref, make_component) -> Callable[..., ResolvedRequirement]:
    """Factory for resolved requirements.

    Correct components get context values A, B, C, ... in alternative_id
    order; distractors follow as X1, X2, ...
    """

    def _make(
        requirement_type: RequirementType = RequirementType.EXACT,
        marks: tuple[str, ...] = ("2", "2", "2"),
        min_required: int | None = None,
        max_required: int | None = None,
        distractor_marks: tuple[str, ...] = (),
    ) -> ResolvedRequirement:
        components = [
            make_component(i + 1, chr(ord("A") + i), mark) for i, mark in enumerate(marks)
        ]
        components += [
            make_component(len(marks) + i + 1, f"X{i + 1}", mark, is_correct=False)
            for i, mark in enumerate(distractor_marks)
        ]
        total = len(marks)
        requirement = AnswerRequirementResponse(
            id=uuid4(),
            parent=question_ref,
            requirement_type=requirement_type,
            total_alternatives=total,
            min_required=min_required if min_required is not None else total,
            max_required=max_required if max_required is not None else total,
            parent_marks=sum((Decimal(m) for m in marks), Decimal("0")),
        )
        return ResolvedRequirement(requirement=requirement, components=tuple(components))

    return _make


@pytest.fixture
def make_submission(question_ref, student_id) -> Callable[..., SubmissionRequest]:
    """Factory for submissions answering the sample question by context value."""

    def _make(
        *context_values: str,
        context_type: str = "position",
        attempt_number: int | None = None,
    ) -> SubmissionRequest:
        return SubmissionRequest(
            student_id=student_id,
            parent=question_ref,
            attempt_number=attempt_number,
            responses=[
                ResponseItem(
                    context_type=context_type,
                    context_value=value,
                    response_text=f"Answer {value}",
                )
                for value in context_values
            ],
        )

    return _make
