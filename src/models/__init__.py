# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic models shared by the domain services and the API."""

from src.models.analytics import (
    ContextMasteryResponse,
    DifficultyLevel,
    DifficultyMetricResponse,
    MasteryOverview,
)
from src.models.scoring import (
    AnswerComponentResponse,
    AnswerRequirementResponse,
    ContextKey,
    ContextPerformanceResponse,
    ParentKind,
    ParentRef,
    PerformanceOutcome,
    QuestionRef,
    RejectedResponse,
    RequirementType,
    ResolvedRequirement,
    ResponseItem,
    ScoreResult,
    SubmissionRequest,
    SubQuestionRef,
    make_parent_ref,
)

__all__ = [
    "AnswerComponentResponse",
    "AnswerRequirementResponse",
    "ContextKey",
    "ContextMasteryResponse",
    "ContextPerformanceResponse",
    "DifficultyLevel",
    "DifficultyMetricResponse",
    "MasteryOverview",
    "ParentKind",
    "ParentRef",
    "PerformanceOutcome",
    "QuestionRef",
    "RejectedResponse",
    "RequirementType",
    "ResolvedRequirement",
    "ResponseItem",
    "ScoreResult",
    "SubQuestionRef",
    "SubmissionRequest",
    "make_parent_ref",
]
