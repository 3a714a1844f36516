# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scoring domain.

Resolves answer requirements, scores context-tagged responses against
them and records the per-context outcome.

The persisting ScoringService lives in src.domains.scoring.service.

Usage:
    from src.domains.scoring import RequirementResolver, score

    resolved = await RequirementResolver(db).resolve(QuestionRef(id=question_id))
    result = score(resolved, submission)
"""

from src.domains.scoring.exceptions import (
    ConcurrencyConflictError,
    DifficultyMetricNotFoundError,
    InsufficientDataWarning,
    InvalidResponseError,
    MasteryUnavailableError,
    RequirementNotFoundError,
    RequirementTimeoutError,
    RequirementValidationError,
    ScoringError,
)
from src.domains.scoring.matcher import score
from src.domains.scoring.resolver import RequirementResolver, validate_requirement

__all__ = [
    # Exceptions
    "ScoringError",
    "RequirementValidationError",
    "RequirementNotFoundError",
    "RequirementTimeoutError",
    "InvalidResponseError",
    "ConcurrencyConflictError",
    "MasteryUnavailableError",
    "DifficultyMetricNotFoundError",
    "InsufficientDataWarning",
    # Scoring
    "RequirementResolver",
    "validate_requirement",
    "score",
]
