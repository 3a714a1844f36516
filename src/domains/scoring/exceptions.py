# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for scoring and analytics.

This module defines the exception hierarchy:
- ScoringError: Base exception for all scoring-related errors
- RequirementValidationError: Authored requirement violates its invariants
- RequirementNotFoundError: No requirement exists for a question
- RequirementTimeoutError: Requirement could not be resolved in time
- InvalidResponseError: A response tuple cannot be scored
- ConcurrencyConflictError: A concurrent writer changed a mastery row
- MasteryUnavailableError: Mastery could not be updated after retries
- DifficultyMetricNotFoundError: No snapshot exists for a context and period
- InsufficientDataWarning: Metric computed from too small a sample
"""


class ScoringError(Exception):
    """Base exception for all scoring-related errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class RequirementValidationError(ScoringError):
    """Authored requirement or components violate their invariants.

    Scoring is refused while the requirement is malformed.

    Attributes:
        violations: Every invariant violation found.
    """

    def __init__(self, message: str, violations: list[str], details: dict | None = None):
        self.violations = list(violations)
        merged = {"violations": self.violations, **(details or {})}
        super().__init__(message, merged)


class RequirementNotFoundError(ScoringError):
    """No answer requirement exists for the referenced question."""


class RequirementTimeoutError(RequirementNotFoundError):
    """The requirement lookup exceeded its time budget.

    Attributes:
        timeout_seconds: The budget that was exceeded.
    """

    def __init__(self, message: str, timeout_seconds: float, details: dict | None = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(message, {"timeout_seconds": timeout_seconds, **(details or {})})


class InvalidResponseError(ScoringError):
    """A response tuple is malformed or uses an unrecognized context type.

    Attributes:
        context_type: Context type of the offending tuple.
        context_value: Context value of the offending tuple.
    """

    def __init__(self, message: str, context_type: str, context_value: str):
        self.context_type = context_type
        self.context_value = context_value
        super().__init__(
            message, {"context_type": context_type, "context_value": context_value}
        )


class ConcurrencyConflictError(ScoringError):
    """A mastery row changed between read and conditional write."""


class MasteryUnavailableError(ScoringError):
    """Mastery could not be updated, even after retrying conflicts."""


class DifficultyMetricNotFoundError(ScoringError):
    """No difficulty snapshot exists for a context and period."""


class InsufficientDataWarning(UserWarning):
    """A difficulty metric was computed from fewer attempts than required."""
