# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models for the scoring database."""

from src.infrastructure.database.models.analytics import (
    ContextDifficultyMetric,
    ContextMasteryCache,
)
from src.infrastructure.database.models.base import Base
from src.infrastructure.database.models.scoring import (
    AnswerComponent,
    AnswerRequirement,
    ContextPerformance,
)

__all__ = [
    "AnswerComponent",
    "AnswerRequirement",
    "Base",
    "ContextDifficultyMetric",
    "ContextMasteryCache",
    "ContextPerformance",
]
