# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics API endpoints.

This module provides endpoints for context mastery and difficulty:
- GET /mastery/{student_id} - Mastery overview for a student
- GET /mastery/{student_id}/{context_type}/{context_value} - Mastery for one context
- GET /difficulty/{context_type}/{context_value} - Stored difficulty snapshot
- POST /difficulty/{context_type}/{context_value}/recompute - Recompute a snapshot

Example:
    GET /api/v1/difficulty/position/A?period_start=2025-01-01&period_end=2025-01-31
"""

import logging
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from src.api.dependencies import get_difficulty_calculator, get_mastery_aggregator
from src.core.config import get_settings
from src.domains.analytics.difficulty import DifficultyMetricsCalculator
from src.domains.analytics.mastery import MasteryAggregator
from src.domains.scoring.exceptions import DifficultyMetricNotFoundError
from src.models.analytics import (
    ContextMasteryResponse,
    DifficultyMetricResponse,
    MasteryOverview,
)
from src.models.scoring import ContextKey
from src.utils.datetime import trailing_period

logger = logging.getLogger(__name__)

mastery_router = APIRouter()
difficulty_router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================


class RecomputeQueuedResponse(BaseModel):
    """Acknowledgement of a queued recompute."""

    context_type: str = Field(description="Context type")
    context_value: str = Field(description="Context value")
    period_start: date = Field(description="First day of the period")
    period_end: date = Field(description="Last day of the period")
    status: str = Field(default="queued", description="Recompute status")


def _resolve_period(period_start: date | None, period_end: date | None) -> tuple[date, date]:
    default_start, default_end = trailing_period(get_settings().difficulty.default_period_days)
    start = period_start or default_start
    end = period_end or default_end
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="period_end must not precede period_start",
        )
    return start, end


# ============================================================================
# Mastery
# ============================================================================


@mastery_router.get(
    "/{student_id}",
    response_model=MasteryOverview,
    summary="Get mastery overview",
    description="Attempt-weighted mastery across every context the student has attempted.",
)
async def get_mastery_overview(
    student_id: UUID,
    aggregator: Annotated[MasteryAggregator, Depends(get_mastery_aggregator)],
) -> MasteryOverview:
    return await aggregator.get_overview(student_id)


@mastery_router.get(
    "/{student_id}/{context_type}/{context_value}",
    response_model=ContextMasteryResponse,
    summary="Get context mastery",
    description="A student's running mastery estimate for one context.",
)
async def get_context_mastery(
    student_id: UUID,
    context_type: str,
    context_value: str,
    aggregator: Annotated[MasteryAggregator, Depends(get_mastery_aggregator)],
) -> ContextMasteryResponse:
    key = ContextKey(context_type=context_type, context_value=context_value)
    mastery = await aggregator.get_mastery(student_id, key)
    if mastery is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No mastery recorded for student {student_id} on {key}",
        )
    return mastery


# ============================================================================
# Difficulty
# ============================================================================


@difficulty_router.get(
    "/{context_type}/{context_value}",
    response_model=DifficultyMetricResponse,
    summary="Get difficulty metrics",
    description="Stored difficulty snapshot for a context and calculation period.",
)
async def get_difficulty_metrics(
    context_type: str,
    context_value: str,
    calculator: Annotated[DifficultyMetricsCalculator, Depends(get_difficulty_calculator)],
    period_start: Annotated[date | None, Query(description="First day of the period")] = None,
    period_end: Annotated[date | None, Query(description="Last day of the period")] = None,
) -> DifficultyMetricResponse:
    start, end = _resolve_period(period_start, period_end)
    key = ContextKey(context_type=context_type, context_value=context_value)

    try:
        return await calculator.get_metrics(key, start, end)
    except DifficultyMetricNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
        )


@difficulty_router.post(
    "/{context_type}/{context_value}/recompute",
    response_model=DifficultyMetricResponse | RecomputeQueuedResponse,
    summary="Recompute difficulty metrics",
    description=(
        "Recompute the difficulty snapshot for a context and period. With "
        "background=true the recompute is queued and 202 is returned."
    ),
)
async def recompute_difficulty_metrics(
    context_type: str,
    context_value: str,
    response: Response,
    calculator: Annotated[DifficultyMetricsCalculator, Depends(get_difficulty_calculator)],
    period_start: Annotated[date | None, Query(description="First day of the period")] = None,
    period_end: Annotated[date | None, Query(description="Last day of the period")] = None,
    background: Annotated[bool, Query(description="Queue instead of computing inline")] = False,
) -> DifficultyMetricResponse | RecomputeQueuedResponse:
    start, end = _resolve_period(period_start, period_end)
    key = ContextKey(context_type=context_type, context_value=context_value)

    if background:
        calculator.queue_recompute(key, start, end)
        response.status_code = status.HTTP_202_ACCEPTED
        return RecomputeQueuedResponse(
            context_type=context_type,
            context_value=context_value,
            period_start=start,
            period_end=end,
        )

    logger.info("Recomputing difficulty for %s over %s..%s", key, start, end)
    return await calculator.recompute(key, start, end)
