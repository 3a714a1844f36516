# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scoring API endpoints.

This module provides endpoints for scoring student submissions:
- POST /submissions - Score and record a submission

Example:
    POST /api/v1/scoring/submissions
    {
        "student_id": "7c1e...",
        "parent": {"kind": "question", "id": "0b5d..."},
        "responses": [{"context_type": "position", "context_value": "A", "response_text": "Nucleus"}]
    }
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.dependencies import get_scoring_service
from src.domains.scoring.exceptions import (
    RequirementNotFoundError,
    RequirementTimeoutError,
    RequirementValidationError,
)
from src.domains.scoring.service import ScoringService
from src.infrastructure.database.connection import DatabaseError
from src.models.scoring import ScoreResult, SubmissionRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/submissions",
    response_model=ScoreResult,
    status_code=status.HTTP_201_CREATED,
    summary="Score a submission",
    description=(
        "Score a student's context-tagged responses against the question's "
        "answer requirement and record one performance row per context."
    ),
)
async def score_submission(
    data: SubmissionRequest,
    service: Annotated[ScoringService, Depends(get_scoring_service)],
) -> ScoreResult:
    """Score and record a submission.

    Args:
        data: The student's submission.
        service: Scoring service.

    Returns:
        ScoreResult with the recorded per-context rows.
    """
    logger.info(
        "Scoring submission: student=%s, %s=%s, responses=%d",
        data.student_id,
        data.parent.kind,
        data.parent.id,
        len(data.responses),
    )

    try:
        return await service.score_submission(data)
    except RequirementTimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=e.message,
        )
    except RequirementNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
        )
    except RequirementValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": e.message, "violations": e.violations},
        )
    except DatabaseError as e:
        logger.error("Failed to record submission: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scoring database unavailable",
        )
