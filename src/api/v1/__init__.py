# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    scoring: Submission scoring endpoints.
    analytics: Context mastery and difficulty endpoints.
"""

from fastapi import APIRouter

from src.api.v1 import analytics, scoring

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(scoring.router, prefix="/scoring", tags=["Scoring"])
router.include_router(analytics.mastery_router, prefix="/mastery", tags=["Mastery"])
router.include_router(analytics.difficulty_router, prefix="/difficulty", tags=["Difficulty"])

__all__ = ["router"]
