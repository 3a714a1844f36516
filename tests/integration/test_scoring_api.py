# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for Scoring API endpoints."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.dependencies import get_scoring_service
from src.api.v1 import router as v1_router
from src.domains.scoring.exceptions import (
    RequirementNotFoundError,
    RequirementTimeoutError,
    RequirementValidationError,
)
from src.infrastructure.database.connection import DatabaseError
from src.models.scoring import QuestionRef, ScoreResult


@pytest.fixture
def mock_service():
    """Create mock scoring service."""
    service = MagicMock()
    service.score_submission = AsyncMock()
    return service


@pytest.fixture
def app(mock_service):
    """Create test FastAPI app."""
    app = FastAPI()
    app.include_router(v1_router)
    app.dependency_overrides[get_scoring_service] = lambda: mock_service
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def payload():
    """Provide a submission body."""
    return {
        "student_id": str(uuid4()),
        "parent": {"kind": "question", "id": str(uuid4())},
        "responses": [
            {"context_type": "position", "context_value": "A", "response_text": "Nucleus"},
            {"context_type": "position", "context_value": "B", "response_text": "Ribosome"},
        ],
    }


@pytest.mark.integration
class TestScoringAPIRouting:
    """Tests for scoring API routing."""

    def test_routes_registered(self, app):
        """Test that scoring and analytics routes are registered."""
        routes = [route.path for route in app.routes]

        assert "/api/v1/scoring/submissions" in routes
        assert "/api/v1/mastery/{student_id}" in routes
        assert "/api/v1/mastery/{student_id}/{context_type}/{context_value}" in routes
        assert "/api/v1/difficulty/{context_type}/{context_value}" in routes
        assert "/api/v1/difficulty/{context_type}/{context_value}/recompute" in routes


@pytest.mark.integration
class TestScoreSubmissionEndpoint:
    """Tests for POST /api/v1/scoring/submissions."""

    def test_score_submission_success(self, client, mock_service, payload):
        """Test that a scored submission returns 201 with marks."""
        mock_service.score_submission.return_value = ScoreResult(
            parent=QuestionRef(id=payload["parent"]["id"]),
            attempt_number=1,
            achieved_marks=Decimal("4"),
            possible_marks=Decimal("6"),
            correct_matches=2,
            requirement_satisfied=True,
        )

        response = client.post("/api/v1/scoring/submissions", json=payload)

        assert response.status_code == 201
        body = response.json()
        assert Decimal(body["achieved_marks"]) == Decimal("4")
        assert Decimal(body["possible_marks"]) == Decimal("6")
        assert body["parent"]["kind"] == "question"

        request = mock_service.score_submission.call_args.args[0]
        assert len(request.responses) == 2
        assert str(request.parent.id) == payload["parent"]["id"]

    def test_invalid_body(self, client, mock_service, payload):
        """Test that a malformed submission is rejected before scoring."""
        payload["parent"] = {"kind": "quiz", "id": str(uuid4())}

        response = client.post("/api/v1/scoring/submissions", json=payload)

        assert response.status_code == 422
        mock_service.score_submission.assert_not_awaited()

    def test_requirement_not_found(self, client, mock_service, payload):
        """Test that a question without a requirement returns 404."""
        mock_service.score_submission.side_effect = RequirementNotFoundError("No requirement")

        response = client.post("/api/v1/scoring/submissions", json=payload)

        assert response.status_code == 404
        assert response.json()["detail"] == "No requirement"

    def test_requirement_timeout(self, client, mock_service, payload):
        """Test that a timed-out lookup returns 504."""
        mock_service.score_submission.side_effect = RequirementTimeoutError(
            "Timed out", timeout_seconds=5.0
        )

        response = client.post("/api/v1/scoring/submissions", json=payload)

        assert response.status_code == 504

    def test_invalid_requirement(self, client, mock_service, payload):
        """Test that a malformed requirement returns 422 with violations."""
        mock_service.score_submission.side_effect = RequirementValidationError(
            "Invalid requirement", ["total_alternatives is 3 but 2 correct components exist"]
        )

        response = client.post("/api/v1/scoring/submissions", json=payload)

        assert response.status_code == 422
        assert response.json()["detail"]["violations"] == [
            "total_alternatives is 3 but 2 correct components exist"
        ]

    def test_database_unavailable(self, client, mock_service, payload):
        """Test that a storage failure returns 503."""
        mock_service.score_submission.side_effect = DatabaseError("Database operation failed")

        response = client.post("/api/v1/scoring/submissions", json=payload)

        assert response.status_code == 503
