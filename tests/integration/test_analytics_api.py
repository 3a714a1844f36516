# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for mastery and difficulty API endpoints."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.dependencies import get_difficulty_calculator, get_mastery_aggregator
from src.api.v1 import router as v1_router
from src.domains.scoring.exceptions import DifficultyMetricNotFoundError
from src.models.analytics import (
    ContextMasteryResponse,
    DifficultyLevel,
    DifficultyMetricResponse,
    MasteryOverview,
)


@pytest.fixture
def mock_aggregator():
    """Create mock mastery aggregator."""
    aggregator = MagicMock()
    aggregator.get_mastery = AsyncMock()
    aggregator.get_overview = AsyncMock()
    return aggregator


@pytest.fixture
def mock_calculator():
    """Create mock difficulty calculator."""
    calculator = MagicMock()
    calculator.get_metrics = AsyncMock()
    calculator.recompute = AsyncMock()
    calculator.queue_recompute = MagicMock()
    return calculator


@pytest.fixture
def client(mock_aggregator, mock_calculator):
    """Create test client with mocked analytics services."""
    app = FastAPI()
    app.include_router(v1_router)
    app.dependency_overrides[get_mastery_aggregator] = lambda: mock_aggregator
    app.dependency_overrides[get_difficulty_calculator] = lambda: mock_calculator
    return TestClient(app)


def _metric(**overrides):
    values = dict(
        context_type="step",
        context_value="3",
        calculation_period_start=date(2025, 3, 1),
        calculation_period_end=date(2025, 3, 31),
        avg_success_rate=0.55,
        discrimination_index=0.3,
        std_deviation=0.45,
        difficulty_level=DifficultyLevel.MEDIUM,
        student_count=42,
        attempt_count=60,
    )
    values.update(overrides)
    return DifficultyMetricResponse(**values)


@pytest.mark.integration
class TestMasteryEndpoints:
    """Tests for /api/v1/mastery."""

    def test_get_context_mastery(self, client, mock_aggregator):
        """Test that a tracked context returns its mastery."""
        student_id = uuid4()
        mock_aggregator.get_mastery.return_value = ContextMasteryResponse(
            student_id=student_id,
            context_type="position",
            context_value="A",
            mastery_level=0.75,
            weighted_mastery=0.8,
            total_attempts=4,
            successful_attempts=3,
            total_marks_achieved=Decimal("6"),
            total_marks_possible=Decimal("8"),
            version=4,
        )

        response = client.get(f"/api/v1/mastery/{student_id}/position/A")

        assert response.status_code == 200
        assert response.json()["mastery_level"] == 0.75
        key = mock_aggregator.get_mastery.call_args.args[1]
        assert str(key) == "position:A"

    def test_get_context_mastery_not_found(self, client, mock_aggregator):
        """Test that an unattempted context returns 404."""
        mock_aggregator.get_mastery.return_value = None

        response = client.get(f"/api/v1/mastery/{uuid4()}/position/A")

        assert response.status_code == 404

    def test_get_overview(self, client, mock_aggregator):
        """Test the mastery overview of a student."""
        student_id = uuid4()
        mock_aggregator.get_overview.return_value = MasteryOverview(
            student_id=student_id,
            overall_mastery=0.6,
            contexts_tracked=3,
            contexts_mastered=1,
            contexts_learning=1,
            contexts_struggling=1,
            total_attempts=4,
        )

        response = client.get(f"/api/v1/mastery/{student_id}")

        assert response.status_code == 200
        assert response.json()["contexts_tracked"] == 3

    def test_invalid_student_id(self, client):
        """Test that a non-UUID student id is rejected."""
        response = client.get("/api/v1/mastery/not-a-uuid")

        assert response.status_code == 422


@pytest.mark.integration
class TestDifficultyEndpoints:
    """Tests for /api/v1/difficulty."""

    def test_get_metrics(self, client, mock_calculator):
        """Test that a stored snapshot is returned for the period."""
        mock_calculator.get_metrics.return_value = _metric()

        response = client.get(
            "/api/v1/difficulty/step/3",
            params={"period_start": "2025-03-01", "period_end": "2025-03-31"},
        )

        assert response.status_code == 200
        assert response.json()["difficulty_level"] == "medium"
        args = mock_calculator.get_metrics.call_args.args
        assert args[1:] == (date(2025, 3, 1), date(2025, 3, 31))

    def test_get_metrics_not_found(self, client, mock_calculator):
        """Test that a missing snapshot returns 404."""
        mock_calculator.get_metrics.side_effect = DifficultyMetricNotFoundError("No metrics")

        response = client.get(
            "/api/v1/difficulty/step/3",
            params={"period_start": "2025-03-01", "period_end": "2025-03-31"},
        )

        assert response.status_code == 404

    def test_inverted_period(self, client, mock_calculator):
        """Test that an end before the start returns 422."""
        response = client.get(
            "/api/v1/difficulty/step/3",
            params={"period_start": "2025-03-31", "period_end": "2025-03-01"},
        )

        assert response.status_code == 422
        mock_calculator.get_metrics.assert_not_awaited()

    def test_default_period(self, client, mock_calculator):
        """Test that the trailing window is used when no period is given."""
        mock_calculator.get_metrics.return_value = _metric()

        response = client.get("/api/v1/difficulty/step/3")

        assert response.status_code == 200
        start, end = mock_calculator.get_metrics.call_args.args[1:]
        assert (end - start).days == 29

    def test_recompute_inline(self, client, mock_calculator):
        """Test that a synchronous recompute returns the snapshot."""
        mock_calculator.recompute.return_value = _metric(low_confidence=True)

        response = client.post(
            "/api/v1/difficulty/step/3/recompute",
            params={"period_start": "2025-03-01", "period_end": "2025-03-31"},
        )

        assert response.status_code == 200
        assert response.json()["low_confidence"] is True
        mock_calculator.queue_recompute.assert_not_called()

    def test_recompute_in_background(self, client, mock_calculator):
        """Test that a queued recompute returns 202."""
        response = client.post(
            "/api/v1/difficulty/step/3/recompute",
            params={"period_start": "2025-03-01", "period_end": "2025-03-31", "background": "true"},
        )

        assert response.status_code == 202
        assert response.json()["status"] == "queued"
        mock_calculator.queue_recompute.assert_called_once()
        mock_calculator.recompute.assert_not_awaited()
