# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for application settings."""

import pytest
from pydantic import ValidationError

from src.core.config import (
    DatabaseSettings,
    DifficultySettings,
    MasterySettings,
    RedisSettings,
    Settings,
    get_settings,
)
from src.core.config.settings import DEFAULT_CONTEXT_TYPES


@pytest.mark.unit
class TestSettingsDefaults:
    """Tests for default configuration values."""

    def test_scoring_defaults(self):
        """Test that negative marking is off and all context types are recognized."""
        settings = Settings()

        assert settings.scoring.negative_marking is False
        assert settings.scoring.context_types == list(DEFAULT_CONTEXT_TYPES)
        assert settings.scoring.requirement_timeout_seconds == 5.0

    def test_analytics_defaults(self):
        """Test mastery and difficulty defaults."""
        settings = Settings()

        assert settings.mastery.decay_rate == 0.3
        assert settings.mastery.max_retries == 3
        assert settings.difficulty.min_sample_size == 30
        assert settings.difficulty.easy_threshold == 0.7
        assert settings.difficulty.hard_threshold == 0.4
        assert settings.difficulty.discrimination_group_fraction == 0.27

    def test_database_url(self):
        """Test that the asyncpg URL is built from components."""
        db = DatabaseSettings(user="u", password="p", host="db", port=5433, database="d")

        assert db.url == "postgresql+asyncpg://u:p@db:5433/d"

    def test_redis_url_with_and_without_password(self):
        """Test the Redis URL with optional password."""
        assert RedisSettings(host="r", port=6380, database=2).url == "redis://r:6380/2"
        assert RedisSettings(host="r", password="secret").url == "redis://:secret@r:6379/0"


@pytest.mark.unit
class TestSettingsEnvironment:
    """Tests for environment variable overrides."""

    def test_env_overrides(self, monkeypatch):
        """Test that prefixed variables reach the subsettings."""
        monkeypatch.setenv("SCORING_NEGATIVE_MARKING", "true")
        monkeypatch.setenv("MASTERY_DECAY_RATE", "0.5")
        monkeypatch.setenv("DIFFICULTY_MIN_SAMPLE_SIZE", "10")

        settings = get_settings()

        assert settings.scoring.negative_marking is True
        assert settings.mastery.decay_rate == 0.5
        assert settings.difficulty.min_sample_size == 10

    def test_get_settings_is_cached(self):
        """Test that get_settings returns one instance until cleared."""
        assert get_settings() is get_settings()


@pytest.mark.unit
class TestSettingsValidation:
    """Tests for settings validation."""

    def test_thresholds_must_be_ordered(self):
        """Test that hard_threshold must be below easy_threshold."""
        with pytest.raises(ValidationError, match="hard_threshold must be lower"):
            DifficultySettings(easy_threshold=0.4, hard_threshold=0.5)

    @pytest.mark.parametrize("decay_rate", [0.0, -0.1, 1.5])
    def test_decay_rate_bounds(self, decay_rate):
        """Test that decay_rate must lie in (0, 1]."""
        with pytest.raises(ValidationError):
            MasterySettings(decay_rate=decay_rate)

    def test_group_fraction_bounds(self):
        """Test that each discrimination group holds at most half the students."""
        with pytest.raises(ValidationError):
            DifficultySettings(discrimination_group_fraction=0.6)

    def test_production_requires_database_password(self):
        """Test that the default password is refused in production."""
        with pytest.raises(ValidationError, match="Database password"):
            Settings(environment="production")

    def test_production_with_password(self):
        """Test that production starts with a real password."""
        settings = Settings(
            environment="production",
            database=DatabaseSettings(password="a-real-password"),
        )

        assert settings.is_production is True
        assert settings.is_development is False
