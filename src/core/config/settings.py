# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the context
scoring service. Settings are loaded from environment variables with
sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.mastery.decay_rate
    0.3
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONTEXT_TYPES: tuple[str, ...] = (
    "position",
    "step",
    "field",
    "property",
    "component",
    "option",
    "part",
    "label",
)


class DatabaseSettings(BaseSettings):
    """Scoring database configuration.

    The database holds the authored answer requirements and components
    (read-only here), the append-only performance log, the mastery cache
    and the difficulty metric snapshots.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
    )

    user: str = "scoring"
    password: SecretStr = SecretStr("scoring_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "context_scoring"
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for the Dramatiq message broker.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("")
    database: int = 0

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        pwd = self.password.get_secret_value()
        if pwd:
            return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"
        return f"redis://{self.host}:{self.port}/{self.database}"


class ScoringSettings(BaseSettings):
    """Response scoring configuration.

    Attributes:
        negative_marking: Subtract distractor marks from the achieved total.
        context_types: Context types recognized in components and responses.
        requirement_timeout_seconds: Upper bound for resolving a requirement.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCORING_",
        extra="ignore",
    )

    negative_marking: bool = False
    context_types: list[str] = Field(default_factory=lambda: list(DEFAULT_CONTEXT_TYPES))
    requirement_timeout_seconds: float = Field(default=5.0, gt=0)


class MasterySettings(BaseSettings):
    """Mastery aggregation configuration.

    Attributes:
        decay_rate: Weight kept by the previous weighted mastery on each
            new attempt. Must lie in (0, 1].
        max_retries: Attempts made on an optimistic-concurrency conflict
            before the update is reported as unavailable.
    """

    model_config = SettingsConfigDict(
        env_prefix="MASTERY_",
        extra="ignore",
    )

    decay_rate: float = Field(default=0.3, gt=0.0, le=1.0)
    max_retries: int = Field(default=3, ge=1)


class DifficultySettings(BaseSettings):
    """Difficulty metrics configuration.

    Attributes:
        min_sample_size: Attempts needed before a metric is trusted.
        easy_threshold: Success rate above which an item is easy.
        hard_threshold: Success rate below which an item is hard.
        discrimination_group_fraction: Share of students in each of the
            top and bottom groups of the discrimination index.
        default_period_days: Window used by the scheduled recompute.
    """

    model_config = SettingsConfigDict(
        env_prefix="DIFFICULTY_",
        extra="ignore",
    )

    min_sample_size: int = Field(default=30, ge=1)
    easy_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    hard_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    discrimination_group_fraction: float = Field(default=0.27, gt=0.0, le=0.5)
    default_period_days: int = Field(default=30, ge=1)

    @model_validator(mode="after")
    def validate_thresholds(self) -> Self:
        """Ensure the hard threshold sits below the easy threshold.

        Raises:
            ValueError: If hard_threshold >= easy_threshold.
        """
        if self.hard_threshold >= self.easy_threshold:
            raise ValueError(
                "hard_threshold must be lower than easy_threshold "
                f"(got hard={self.hard_threshold}, easy={self.easy_threshold})"
            )
        return self


class WorkerSettings(BaseSettings):
    """Background worker configuration.

    Attributes:
        scheduler_enabled: Register periodic jobs on startup.
        difficulty_cron: Cron expression for the difficulty recompute job.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        extra="ignore",
    )

    scheduler_enabled: bool = True
    difficulty_cron: str = "30 2 * * *"


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        redis: Redis settings.
        scoring: Scoring settings.
        mastery: Mastery aggregation settings.
        difficulty: Difficulty metrics settings.
        worker: Background worker settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    mastery: MasterySettings = Field(default_factory=MasterySettings)
    difficulty: DifficultySettings = Field(default_factory=DifficultySettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with the default password.
        """
        if self.environment == "production":
            if self.database.password.get_secret_value() == "scoring_password":
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DATABASE_PASSWORD environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
