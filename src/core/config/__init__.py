# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the context scoring service.

Example:
    >>> from src.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.difficulty.min_sample_size
    30
"""

from src.core.config.settings import (
    DEFAULT_CONTEXT_TYPES,
    DatabaseSettings,
    DifficultySettings,
    MasterySettings,
    RedisSettings,
    ScoringSettings,
    Settings,
    WorkerSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "DEFAULT_CONTEXT_TYPES",
    "DatabaseSettings",
    "DifficultySettings",
    "MasterySettings",
    "RedisSettings",
    "ScoringSettings",
    "Settings",
    "WorkerSettings",
    "clear_settings_cache",
    "get_settings",
]
