# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for the scoring service.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime and period operations
- locks: Keyed asyncio locks
"""

from src.utils.datetime import (
    day_start,
    ensure_utc,
    period_bounds,
    trailing_period,
    utc_now,
    utc_today,
)
from src.utils.locks import KeyedLock
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "utc_now",
    "utc_today",
    "ensure_utc",
    "day_start",
    "period_bounds",
    "trailing_period",
    # Locks
    "KeyedLock",
]
