# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq middleware.

- LoggingContextMiddleware: binds actor and message IDs to log lines
"""

from src.infrastructure.background.middleware.context import LoggingContextMiddleware

__all__ = ["LoggingContextMiddleware"]
