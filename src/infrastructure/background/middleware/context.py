# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Logging context middleware for Dramatiq.

Binds the actor name and message ID to the structlog context while a
message is processed, so every log line a task emits can be traced back
to its message.
"""

import logging
from typing import Any

import dramatiq
from dramatiq import Message, Middleware

from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)


class LoggingContextMiddleware(Middleware):
    """Scope structlog context variables to one message."""

    def before_process_message(
        self,
        broker: dramatiq.Broker,
        message: Message,
    ) -> None:
        bind_context(
            actor=message.actor_name,
            message_id=message.message_id,
            queue=message.queue_name,
        )
        logger.debug("Processing %s (message: %s)", message.actor_name, message.message_id)

    def after_process_message(
        self,
        broker: dramatiq.Broker,
        message: Message,
        *,
        result: Any = None,
        exception: BaseException | None = None,
    ) -> None:
        clear_context()

    def after_skip_message(
        self,
        broker: dramatiq.Broker,
        message: Message,
    ) -> None:
        clear_context()
