"""Context Scoring Backend.

Scores context-tagged student responses against authored answer
requirements and maintains per-context mastery and difficulty analytics.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "0.1.0"
