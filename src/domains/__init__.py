# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer.

Domains:
    scoring: Requirement resolution and context-based response scoring.
    analytics: Context mastery aggregation and difficulty metrics.
"""
