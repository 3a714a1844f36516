# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for the scoring service.

All timestamps are stored in UTC (PostgreSQL TIMESTAMPTZ) and every Python
datetime handled by the service is timezone-aware. Calculation periods are
expressed as inclusive calendar dates and converted to half-open UTC
datetime ranges when querying.

Usage:
------
    from src.utils.datetime import utc_now

    received_at = utc_now()
    start, end = period_bounds(date(2025, 1, 1), date(2025, 1, 31))
"""

from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Get today's calendar date in UTC."""
    return utc_now().date()


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def day_start(day: date) -> datetime:
    """Get midnight UTC at the start of the given date."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def period_bounds(period_start: date, period_end: date) -> tuple[datetime, datetime]:
    """Convert an inclusive date period into a half-open UTC datetime range.

    Args:
        period_start: First day of the period.
        period_end: Last day of the period (inclusive).

    Returns:
        Tuple of (start, end) where rows match ``start <= created_at < end``.

    Raises:
        ValueError: If period_end precedes period_start.
    """
    if period_end < period_start:
        raise ValueError(
            f"period_end {period_end.isoformat()} precedes period_start {period_start.isoformat()}"
        )
    return day_start(period_start), day_start(period_end + timedelta(days=1))


def trailing_period(days: int, today: date | None = None) -> tuple[date, date]:
    """Get the inclusive period covering the last ``days`` full days.

    The period ends yesterday so that a nightly job never summarizes a
    partially elapsed day.

    Args:
        days: Length of the period in days.
        today: Reference date, defaults to today in UTC.

    Returns:
        Tuple of (period_start, period_end).
    """
    reference = today or utc_today()
    period_end = reference - timedelta(days=1)
    return period_end - timedelta(days=days - 1), period_end
