# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for enrollguard.

All timestamps are stored in UTC (PostgreSQL TIMESTAMPTZ) and all Python
datetimes handled by the monitoring job are timezone-aware.

Usage:
------
    from enrollguard.utils.datetime import utc_now, days_between

    elapsed = days_between(enrollment.created_at, utc_now())
"""

from datetime import date, datetime, timedelta, timezone

_ONE_DAY = timedelta(days=1)


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


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
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> int:
    """Count whole days elapsed between two datetimes.

    Partial days are truncated, so 10 days and 23 hours counts as 10.
    A start after end yields a negative count.

    Args:
        start: Earlier datetime (naive values are taken as UTC).
        end: Later datetime (naive values are taken as UTC).

    Returns:
        Number of whole days from start to end.
    """
    delta = ensure_utc(end) - ensure_utc(start)
    return delta // _ONE_DAY


def days_since_date(day: date, now: datetime) -> int:
    """Count calendar days from a date to the UTC date of ``now``.

    Args:
        day: Calendar date, e.g. a payment due date.
        now: Reference instant.

    Returns:
        Number of days between the two dates (negative for future dates).
    """
    return (ensure_utc(now).date() - day).days


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 string.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 formatted string or None.
    """
    if dt is None:
        return None

    return ensure_utc(dt).isoformat()
