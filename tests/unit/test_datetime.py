# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for datetime utilities."""

from datetime import date, datetime, timedelta, timezone

from enrollguard.utils.datetime import (
    days_between,
    days_since_date,
    ensure_utc,
    format_iso,
)

START = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestDaysBetween:
    """Tests for days_between."""

    def test_whole_days(self):
        """Test exact multiples of a day."""
        assert days_between(START, START + timedelta(days=10)) == 10

    def test_partial_day_is_truncated(self):
        """Test 10 days and 23 hours count as 10."""
        assert days_between(START, START + timedelta(days=10, hours=23)) == 10

    def test_just_under_a_day(self):
        """Test anything below 24 hours is zero days."""
        assert days_between(START, START + timedelta(hours=23, minutes=59)) == 0

    def test_naive_values_are_utc(self):
        """Test naive datetimes are treated as UTC."""
        naive = datetime(2025, 1, 1, 12, 0)

        assert days_between(naive, START + timedelta(days=3)) == 3

    def test_other_timezones_are_converted(self):
        """Test aware datetimes in other zones are compared as instants."""
        sao_paulo = timezone(timedelta(hours=-3))
        start = datetime(2025, 1, 1, 9, 0, tzinfo=sao_paulo)  # 12:00 UTC

        assert days_between(start, START + timedelta(days=2)) == 2

    def test_start_after_end_is_negative(self):
        """Test reversed arguments give a negative count."""
        assert days_between(START + timedelta(days=2), START) == -2


class TestDaysSinceDate:
    """Tests for days_since_date."""

    def test_calendar_days(self):
        """Test the UTC date of now is used."""
        now = datetime(2025, 3, 1, 0, 30, tzinfo=timezone.utc)

        assert days_since_date(date(2025, 2, 1), now) == 28

    def test_future_date_is_negative(self):
        """Test a due date in the future gives a negative age."""
        assert days_since_date(date(2025, 1, 5), START) == -4


class TestEnsureUtc:
    """Tests for ensure_utc and format_iso."""

    def test_none(self):
        """Test None passes through."""
        assert ensure_utc(None) is None
        assert format_iso(None) is None

    def test_naive_gets_utc(self):
        """Test naive datetimes get UTC tzinfo."""
        assert ensure_utc(datetime(2025, 1, 1)).tzinfo == timezone.utc

    def test_format_iso(self):
        """Test ISO formatting in UTC."""
        assert format_iso(START) == "2025-01-01T12:00:00+00:00"
