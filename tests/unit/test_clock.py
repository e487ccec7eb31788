"""Unit tests for clock helpers."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from grindset.core import clock


@pytest.mark.unit
class TestCalendarDays:
    """Tests for start_of_day, day_key and today_window."""

    def test_start_of_day_uses_utc(self):
        tokyo = timezone(timedelta(hours=9))
        value = datetime(2024, 3, 10, 3, 0, tzinfo=tokyo)

        assert clock.start_of_day(value) == datetime(2024, 3, 9, tzinfo=UTC)
        assert clock.day_key(value) == "2024-03-09"

    def test_naive_datetimes_are_utc(self):
        assert clock.ensure_utc(datetime(2024, 1, 1, 5)) == datetime(2024, 1, 1, 5, tzinfo=UTC)

    def test_today_window_is_skewed(self):
        start, end = clock.today_window(datetime(2024, 3, 10, 12, 0, tzinfo=UTC))

        assert start == datetime(2024, 3, 9, 23, 0, tzinfo=UTC)
        assert end == datetime(2024, 3, 10, 23, 0, tzinfo=UTC)

    def test_today_window_defaults_to_now(self, monkeypatch):
        monkeypatch.setattr(clock, "utc_now", lambda: datetime(2024, 3, 10, 0, 30, tzinfo=UTC))

        start, _ = clock.today_window()

        assert start == datetime(2024, 3, 9, 23, 0, tzinfo=UTC)


@pytest.mark.unit
class TestTimestamps:
    """Tests for format_timestamp and parse_timestamp."""

    def test_fixed_width_sorts_chronologically(self):
        earlier = clock.format_timestamp(datetime(2024, 3, 9, 23, 59, 59, 999999, tzinfo=UTC))
        later = clock.format_timestamp(datetime(2024, 3, 10, tzinfo=UTC))

        assert len(earlier) == len(later)
        assert earlier < later

    def test_parse_accepts_z_suffix(self):
        assert clock.parse_timestamp("2024-03-10T00:00:00Z") == datetime(2024, 3, 10, tzinfo=UTC)

    def test_parse_inverts_format(self):
        value = datetime(2024, 3, 10, 8, 15, 30, 1234, tzinfo=UTC)

        assert clock.parse_timestamp(clock.format_timestamp(value)) == value
