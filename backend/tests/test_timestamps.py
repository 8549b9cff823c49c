"""Tests for lenient timestamp parsing and rolling-max updates."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from clinic_history.utils.timestamps import (
    first_timestamp,
    parse_clock_time,
    parse_timestamp,
    recency_key,
    update_last,
)

UTC = timezone.utc


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_iso_string_with_z(self):
        assert parse_timestamp("2024-06-15T10:00:00Z") == datetime(2024, 6, 15, 10, 0, tzinfo=UTC)

    def test_offset_is_normalized_to_utc(self):
        parsed = parse_timestamp("2024-06-15T10:00:00-05:00")
        assert parsed == datetime(2024, 6, 15, 15, 0, tzinfo=UTC)
        assert parsed.tzinfo == UTC

    def test_naive_datetime_assumed_utc(self):
        assert parse_timestamp(datetime(2024, 1, 1, 8, 30)) == datetime(2024, 1, 1, 8, 30, tzinfo=UTC)

    def test_date_becomes_midnight(self):
        assert parse_timestamp(date(2024, 1, 2)) == datetime(2024, 1, 2, tzinfo=UTC)

    @pytest.mark.parametrize("value", ["not-a-date", "", "   ", None, 12345, object()])
    def test_unparseable_values_are_none(self, value):
        assert parse_timestamp(value) is None


class TestFirstTimestamp:
    """Tests for the fallback chain."""

    def test_skips_invalid_and_missing(self):
        result = first_timestamp(None, "garbage", "2024-02-01T00:00:00Z", "2025-01-01T00:00:00Z")
        assert result == datetime(2024, 2, 1, tzinfo=UTC)

    def test_all_missing(self):
        assert first_timestamp(None, "nope") is None


class TestUpdateLast:
    """Tests for the rolling-max rule."""

    def test_takes_candidate_when_current_missing(self):
        ts = datetime(2024, 1, 1, tzinfo=UTC)
        assert update_last(None, ts) == ts

    def test_keeps_later_value(self):
        early = datetime(2024, 1, 1, tzinfo=UTC)
        late = early + timedelta(days=1)
        assert update_last(early, late) == late
        assert update_last(late, early) == late

    def test_ignores_missing_candidate(self):
        ts = datetime(2024, 1, 1, tzinfo=UTC)
        assert update_last(ts, None) == ts
        assert update_last(None, None) is None


def test_recency_key_puts_missing_below_any_date():
    assert recency_key("not-a-date") < recency_key("1970-01-01T00:00:00Z")


def test_parse_clock_time():
    assert parse_clock_time("09:15") == time(9, 15)
    assert parse_clock_time("09:15:30") == time(9, 15, 30)
    assert parse_clock_time("late morning") is None
    assert parse_clock_time(None) is None
