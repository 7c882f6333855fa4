"""Tests for timestamp helpers."""

from datetime import datetime, timedelta, timezone

from adwatch.utils.timestamps import ensure_utc, format_timestamp, parse_timestamp, utc_now


def test_utc_now_is_aware():
    assert utc_now().tzinfo == timezone.utc


def test_ensure_utc_none():
    assert ensure_utc(None) is None


def test_ensure_utc_naive_assumed_utc():
    assert ensure_utc(datetime(2025, 1, 1, 8, 0)) == datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)


def test_ensure_utc_converts_offset():
    minus_five = timezone(timedelta(hours=-5))
    converted = ensure_utc(datetime(2025, 1, 1, 8, 0, tzinfo=minus_five))
    assert converted == datetime(2025, 1, 1, 13, 0, tzinfo=timezone.utc)
    assert converted.tzinfo == timezone.utc


def test_format_timestamp():
    dt = datetime(2025, 11, 4, 12, 30, 15, 123456, tzinfo=timezone.utc)
    assert format_timestamp(dt) == "2025-11-04T12:30:15.123456Z"


def test_format_and_parse_preserve_instant():
    dt = datetime(2025, 11, 4, 12, 30, 15, 123456, tzinfo=timezone.utc)
    assert parse_timestamp(format_timestamp(dt)) == dt


def test_parse_without_microseconds_or_suffix():
    assert parse_timestamp("2025-11-04T12:30:15") == datetime(2025, 11, 4, 12, 30, 15, tzinfo=timezone.utc)


def test_parse_and_format_none():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert format_timestamp(None) is None


def test_formatted_timestamps_sort_chronologically():
    earlier = format_timestamp(datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc))
    later = format_timestamp(datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc))
    assert earlier < later
