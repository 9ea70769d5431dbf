"""
Tests for time helpers.
"""
from datetime import date, datetime, timezone

from smartbook.utils.time import (
    at_fractional_hour, format_hour, hours_since_midnight, parse_date_param,
    stamp_date, to_local, window_around
)

DAY = date(2024, 5, 1)


def test_hours_since_midnight():
    assert hours_since_midnight(datetime(2024, 5, 1, 9, 45), DAY) == 9.75
    assert hours_since_midnight(datetime(2024, 5, 1, 10, 0, 36), DAY) == 10.01
    assert hours_since_midnight(datetime(2024, 5, 2, 1, 0), DAY) == 25.0


def test_fractional_hours_round_trip():
    assert at_fractional_hour(DAY, 8.5) == datetime(2024, 5, 1, 8, 30)
    assert format_hour(13.5) == "13:30"
    assert format_hour(8) == "08:00"


def test_stamp_date():
    assert stamp_date("09:30", DAY) == "2024-05-01T09:30"
    assert stamp_date(" 9:05:10 ", DAY) == "2024-05-01T9:05:10"
    assert stamp_date("2024-05-02T09:30:00", DAY) == "2024-05-02T09:30:00"


def test_to_local_converts_aware_datetimes():
    # New York is UTC-4 in May
    aware = datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc)
    assert to_local(aware) == datetime(2024, 5, 1, 9, 0)

    naive = datetime(2024, 5, 1, 13, 0)
    assert to_local(naive) is naive


def test_window_around():
    start, end = window_around(DAY, 7)

    assert start == datetime(2024, 4, 24, 0, 0)
    assert end.date() == date(2024, 5, 8)
    assert end.hour == 23


def test_parse_date_param():
    assert parse_date_param(None) is None
    assert parse_date_param("2024-05-01") == datetime(2024, 5, 1)
    assert parse_date_param("2024-05-01T13:00:00Z") == datetime(2024, 5, 1, 9, 0)


def test_stamp_date_keeps_offsets():
    assert stamp_date("09:30Z", DAY) == "2024-05-01T09:30Z"
    assert stamp_date("09:30+02:00", DAY) == "2024-05-01T09:30+02:00"
    assert stamp_date("09:30:00-04:00", DAY) == "2024-05-01T09:30:00-04:00"
