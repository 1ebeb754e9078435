from datetime import date, datetime, timezone, timedelta

import pytest

from clinic_booking.services.booking import appointment_timestamp, normalize_phone
from clinic_booking.services.weekdays import (
    InvalidDate,
    WEEK_ORDER,
    iter_days,
    normalize_weekday,
    parse_day,
    parse_utc_offset,
    weekday_name,
)


@pytest.mark.parametrize(
    "day, label",
    [
        ("2024-01-07", "Chủ nhật"),
        ("2025-01-06", "Thứ 2"),
        ("2025-01-07", "Thứ 3"),
        ("2025-01-11", "Thứ 7"),
    ],
)
def test_weekday_name_uses_sunday_first_labels(day, label):
    assert weekday_name(day) == label
    assert weekday_name(date.fromisoformat(day)) == label


def test_parse_day_accepts_dates_and_datetimes():
    assert parse_day("2025-01-06") == date(2025, 1, 6)
    assert parse_day(" 2025-01-06T09:30:00 ") == date(2025, 1, 6)
    assert parse_day(datetime(2025, 1, 6, 23, 59)) == date(2025, 1, 6)


@pytest.mark.parametrize("value", ["", None, "06/01/2025", "2025-02-30", "not a date"])
def test_parse_day_rejects_invalid_values(value):
    with pytest.raises(InvalidDate):
        parse_day(value)


def test_invalid_date_is_a_value_error():
    with pytest.raises(ValueError):
        weekday_name("2025-13-01")


@pytest.mark.parametrize(
    "label, expected",
    [
        ("Thứ 2", "Thứ 2"),
        ("  thứ   2 ", "Thứ 2"),
        ("T2", "Thứ 2"),
        ("Thứ bảy", "Thứ 7"),
        ("CN", "Chủ nhật"),
        ("chủ nhật", "Chủ nhật"),
        ("Monday", None),
        ("", None),
    ],
)
def test_normalize_weekday_aliases(label, expected):
    assert normalize_weekday(label) == expected


def test_week_order_starts_on_monday():
    assert WEEK_ORDER[0] == "Thứ 2"
    assert WEEK_ORDER[-1] == "Chủ nhật"


def test_iter_days_is_half_open():
    days = list(iter_days(date(2025, 1, 30), 3))
    assert days == [date(2025, 1, 30), date(2025, 1, 31), date(2025, 2, 1)]
    assert list(iter_days(date(2025, 1, 30), 0)) == []


def test_parse_utc_offset():
    assert parse_utc_offset("+07:00") == timezone(timedelta(hours=7))
    assert parse_utc_offset("-0330") == timezone(-timedelta(hours=3, minutes=30))
    with pytest.raises(ValueError):
        parse_utc_offset("UTC+7")


def test_appointment_timestamp_is_stored_in_utc():
    tz = timezone(timedelta(hours=7))
    assert appointment_timestamp("2025-01-06", "08:00", tz) == "2025-01-06T01:00:00"
    # Early local slots fall on the previous UTC day.
    assert appointment_timestamp("2025-01-06", "06:30", tz) == "2025-01-05T23:30:00"


def test_appointment_timestamp_uses_clinic_offset(app):
    with app.app_context():
        assert appointment_timestamp("2025-01-06", "14:00") == "2025-01-06T07:00:00"


def test_normalize_phone_keeps_digits_only():
    assert normalize_phone(" 090-123 4567 ") == "0901234567"
    assert normalize_phone(None) == ""
