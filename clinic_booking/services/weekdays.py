"""Clinic calendar: weekday labels, date parsing and the clinic-local clock."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Iterator

from flask import current_app

# Index 0 is Sunday; this order is the join key into doctor_schedule_template.
WEEKDAY_LABELS: tuple[str, ...] = (
    "Chủ nhật",
    "Thứ 2",
    "Thứ 3",
    "Thứ 4",
    "Thứ 5",
    "Thứ 6",
    "Thứ 7",
)

# Editor order (Monday first) used when presenting a week.
WEEK_ORDER: tuple[str, ...] = WEEKDAY_LABELS[1:] + WEEKDAY_LABELS[:1]

_ALIASES: dict[str, str] = {
    "thu 2": "Thứ 2", "t2": "Thứ 2", "thứ hai": "Thứ 2",
    "thu 3": "Thứ 3", "t3": "Thứ 3", "thứ ba": "Thứ 3",
    "thu 4": "Thứ 4", "t4": "Thứ 4", "thứ tư": "Thứ 4",
    "thu 5": "Thứ 5", "t5": "Thứ 5", "thứ năm": "Thứ 5",
    "thu 6": "Thứ 6", "t6": "Thứ 6", "thứ sáu": "Thứ 6",
    "thu 7": "Thứ 7", "t7": "Thứ 7", "thứ bảy": "Thứ 7",
    "cn": "Chủ nhật", "chu nhat": "Chủ nhật",
}


class InvalidDate(ValueError):
    """Raised when a value cannot be read as a calendar date."""


def parse_day(value: date | str | None) -> date:
    """Read ``value`` as a local calendar date (``YYYY-MM-DD``)."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = (value or "").strip() if isinstance(value, str) else ""
    try:
        return date.fromisoformat(text[:10])
    except ValueError as exc:
        raise InvalidDate(f"invalid_date:{value!r}") from exc


def weekday_index(day: date) -> int:
    """Day of week with Sunday as 0."""

    return (day.weekday() + 1) % 7


def weekday_name(day: date | str) -> str:
    return WEEKDAY_LABELS[weekday_index(parse_day(day))]


def normalize_weekday(label: str | None) -> str | None:
    """Return the canonical label for ``label`` or ``None`` if unrecognised."""

    if not label:
        return None
    cleaned = " ".join(label.split())
    if cleaned in WEEKDAY_LABELS:
        return cleaned
    lowered = cleaned.lower()
    for canonical in WEEKDAY_LABELS:
        if canonical.lower() == lowered:
            return canonical
    return _ALIASES.get(lowered)


def iter_days(start: date, count: int) -> Iterator[date]:
    for offset in range(max(count, 0)):
        yield start + timedelta(days=offset)


_OFFSET_PATTERN = re.compile(r"([+-])(\d{2}):?(\d{2})")


def parse_utc_offset(value: str) -> timezone:
    """Read a fixed ``+HH:MM`` offset such as the clinic's ``+07:00``."""

    match = _OFFSET_PATTERN.fullmatch((value or "").strip())
    if not match:
        raise ValueError(f"invalid_utc_offset:{value!r}")
    sign = -1 if match.group(1) == "-" else 1
    return timezone(sign * timedelta(hours=int(match.group(2)), minutes=int(match.group(3))))


def clinic_timezone() -> timezone:
    return parse_utc_offset(current_app.config.get("CLINIC_UTC_OFFSET", "+07:00"))


def clinic_today() -> date:
    """Today's calendar date at the clinic, regardless of the server's zone."""

    return datetime.now(clinic_timezone()).date()
