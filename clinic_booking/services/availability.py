"""Doctor availability for a calendar date.

Every read here returns a :class:`QueryResult` so callers can tell an empty
roster from a failed query.
"""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from clinic_booking.models import CANCELLED_STATUSES
from clinic_booking.services.database import db, placeholders
from clinic_booking.services.errors import AvailabilityQueryError
from clinic_booking.services.results import QueryResult
from clinic_booking.services.weekdays import (
    clinic_today,
    iter_days,
    parse_day,
    weekday_name,
)

DEFAULT_SLOT_CAPACITY = 5

_TEMPLATE_COLUMNS = """
    t.id AS slot_id,
    t.doctor_id AS doctor_id,
    t.day_of_week AS day_of_week,
    t.start_time AS start_time,
    t.end_time AS end_time,
    t.max_patients_per_slot AS slot_capacity,
    d.name AS doctor_name,
    d.room_number AS room_number,
    d.experience_years AS experience_years,
    d.max_patients_per_slot AS doctor_capacity
"""


def effective_capacity(slot_capacity: int | None, doctor_capacity: int | None) -> int:
    return int(slot_capacity or doctor_capacity or DEFAULT_SLOT_CAPACITY)


def _doctor_specializations(conn: sqlite3.Connection, doctor_ids: Iterable[str]) -> dict[str, list[str]]:
    ids = sorted(set(doctor_ids))
    if not ids:
        return {}
    rows = conn.execute(
        f"""
        SELECT ds.doctor_id AS doctor_id, s.name AS name
        FROM doctor_specializations ds
        JOIN specializations s ON s.id = ds.specialization_id
        WHERE ds.doctor_id IN ({placeholders(len(ids))})
        ORDER BY s.name
        """,
        ids,
    ).fetchall()
    result: dict[str, list[str]] = defaultdict(list)
    for row in rows:
        result[row["doctor_id"]].append(row["name"].strip())
    return dict(result)


def _doctor_summary(row: sqlite3.Row, specializations: list[str]) -> dict[str, Any]:
    return {
        "id": row["doctor_id"],
        "name": row["doctor_name"],
        "room_number": row["room_number"],
        "experience_years": row["experience_years"] or 0,
        "max_patients_per_slot": row["doctor_capacity"],
        "specializations": specializations,
        "specialization_text": " • ".join(specializations),
    }


def _entry(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": row["slot_id"],
        "day_of_week": row["day_of_week"],
        "start_time": row["start_time"],
        "end_time": row["end_time"],
        "max_patients_per_slot": row["slot_capacity"],
    }


def _fetch_weekday_templates(
    weekday: str, *, doctor_id: str | None = None
) -> tuple[list[sqlite3.Row], dict[str, list[str]]]:
    sql = f"""
        SELECT {_TEMPLATE_COLUMNS}
        FROM doctor_schedule_template t
        JOIN doctors d ON d.id = t.doctor_id
        WHERE t.day_of_week = ?
    """
    params: list[Any] = [weekday]
    if doctor_id:
        sql += " AND t.doctor_id = ?"
        params.append(doctor_id)
    sql += " ORDER BY d.name, t.doctor_id, t.start_time"
    conn = None
    try:
        conn = db()
        rows = conn.execute(sql, params).fetchall()
        specs = _doctor_specializations(conn, (row["doctor_id"] for row in rows))
    except (sqlite3.Error, SQLAlchemyError) as exc:
        raise AvailabilityQueryError(str(exc)) from exc
    finally:
        if conn is not None:
            conn.close()
    return rows, specs


def _group_candidates(rows: Iterable[sqlite3.Row], specs: dict[str, list[str]], wanted: str | None) -> dict[str, dict]:
    grouped: dict[str, dict[str, Any]] = {}
    for row in rows:
        names = specs.get(row["doctor_id"], [])
        if wanted is not None and wanted not in names:
            continue
        bucket = grouped.setdefault(
            row["doctor_id"],
            {"doctor": _doctor_summary(row, names), "entries": []},
        )
        bucket["entries"].append(_entry(row))
    return grouped


def aggregate_availability(day: date | str, specialization: str | None) -> QueryResult:
    """Doctors working ``day``'s weekday who list ``specialization``.

    Data maps doctor id to ``{"doctor": summary, "entries": [template rows]}``.
    Matching is exact equality against the doctor's trimmed specialization
    names, so a doctor without specializations never matches.
    """

    weekday = weekday_name(day)
    wanted = (specialization or "").strip()
    if not wanted:
        return QueryResult.success({})
    try:
        rows, specs = _fetch_weekday_templates(weekday)
    except AvailabilityQueryError as exc:
        current_app.logger.error("Availability query failed for %s / %s: %s", weekday, wanted, exc)
        return QueryResult.failure(f"availability_unavailable: {exc}", empty={})
    return QueryResult.success(_group_candidates(rows, specs, wanted))


def doctor_candidates(doctor_id: str, day: date | str) -> QueryResult:
    """Same shape as :func:`aggregate_availability`, for one doctor and no specialization filter."""

    weekday = weekday_name(day)
    try:
        rows, specs = _fetch_weekday_templates(weekday, doctor_id=doctor_id)
    except AvailabilityQueryError as exc:
        current_app.logger.error("Schedule query failed for doctor %s on %s: %s", doctor_id, weekday, exc)
        return QueryResult.failure(f"availability_unavailable: {exc}", empty={})
    return QueryResult.success(_group_candidates(rows, specs, None))


def get_doctor(doctor_id: str) -> dict[str, Any] | None:
    conn = db()
    try:
        row = conn.execute(
            """
            SELECT id AS doctor_id, name AS doctor_name, room_number, experience_years,
                   max_patients_per_slot AS doctor_capacity
            FROM doctors WHERE id = ?
            """,
            (doctor_id,),
        ).fetchone()
        if row is None:
            return None
        specs = _doctor_specializations(conn, [doctor_id])
    finally:
        conn.close()
    return _doctor_summary(row, specs.get(doctor_id, []))


def _horizon(from_date: date | str | None, days_ahead: int | None, config_key: str, fallback: int) -> tuple[date, int]:
    start = parse_day(from_date) if from_date else clinic_today()
    days = days_ahead if days_ahead is not None else int(current_app.config.get(config_key, fallback))
    return start, max(int(days), 0)


def available_dates(from_date: date | str | None = None, days_ahead: int | None = None) -> QueryResult:
    """Ascending ISO dates in ``[from_date, from_date + days_ahead)`` with a free seat.

    A date qualifies when at least one template entry for its weekday still
    has remaining capacity on that date.
    """

    start, days = _horizon(from_date, days_ahead, "BOOKING_DAYS_AHEAD", 90)
    end = start + timedelta(days=days)
    conn = None
    try:
        conn = db()
        templates = conn.execute(
            """
            SELECT t.id AS slot_id, t.day_of_week AS day_of_week,
                   t.max_patients_per_slot AS slot_capacity,
                   d.max_patients_per_slot AS doctor_capacity
            FROM doctor_schedule_template t
            JOIN doctors d ON d.id = t.doctor_id
            """
        ).fetchall()
        booked_rows = conn.execute(
            f"""
            SELECT slot_id, date, COUNT(*) AS booked
            FROM appointments
            WHERE date >= ? AND date < ?
              AND slot_id IS NOT NULL
              AND status NOT IN ({placeholders(len(CANCELLED_STATUSES))})
            GROUP BY slot_id, date
            """,
            (start.isoformat(), end.isoformat(), *CANCELLED_STATUSES),
        ).fetchall()
    except (sqlite3.Error, SQLAlchemyError) as exc:
        current_app.logger.error("Available dates from %s could not be computed: %s", start, exc)
        return QueryResult.failure(f"dates_unavailable: {exc}")
    finally:
        if conn is not None:
            conn.close()

    by_weekday: dict[str, list[tuple[int, int]]] = defaultdict(list)
    for row in templates:
        by_weekday[row["day_of_week"]].append(
            (row["slot_id"], effective_capacity(row["slot_capacity"], row["doctor_capacity"]))
        )
    booked = {(row["slot_id"], row["date"]): row["booked"] for row in booked_rows}

    dates = []
    for day in iter_days(start, days):
        iso = day.isoformat()
        if any(capacity - booked.get((slot_id, iso), 0) > 0 for slot_id, capacity in by_weekday.get(weekday_name(day), [])):
            dates.append(iso)
    return QueryResult.success(dates)


def doctor_available_dates(
    doctor_id: str, from_date: date | str | None = None, days_ahead: int | None = None
) -> QueryResult:
    """Dates in the horizon whose weekday the doctor has working hours on."""

    start, days = _horizon(from_date, days_ahead, "DOCTOR_DAYS_AHEAD", 183)
    conn = None
    try:
        conn = db()
        rows = conn.execute(
            "SELECT DISTINCT day_of_week FROM doctor_schedule_template WHERE doctor_id = ?",
            (doctor_id,),
        ).fetchall()
    except (sqlite3.Error, SQLAlchemyError) as exc:
        current_app.logger.error("Working days for doctor %s could not be loaded: %s", doctor_id, exc)
        return QueryResult.failure(f"dates_unavailable: {exc}")
    finally:
        if conn is not None:
            conn.close()
    working = {row["day_of_week"] for row in rows}
    return QueryResult.success(
        [day.isoformat() for day in iter_days(start, days) if weekday_name(day) in working]
    )
