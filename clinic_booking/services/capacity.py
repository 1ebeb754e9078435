"""Remaining seats per template slot for a given date."""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import Any, Iterable, Mapping

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from clinic_booking.models import CANCELLED_STATUSES
from clinic_booking.services.availability import (
    DEFAULT_SLOT_CAPACITY,
    aggregate_availability,
    doctor_candidates,
    effective_capacity,
)
from clinic_booking.services.database import db, placeholders
from clinic_booking.services.errors import CapacityQueryError
from clinic_booking.services.results import QueryResult
from clinic_booking.services.weekdays import parse_day

__all__ = [
    "DEFAULT_SLOT_CAPACITY",
    "compute_slots",
    "count_bookings",
    "doctor_slots",
    "effective_capacity",
    "find_available_slots",
    "session_label",
]


def session_label(start_time: str) -> str:
    hour = int(start_time.split(":")[0])
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def count_bookings(conn: sqlite3.Connection, day: str, slot_ids: Iterable[int]) -> dict[int, int]:
    """Non-cancelled appointments per slot id on ``day``."""

    ids = sorted(set(slot_ids))
    if not ids:
        return {}
    rows = conn.execute(
        f"""
        SELECT slot_id, COUNT(*) AS booked
        FROM appointments
        WHERE date = ?
          AND slot_id IN ({placeholders(len(ids))})
          AND status NOT IN ({placeholders(len(CANCELLED_STATUSES))})
        GROUP BY slot_id
        """,
        (day, *ids, *CANCELLED_STATUSES),
    ).fetchall()
    return {row["slot_id"]: row["booked"] for row in rows}


def _fetch_booked(day: str, slot_ids: Iterable[int]) -> dict[int, int]:
    conn = None
    try:
        conn = db()
        return count_bookings(conn, day, slot_ids)
    except (sqlite3.Error, SQLAlchemyError) as exc:
        raise CapacityQueryError(str(exc)) from exc
    finally:
        if conn is not None:
            conn.close()


def _slot_payload(entry: Mapping[str, Any], doctor: Mapping[str, Any], booked: int) -> dict[str, Any]:
    start = entry["start_time"][:5]
    end = entry["end_time"][:5]
    capacity = effective_capacity(entry.get("max_patients_per_slot"), doctor.get("max_patients_per_slot"))
    return {
        "id": entry["id"],
        "display": f"{start} - {end}",
        "start_time": start,
        "end_time": end,
        "session": session_label(start),
        "max_patients": capacity,
        "booked": booked,
        "available": capacity - booked,
    }


def compute_slots(candidates: Mapping[str, Mapping[str, Any]], day: date | str) -> QueryResult:
    """Attach remaining capacity to each candidate entry.

    Full slots are dropped, and so are doctors left with no open slot. Doctor
    order from ``candidates`` is preserved; slots stay in start-time order.
    """

    iso = parse_day(day).isoformat()
    slot_ids = [entry["id"] for bucket in candidates.values() for entry in bucket["entries"]]
    try:
        booked = _fetch_booked(iso, slot_ids)
    except CapacityQueryError as exc:
        current_app.logger.error("Booking counts for %s could not be read: %s", iso, exc)
        return QueryResult.failure(f"capacity_unavailable: {exc}")

    doctors = []
    for bucket in candidates.values():
        doctor = bucket["doctor"]
        slots = [
            payload
            for payload in (_slot_payload(entry, doctor, booked.get(entry["id"], 0)) for entry in bucket["entries"])
            if payload["available"] > 0
        ]
        if slots:
            doctors.append({**doctor, "slots": slots})
    return QueryResult.success(doctors)


def find_available_slots(day: date | str, specialization: str | None) -> QueryResult:
    """Doctors of ``specialization`` with at least one open slot on ``day``."""

    candidates = aggregate_availability(day, specialization)
    if not candidates.ok:
        return QueryResult.failure(candidates.error or "availability_unavailable")
    return compute_slots(candidates.data, day)


def doctor_slots(doctor_id: str, day: date | str) -> QueryResult:
    """Open slots of one doctor on ``day``; data is ``[]`` when none remain."""

    candidates = doctor_candidates(doctor_id, day)
    if not candidates.ok:
        return QueryResult.failure(candidates.error or "availability_unavailable")
    result = compute_slots(candidates.data, day)
    if not result.ok:
        return result
    return QueryResult.success(result.data[0]["slots"] if result.data else [])
