"""Appointment booking writer."""

from __future__ import annotations

import re
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from clinic_booking.services.database import db
from clinic_booking.services.errors import BookingWriteError
from clinic_booking.services.results import QueryResult
from clinic_booking.services.specializations import base_fee
from clinic_booking.services.weekdays import clinic_timezone, parse_day

ISO_FMT = "%Y-%m-%dT%H:%M:%S"


@dataclass
class BookingRequest:
    user_id: str
    doctor_id: str
    day: date | str
    slot_id: int | None
    patient_name: str
    patient_phone: str | None = None
    price: int | None = None
    start_time: str = "08:00"


def normalize_phone(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


def appointment_timestamp(day: date | str, start_time: str, tz: tzinfo | None = None) -> str:
    """Clinic-local ``day`` at ``start_time`` expressed in UTC."""

    hours, minutes = (int(part) for part in start_time.split(":")[:2])
    local = datetime.combine(parse_day(day), datetime.min.time()).replace(
        hour=hours, minute=minutes, tzinfo=tz or clinic_timezone()
    )
    return local.astimezone(timezone.utc).strftime(ISO_FMT)


def _insert_appointment(conn: sqlite3.Connection, row: dict[str, Any]) -> None:
    try:
        conn.execute(
            """
            INSERT INTO appointments(
                id, user_id, doctor_id, slot_id, date, appointment_date,
                patient_name, patient_phone, price, status, created_at
            ) VALUES (
                :id, :user_id, :doctor_id, :slot_id, :date, :appointment_date,
                :patient_name, :patient_phone, :price, :status, :created_at
            )
            """,
            row,
        )
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        raise BookingWriteError(str(exc)) from exc


def _booking_row(request: BookingRequest) -> dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "user_id": request.user_id,
        "doctor_id": request.doctor_id,
        "slot_id": request.slot_id,
        "date": parse_day(request.day).isoformat(),
        "appointment_date": appointment_timestamp(request.day, request.start_time),
        "patient_name": (request.patient_name or "").strip(),
        "patient_phone": normalize_phone(request.patient_phone) or None,
        "price": request.price if request.price is not None else base_fee(),
        "status": "pending",
        "created_at": datetime.now(timezone.utc).strftime(ISO_FMT),
    }


def create_appointment(request: BookingRequest) -> QueryResult:
    """Insert one pending appointment and return the stored row.

    Seat availability is not re-checked here; the store's insert trigger
    rejects a full slot and that message (``slot_full``) is passed through.
    """

    try:
        row = _booking_row(request)
    except (ValueError, AttributeError) as exc:
        current_app.logger.warning("Booking request rejected before insert: %s", exc)
        return QueryResult.failure(f"invalid_booking: {exc}", empty={})
    conn = None
    try:
        conn = db()
        _insert_appointment(conn, row)
        stored = conn.execute("SELECT * FROM appointments WHERE id = ?", (row["id"],)).fetchone()
    except BookingWriteError as exc:
        current_app.logger.warning(
            "Booking rejected for doctor %s slot %s on %s: %s",
            row["doctor_id"],
            row["slot_id"],
            row["date"],
            exc,
        )
        return QueryResult.failure(str(exc), empty={})
    except (sqlite3.Error, SQLAlchemyError) as exc:
        current_app.logger.error("Booking could not be stored: %s", exc)
        return QueryResult.failure(str(exc), empty={})
    finally:
        if conn is not None:
            conn.close()

    current_app.logger.info("Appointment %s booked for %s", row["id"], row["date"])
    return QueryResult.success(dict(stored) if stored else row)
