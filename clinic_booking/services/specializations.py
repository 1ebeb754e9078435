"""Doctor specializations and the prices shown next to them."""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import Iterable

from flask import current_app
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.models import Service
from clinic_booking.services.database import db, session_scope
from clinic_booking.services.results import QueryResult
from clinic_booking.services.weekdays import weekday_name

DEFAULT_PRICE = 180000
PRICED_SERVICE_TYPES = ("consultation", "imaging", "lab_test")


def split_specializations(value: str | Iterable[str] | None) -> list[str]:
    """Trimmed, de-duplicated specialization names from a comma list or iterable."""

    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else value
    names: list[str] = []
    for part in parts:
        name = (part or "").strip()
        if name and name not in names:
            names.append(name)
    return names


def base_fee() -> int:
    return int(current_app.config.get("BOOKING_DEFAULT_PRICE", DEFAULT_PRICE))


def service_price(session: Session, name: str) -> int:
    """Cheapest active priced service whose name or department mentions ``name``."""

    keyword = f"%{name.strip()}%"
    price = session.execute(
        select(func.min(Service.price)).where(
            Service.is_active.is_(True),
            Service.service_type.in_(PRICED_SERVICE_TYPES),
            or_(Service.name.like(keyword), Service.department.like(keyword)),
        )
    ).scalar_one_or_none()
    if not price:
        current_app.logger.debug("No price found for %s, using base fee", name)
        return base_fee()
    return int(price)


def list_specializations_for_day(day: date | str) -> QueryResult:
    """Specializations offered on ``day``'s weekday with doctor counts and prices."""

    weekday = weekday_name(day)
    conn = None
    try:
        conn = db()
        rows = conn.execute(
            """
            SELECT s.name AS name, COUNT(DISTINCT t.doctor_id) AS doctor_count
            FROM doctor_schedule_template t
            JOIN doctor_specializations ds ON ds.doctor_id = t.doctor_id
            JOIN specializations s ON s.id = ds.specialization_id
            WHERE t.day_of_week = ?
            GROUP BY s.name
            """,
            (weekday,),
        ).fetchall()
        with session_scope() as session:
            data = [
                {
                    "name": row["name"],
                    "doctor_count": row["doctor_count"],
                    "price": service_price(session, row["name"]),
                }
                for row in rows
            ]
    except (sqlite3.Error, SQLAlchemyError) as exc:
        current_app.logger.error("Specializations for %s could not be loaded: %s", weekday, exc)
        return QueryResult.failure(f"specializations_unavailable: {exc}")
    finally:
        if conn is not None:
            conn.close()
    data.sort(key=lambda item: item["name"].casefold())
    return QueryResult.success(data)
