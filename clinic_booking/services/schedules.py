"""Weekly working-hour templates: validation, authoring helpers and persistence.

A template maps weekday labels to lists of ``{"start": "HH:MM", "end": "HH:MM"}``
ranges. It is validated as a whole before anything touches the store, and it
is always stored as a full replacement of the doctor's previous template.
"""

from __future__ import annotations

import re
import sqlite3
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clinic_booking.models import Doctor, ScheduleTemplateEntry, Specialization
from clinic_booking.services.database import placeholders, session_scope, write_transaction
from clinic_booking.services.errors import (
    DoctorNotFound,
    ScheduleReplaceError,
    ScheduleValidationError,
    SchedulingError,
)
from clinic_booking.services.specializations import split_specializations
from clinic_booking.services.weekdays import WEEK_ORDER, normalize_weekday

TIME_PATTERN = re.compile(r"([0-1][0-9]|2[0-3]):[0-5][0-9]")
MINUTES_PER_DAY = 24 * 60
DEFAULT_FIRST_RANGE = ("08:00", "09:00")


@dataclass(frozen=True)
class TimeRange:
    start: str
    end: str

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    def stored(self) -> tuple[str, str]:
        return f"{self.start}:00", f"{self.end}:00"

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}


def to_minutes(value: str) -> int:
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def _from_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def is_valid_time(value: Any) -> bool:
    return isinstance(value, str) and TIME_PATTERN.fullmatch(value) is not None


def _raw_bounds(raw: Any) -> tuple[Any, Any]:
    if isinstance(raw, Mapping):
        return raw.get("start"), raw.get("end")
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return raw[0], raw[1]
    return None, None


def _group_by_weekday(template: Mapping[str, Sequence[Any]]) -> list[tuple[str, str | None, list[Any]]]:
    """Merge alias labels ("T2", "Thứ hai") into one day, keeping first-seen order."""

    groups: dict[str, tuple[str, str | None, list[Any]]] = {}
    for label, raw_ranges in template.items():
        ranges = list(raw_ranges or [])
        if not ranges:
            continue
        weekday = normalize_weekday(label)
        key = weekday or f"?{label}"
        if key not in groups:
            groups[key] = (label, weekday, [])
        groups[key][2].extend(ranges)
    return list(groups.values())


def validate_template(template: Mapping[str, Sequence[Any]]) -> dict[str, list[TimeRange]]:
    """Return the accepted template with each day's ranges sorted by start.

    Raises :class:`ScheduleValidationError` naming the first offending weekday
    and rule. Rules apply per day in this order: format, start before end,
    no overlap. Touching ranges (one ends when the next starts) are allowed.
    """

    if not isinstance(template, Mapping):
        raise ScheduleValidationError("format", "schedule must map weekdays to time ranges")
    for label, ranges in template.items():
        if ranges is not None and not isinstance(ranges, (list, tuple)):
            raise ScheduleValidationError(
                "format", f"{label}: working hours must be a list of time ranges", weekday=label
            )
    if sum(len(ranges or []) for ranges in template.values()) == 0:
        raise ScheduleValidationError("empty", "no working hours configured")

    accepted: dict[str, list[TimeRange]] = {}
    for label, weekday, raw_ranges in _group_by_weekday(template):
        if weekday is None:
            raise ScheduleValidationError("weekday", f"{label}: unknown weekday", weekday=label)

        bounds = [_raw_bounds(raw) for raw in raw_ranges]
        for start, end in bounds:
            if not (is_valid_time(start) and is_valid_time(end)):
                raise ScheduleValidationError(
                    "format", f"{weekday}: times must be HH:MM (e.g. 08:00)", weekday=weekday
                )

        ranges = [TimeRange(start, end) for start, end in bounds]
        for rng in ranges:
            if rng.start_minutes >= rng.end_minutes:
                raise ScheduleValidationError(
                    "order",
                    f"{weekday}: end time must be after start time ({rng.start}-{rng.end})",
                    weekday=weekday,
                )

        ranges.sort(key=lambda rng: rng.start_minutes)
        for prev, nxt in zip(ranges, ranges[1:]):
            if prev.end_minutes > nxt.start_minutes:
                raise ScheduleValidationError(
                    "overlap",
                    f"{weekday}: {prev.start}-{prev.end} overlaps {nxt.start}-{nxt.end}",
                    weekday=weekday,
                )
        accepted[weekday] = ranges
    return accepted


def template_to_dict(template: Mapping[str, Iterable[TimeRange]]) -> dict[str, list[dict[str, str]]]:
    ordered = sorted(template, key=WEEK_ORDER.index)
    return {day: [rng.to_dict() for rng in template[day]] for day in ordered}


def format_time_input(text: str | None) -> str:
    """Shape raw keypad input into ``HH:MM`` as it is typed ("0830" -> "08:30")."""

    digits = re.sub(r"[^0-9]", "", text or "")
    if len(digits) <= 2:
        return digits
    if len(digits) == 3:
        return f"{digits[:2]}:{digits[2]}"
    return f"{digits[:2]}:{digits[2:4]}"


def suggest_next_range(ranges: Sequence[Any]) -> TimeRange:
    """Propose a one hour range starting an hour after the last range ends."""

    if ranges:
        _, last_end = _raw_bounds(ranges[-1])
        if is_valid_time(last_end):
            next_start = to_minutes(last_end) + 60
            if next_start < MINUTES_PER_DAY:
                next_end = min(next_start + 60, MINUTES_PER_DAY - 1)
                return TimeRange(_from_minutes(next_start), _from_minutes(next_end))
    return TimeRange(*DEFAULT_FIRST_RANGE)


def _default_capacity() -> int:
    return int(current_app.config.get("SCHEDULE_DEFAULT_MAX_PATIENTS", 10))


def load_schedule(doctor_id: str) -> dict[str, list[dict[str, Any]]]:
    """Current template for ``doctor_id`` grouped by weekday, Monday first."""

    with session_scope() as session:
        doctor = session.get(Doctor, doctor_id)
        if doctor is None:
            raise DoctorNotFound(doctor_id)
        entries = session.execute(
            select(ScheduleTemplateEntry)
            .where(ScheduleTemplateEntry.doctor_id == doctor_id)
            .order_by(ScheduleTemplateEntry.start_time)
        ).scalars().all()
        grouped: dict[str, list[dict[str, Any]]] = {}
        for entry in entries:
            day = normalize_weekday(entry.day_of_week) or entry.day_of_week.strip()
            grouped.setdefault(day, []).append(
                {
                    "id": entry.id,
                    "start": entry.start_time[:5],
                    "end": entry.end_time[:5],
                    "max_patients_per_slot": entry.max_patients_per_slot,
                }
            )
    return {
        day: grouped[day]
        for day in sorted(grouped, key=lambda d: WEEK_ORDER.index(d) if d in WEEK_ORDER else len(WEEK_ORDER))
    }


def replace_schedule(
    doctor_id: str,
    template: Mapping[str, Sequence[Any]],
    *,
    max_patients: int | None = None,
) -> dict[str, int]:
    """Atomically make the doctor's stored template equal to ``template``.

    Entries whose (weekday, start, end) survive keep their ids so bookings
    referencing them stay attached; the rest are deleted and new ranges are
    inserted, all inside one write transaction.
    """

    accepted = validate_template(template)
    wanted: list[tuple[str, str, str]] = [
        (day, *rng.stored()) for day, ranges in accepted.items() for rng in ranges
    ]
    try:
        with write_transaction() as conn:
            doctor = conn.execute(
                "SELECT id, max_patients_per_slot FROM doctors WHERE id = ?", (doctor_id,)
            ).fetchone()
            if doctor is None:
                raise DoctorNotFound(doctor_id)
            capacity = max_patients or doctor["max_patients_per_slot"] or _default_capacity()

            kept: dict[tuple[str, str, str], int] = {}
            stale: list[int] = []
            existing = conn.execute(
                "SELECT id, day_of_week, start_time, end_time FROM doctor_schedule_template WHERE doctor_id = ?",
                (doctor_id,),
            ).fetchall()
            wanted_keys = set(wanted)
            for row in existing:
                key = (row["day_of_week"], row["start_time"], row["end_time"])
                if key in wanted_keys and key not in kept:
                    kept[key] = row["id"]
                else:
                    stale.append(row["id"])

            if stale:
                conn.execute(
                    f"DELETE FROM doctor_schedule_template WHERE id IN ({placeholders(len(stale))})",
                    stale,
                )
            if kept:
                conn.execute(
                    f"UPDATE doctor_schedule_template SET max_patients_per_slot = ? "
                    f"WHERE id IN ({placeholders(len(kept))})",
                    [capacity, *kept.values()],
                )
            added = [key for key in wanted if key not in kept]
            conn.executemany(
                """
                INSERT INTO doctor_schedule_template(doctor_id, day_of_week, start_time, end_time, max_patients_per_slot)
                VALUES (?, ?, ?, ?, ?)
                """,
                [(doctor_id, day, start, end, capacity) for day, start, end in added],
            )
    except DoctorNotFound:
        raise
    except (sqlite3.Error, SQLAlchemyError) as exc:
        current_app.logger.error("Schedule replace for doctor %s rolled back: %s", doctor_id, exc)
        raise ScheduleReplaceError(str(exc)) from exc

    current_app.logger.info(
        "Schedule for doctor %s replaced: %d kept, %d removed, %d added",
        doctor_id,
        len(kept),
        len(stale),
        len(added),
    )
    return {"kept": len(kept), "removed": len(stale), "added": len(added)}


def _specializations_for(session, names: Iterable[str]) -> list[Specialization]:
    result = []
    for name in names:
        spec = session.execute(
            select(Specialization).where(Specialization.name == name)
        ).unique().scalar_one_or_none()
        if spec is None:
            spec = Specialization(name=name)
            session.add(spec)
        result.append(spec)
    return result


def provision_doctor(
    name: str,
    specialization: str | Iterable[str] | None,
    template: Mapping[str, Sequence[Any]],
    *,
    doctor_id: str | None = None,
    room_number: str | None = None,
    experience_years: int = 0,
    max_patients_per_slot: int | None = None,
    department_name: str | None = None,
    bio: str | None = None,
) -> str:
    """Create a doctor, its specializations and its first template in one transaction."""

    name = (name or "").strip()
    if not name:
        raise SchedulingError("doctor_name_required")
    accepted = validate_template(template)
    capacity = max_patients_per_slot or _default_capacity()
    new_id = doctor_id or str(uuid.uuid4())
    try:
        with session_scope() as session:
            doctor = Doctor(
                id=new_id,
                name=name,
                room_number=(room_number or "").strip() or None,
                experience_years=int(experience_years or 0),
                max_patients_per_slot=max_patients_per_slot,
                department_name=department_name,
                bio=bio,
            )
            doctor.specializations = _specializations_for(session, split_specializations(specialization))
            for day, ranges in accepted.items():
                for rng in ranges:
                    start, end = rng.stored()
                    doctor.schedule.append(
                        ScheduleTemplateEntry(
                            day_of_week=day,
                            start_time=start,
                            end_time=end,
                            max_patients_per_slot=capacity,
                        )
                    )
            session.add(doctor)
    except IntegrityError as exc:
        current_app.logger.warning("Doctor %s could not be created: %s", new_id, exc.orig)
        raise SchedulingError(f"doctor_exists:{new_id}") from exc
    current_app.logger.info("Doctor %s (%s) provisioned", new_id, name)
    return new_id
