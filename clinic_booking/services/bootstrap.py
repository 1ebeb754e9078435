"""Bootstrap helper to ensure the scheduling tables exist for first-time runs."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable

from clinic_booking.models import APPOINTMENT_STATUSES, CANCELLED_STATUSES, sql_values

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS doctors (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        room_number TEXT,
        experience_years INTEGER NOT NULL DEFAULT 0,
        max_patients_per_slot INTEGER,
        department_name TEXT,
        bio TEXT,
        created_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS specializations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS doctor_specializations (
        doctor_id TEXT NOT NULL,
        specialization_id INTEGER NOT NULL,
        PRIMARY KEY (doctor_id, specialization_id),
        FOREIGN KEY(doctor_id) REFERENCES doctors(id) ON DELETE CASCADE,
        FOREIGN KEY(specialization_id) REFERENCES specializations(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_doctor_specializations_spec ON doctor_specializations(specialization_id)",
    """
    CREATE TABLE IF NOT EXISTS doctor_schedule_template (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        doctor_id TEXT NOT NULL,
        day_of_week TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        max_patients_per_slot INTEGER,
        FOREIGN KEY(doctor_id) REFERENCES doctors(id) ON DELETE CASCADE,
        CONSTRAINT ck_schedule_start_before_end CHECK(start_time < end_time)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_schedule_day ON doctor_schedule_template(day_of_week)",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_schedule_doctor_day_start
    ON doctor_schedule_template(doctor_id, day_of_week, start_time)
    """,
    f"""
    CREATE TABLE IF NOT EXISTS appointments (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        doctor_id TEXT NOT NULL,
        slot_id INTEGER,
        date TEXT NOT NULL,
        appointment_date TEXT NOT NULL,
        patient_name TEXT NOT NULL,
        patient_phone TEXT,
        price INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        FOREIGN KEY(doctor_id) REFERENCES doctors(id) ON DELETE CASCADE,
        FOREIGN KEY(slot_id) REFERENCES doctor_schedule_template(id) ON DELETE SET NULL,
        CONSTRAINT ck_appointments_status CHECK(status IN ({sql_values(APPOINTMENT_STATUSES)}))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_appointments_slot_date ON appointments(slot_id, date)",
    "CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, date)",
    """
    CREATE TABLE IF NOT EXISTS services (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        department TEXT,
        service_type TEXT NOT NULL DEFAULT 'consultation',
        price INTEGER NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1
    )
    """,
)

TRIGGER_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TRIGGER IF NOT EXISTS trg_appointments_slot_doctor
    BEFORE INSERT ON appointments
    FOR EACH ROW
    WHEN NEW.slot_id IS NOT NULL
    BEGIN
        SELECT RAISE(ABORT, 'slot_doctor_mismatch')
        WHERE EXISTS (
            SELECT 1 FROM doctor_schedule_template
            WHERE id = NEW.slot_id AND doctor_id != NEW.doctor_id
        );
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS trg_appointments_slot_capacity
    BEFORE INSERT ON appointments
    FOR EACH ROW
    WHEN NEW.slot_id IS NOT NULL
     AND NEW.status NOT IN ({sql_values(CANCELLED_STATUSES)})
    BEGIN
        SELECT RAISE(ABORT, 'slot_full')
        WHERE (
            SELECT COUNT(*) FROM appointments
            WHERE slot_id = NEW.slot_id
              AND date = NEW.date
              AND status NOT IN ({sql_values(CANCELLED_STATUSES)})
        ) >= (
            SELECT COALESCE(t.max_patients_per_slot, d.max_patients_per_slot, 5)
            FROM doctor_schedule_template t
            JOIN doctors d ON d.id = t.doctor_id
            WHERE t.id = NEW.slot_id
        );
    END
    """,
)


def _execute_statements(conn: sqlite3.Connection, statements: Iterable[str]) -> None:
    for stmt in statements:
        conn.execute(stmt)


def ensure_base_tables(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA foreign_keys=ON")
    try:
        _execute_statements(conn, SCHEMA_STATEMENTS)
        _execute_statements(conn, TRIGGER_STATEMENTS)
        conn.commit()
    finally:
        conn.close()
