import os
import pathlib
import shutil
import sys
import uuid

import pytest

root = pathlib.Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from clinic_booking import create_app
from clinic_booking.services.database import db as raw_db
from clinic_booking.services.specializations import split_specializations


@pytest.fixture(scope="session")
def _template_db(tmp_path_factory):
    """Build a fully-migrated DB once per test session.

    Every function-scoped ``app`` fixture copies this file instead of
    running the Alembic migrations again.
    """
    db_path = tmp_path_factory.mktemp("template") / "app.db"
    old_db = os.environ.get("CLINIC_DB_PATH")
    old_key = os.environ.get("CLINIC_SECRET_KEY")
    os.environ["CLINIC_DB_PATH"] = str(db_path)
    os.environ["CLINIC_SECRET_KEY"] = "test-secret"
    try:
        _app = create_app()
        with _app.app_context():
            pass
    finally:
        if old_db is None:
            os.environ.pop("CLINIC_DB_PATH", None)
        else:
            os.environ["CLINIC_DB_PATH"] = old_db
        if old_key is None:
            os.environ.pop("CLINIC_SECRET_KEY", None)
        else:
            os.environ["CLINIC_SECRET_KEY"] = old_key
    return db_path


@pytest.fixture
def app(tmp_path, monkeypatch, _template_db):
    db_path = tmp_path / "app.db"
    shutil.copy2(_template_db, db_path)
    monkeypatch.setenv("CLINIC_DB_PATH", str(db_path))
    monkeypatch.setenv("CLINIC_SECRET_KEY", "test-secret")
    monkeypatch.setenv("CLINIC_AUTO_MIGRATE", "0")  # Already migrated
    app = create_app()
    app.config.update(TESTING=True, WTF_CSRF_ENABLED=True)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def api_client(client):
    """Test client that sends the session CSRF token on every request."""
    token = client.get("/booking/csrf-token").get_json()["data"]
    client.environ_base["HTTP_X_CSRFTOKEN"] = token
    return client


class Seeder:
    """Raw SQL inserts for doctors, templates and bookings."""

    def doctor(self, name, specializations="", *, doctor_id=None, max_patients=None, room="101"):
        doctor_id = doctor_id or f"doc-{uuid.uuid4()}"
        conn = raw_db()
        try:
            conn.execute(
                "INSERT INTO doctors(id, name, room_number, experience_years, max_patients_per_slot) "
                "VALUES (?, ?, ?, 5, ?)",
                (doctor_id, name, room, max_patients),
            )
            for spec in split_specializations(specializations):
                conn.execute("INSERT OR IGNORE INTO specializations(name) VALUES (?)", (spec,))
                spec_id = conn.execute("SELECT id FROM specializations WHERE name=?", (spec,)).fetchone()[0]
                conn.execute(
                    "INSERT INTO doctor_specializations(doctor_id, specialization_id) VALUES (?, ?)",
                    (doctor_id, spec_id),
                )
            conn.commit()
        finally:
            conn.close()
        return doctor_id

    def entry(self, doctor_id, day_of_week, start, end, max_patients=None):
        conn = raw_db()
        try:
            cur = conn.execute(
                "INSERT INTO doctor_schedule_template(doctor_id, day_of_week, start_time, end_time, max_patients_per_slot) "
                "VALUES (?, ?, ?, ?, ?)",
                (doctor_id, day_of_week, f"{start}:00", f"{end}:00", max_patients),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def booking(self, doctor_id, slot_id, day, status="pending"):
        appt_id = f"appt-{uuid.uuid4()}"
        conn = raw_db()
        try:
            conn.execute(
                "INSERT INTO appointments(id, user_id, doctor_id, slot_id, date, appointment_date, "
                "patient_name, patient_phone, price, status) VALUES (?, 'user-1', ?, ?, ?, ?, 'Patient', NULL, 180000, ?)",
                (appt_id, doctor_id, slot_id, day, f"{day}T01:00:00", status),
            )
            conn.commit()
        finally:
            conn.close()
        return appt_id

    def service(self, name, price, *, department=None, service_type="consultation", is_active=1):
        conn = raw_db()
        try:
            conn.execute(
                "INSERT INTO services(name, department, service_type, price, is_active) VALUES (?, ?, ?, ?, ?)",
                (name, department, service_type, price, is_active),
            )
            conn.commit()
        finally:
            conn.close()


@pytest.fixture
def seed(app):
    return Seeder()
