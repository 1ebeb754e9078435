from datetime import date

from clinic_booking.services.booking import BookingRequest, create_appointment
from clinic_booking.services.database import db

MONDAY = "2025-01-06"


def _request(doctor_id, slot_id, **overrides):
    values = dict(
        user_id="user-1",
        doctor_id=doctor_id,
        day=MONDAY,
        slot_id=slot_id,
        patient_name="  Nguyễn Văn A ",
        patient_phone="090 123 4567",
        start_time="08:00",
    )
    values.update(overrides)
    return BookingRequest(**values)


def test_create_appointment_stores_pending_row(app, seed):
    doc = seed.doctor("Dr. An", "Nhi")
    slot = seed.entry(doc, "Thứ 2", "08:00", "09:00")
    with app.app_context():
        result = create_appointment(_request(doc, slot))
    assert result.ok
    row = result.data
    assert row["status"] == "pending"
    assert row["date"] == MONDAY
    assert row["appointment_date"] == "2025-01-06T01:00:00"
    assert row["price"] == 180000
    assert row["patient_name"] == "Nguyễn Văn A"
    assert row["patient_phone"] == "0901234567"
    assert row["slot_id"] == slot


def test_explicit_price_and_date_object(app, seed):
    doc = seed.doctor("Dr. An", "Nhi")
    slot = seed.entry(doc, "Thứ 2", "08:00", "09:00")
    with app.app_context():
        result = create_appointment(_request(doc, slot, day=date(2025, 1, 6), price=250000))
    assert result.data["price"] == 250000


def test_full_slot_is_rejected_by_the_store(app, seed):
    doc = seed.doctor("Dr. An", "Nhi")
    slot = seed.entry(doc, "Thứ 2", "08:00", "09:00", max_patients=1)
    with app.app_context():
        first = create_appointment(_request(doc, slot))
        second = create_appointment(_request(doc, slot))
    assert first.ok
    assert not second.ok
    assert second.error == "slot_full"
    conn = db()
    try:
        count = conn.execute("SELECT COUNT(*) FROM appointments WHERE slot_id=?", (slot,)).fetchone()[0]
    finally:
        conn.close()
    assert count == 1


def test_cancelled_booking_frees_the_seat(app, seed):
    doc = seed.doctor("Dr. An", "Nhi")
    slot = seed.entry(doc, "Thứ 2", "08:00", "09:00", max_patients=1)
    seed.booking(doc, slot, MONDAY, status="patient_cancelled")
    with app.app_context():
        assert create_appointment(_request(doc, slot)).ok


def test_slot_must_belong_to_the_doctor(app, seed):
    doc = seed.doctor("Dr. An", "Nhi")
    other = seed.doctor("Dr. Binh", "Nhi")
    slot = seed.entry(other, "Thứ 2", "08:00", "09:00")
    with app.app_context():
        result = create_appointment(_request(doc, slot))
    assert not result.ok
    assert result.error == "slot_doctor_mismatch"


def test_unknown_doctor_fails_with_store_message(app, seed):
    with app.app_context():
        result = create_appointment(_request("nobody", None))
    assert not result.ok
    assert "FOREIGN KEY" in result.error


def test_malformed_request_fails_without_raising(app, seed):
    doc = seed.doctor("Dr. An", "Nhi")
    slot = seed.entry(doc, "Thứ 2", "08:00", "09:00")
    with app.app_context():
        bad_time = create_appointment(_request(doc, slot, start_time="8"))
        bad_day = create_appointment(_request(doc, slot, day="2025-02-30"))
    assert not bad_time.ok
    assert bad_time.error.startswith("invalid_booking")
    assert not bad_day.ok
    assert bad_day.data == {}
    conn = db()
    try:
        assert conn.execute("SELECT COUNT(*) FROM appointments").fetchone()[0] == 0
    finally:
        conn.close()
