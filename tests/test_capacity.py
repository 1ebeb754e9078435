import sqlite3

from clinic_booking.services import capacity
from clinic_booking.services.capacity import (
    compute_slots,
    doctor_slots,
    effective_capacity,
    find_available_slots,
    session_label,
)

MONDAY = "2025-01-06"


def test_effective_capacity_fallbacks():
    assert effective_capacity(3, 8) == 3
    assert effective_capacity(None, 8) == 8
    assert effective_capacity(None, None) == 5


def test_session_labels():
    assert session_label("08:00") == "morning"
    assert session_label("11:59") == "morning"
    assert session_label("12:00") == "afternoon"
    assert session_label("16:30") == "afternoon"
    assert session_label("17:00") == "evening"


def test_remaining_capacity_ignores_cancelled_bookings(app, seed):
    doc = seed.doctor("Dr. An", "Nhi")
    slot = seed.entry(doc, "Thứ 2", "08:00", "09:00", max_patients=3)
    seed.booking(doc, slot, MONDAY)
    seed.booking(doc, slot, MONDAY, status="confirmed")
    seed.booking(doc, slot, MONDAY, status="cancelled")
    seed.booking(doc, slot, MONDAY, status="doctor_cancelled")
    seed.booking(doc, slot, "2025-01-13")
    with app.app_context():
        result = find_available_slots(MONDAY, "Nhi")
    assert result.ok
    [doctor] = result.data
    [entry] = doctor["slots"]
    assert entry == {
        "id": slot,
        "display": "08:00 - 09:00",
        "start_time": "08:00",
        "end_time": "09:00",
        "session": "morning",
        "max_patients": 3,
        "booked": 2,
        "available": 1,
    }


def test_default_capacity_is_five(app, seed):
    doc = seed.doctor("Dr. An", "Nhi")
    seed.entry(doc, "Thứ 2", "08:00", "09:00")
    with app.app_context():
        [doctor] = find_available_slots(MONDAY, "Nhi").data
    assert doctor["slots"][0]["max_patients"] == 5
    assert doctor["slots"][0]["available"] == 5


def test_doctor_capacity_applies_when_slot_has_none(app, seed):
    doc = seed.doctor("Dr. An", "Nhi", max_patients=2)
    seed.entry(doc, "Thứ 2", "13:00", "14:00")
    with app.app_context():
        [doctor] = find_available_slots(MONDAY, "Nhi").data
    assert doctor["slots"][0]["max_patients"] == 2
    assert doctor["slots"][0]["session"] == "afternoon"


def test_full_slots_and_doctors_without_slots_are_dropped(app, seed):
    busy = seed.doctor("Dr. Busy", "Nhi", doctor_id="doc-busy")
    free = seed.doctor("Dr. Free", "Nhi", doctor_id="doc-free")
    full_slot = seed.entry(busy, "Thứ 2", "08:00", "09:00", max_patients=1)
    seed.booking(busy, full_slot, MONDAY)
    open_full = seed.entry(free, "Thứ 2", "08:00", "09:00", max_patients=1)
    open_slot = seed.entry(free, "Thứ 2", "09:00", "10:00", max_patients=1)
    seed.booking(free, open_full, MONDAY)
    with app.app_context():
        result = find_available_slots(MONDAY, "Nhi")
    assert [d["id"] for d in result.data] == ["doc-free"]
    assert [s["id"] for s in result.data[0]["slots"]] == [open_slot]


def test_compute_slots_with_no_candidates(app):
    with app.app_context():
        result = compute_slots({}, MONDAY)
    assert result.ok
    assert result.data == []


def test_bookings_read_failure_marks_everything_unavailable(app, seed, monkeypatch):
    doc = seed.doctor("Dr. An", "Nhi")
    seed.entry(doc, "Thứ 2", "08:00", "09:00")

    def boom():
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(capacity, "db", boom)
    with app.app_context():
        result = find_available_slots(MONDAY, "Nhi")
    assert not result.ok
    assert result.data == []
    assert result.error.startswith("capacity_unavailable")


def test_doctor_slots_for_one_doctor(app, seed):
    doc = seed.doctor("Dr. An", "", max_patients=1)
    first = seed.entry(doc, "Thứ 2", "08:00", "09:00")
    second = seed.entry(doc, "Thứ 2", "18:00", "19:00")
    seed.booking(doc, first, MONDAY)
    with app.app_context():
        result = doctor_slots(doc, MONDAY)
        off_day = doctor_slots(doc, "2025-01-07")
    assert result.ok
    assert [(s["id"], s["session"]) for s in result.data] == [(second, "evening")]
    assert off_day.ok
    assert off_day.data == []
