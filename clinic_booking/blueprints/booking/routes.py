"""Patient booking API: dates, specializations, slots and appointments."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_wtf.csrf import generate_csrf

from clinic_booking.extensions import csrf, limiter
from clinic_booking.forms.booking import BookingForm, json_formdata
from clinic_booking.services.availability import (
    available_dates,
    doctor_available_dates,
    get_doctor,
)
from clinic_booking.services.booking import create_appointment
from clinic_booking.services.capacity import doctor_slots, find_available_slots
from clinic_booking.services.csrf import ensure_csrf_token
from clinic_booking.services.errors import record_exception
from clinic_booking.services.results import QueryResult
from clinic_booking.services.specializations import list_specializations_for_day
from clinic_booking.services.weekdays import InvalidDate, clinic_today, parse_day

bp = Blueprint("booking", __name__)


def _error(message: str, status: int):
    return jsonify({"success": False, "data": None, "errors": [message]}), status


def _result_response(result: QueryResult, *, ok_status: int = 200, failed_status: int = 503):
    return jsonify(result.to_dict()), ok_status if result.ok else failed_status


def _requested_day():
    raw = request.args.get("day")
    return parse_day(raw) if raw else clinic_today()


def _days_arg() -> int | None:
    raw = request.args.get("days")
    if raw is None or raw == "":
        return None
    value = int(raw)
    if value < 0:
        raise ValueError("days must not be negative")
    return value


@bp.route("/dates", methods=["GET"], endpoint="dates")
def dates():
    try:
        try:
            days = _days_arg()
            result = available_dates(request.args.get("from") or None, days)
        except (InvalidDate, ValueError) as exc:
            return _error(str(exc), 400)
        return _result_response(result)
    except Exception as exc:
        record_exception("booking.dates", exc)
        return _error("Internal server error", 500)


@bp.route("/specializations", methods=["GET"], endpoint="specializations")
def specializations():
    try:
        try:
            day = _requested_day()
        except InvalidDate as exc:
            return _error(str(exc), 400)
        return _result_response(list_specializations_for_day(day))
    except Exception as exc:
        record_exception("booking.specializations", exc)
        return _error("Internal server error", 500)


@bp.route("/slots", methods=["GET"], endpoint="slots")
def slots():
    try:
        try:
            day = _requested_day()
        except InvalidDate as exc:
            return _error(str(exc), 400)
        specialization = (request.args.get("specialization") or "").strip()
        if not specialization:
            return _error("specialization is required", 400)
        return _result_response(find_available_slots(day, specialization))
    except Exception as exc:
        record_exception("booking.slots", exc)
        return _error("Internal server error", 500)


@bp.route("/doctors/<doctor_id>/dates", methods=["GET"], endpoint="doctor_dates")
def doctor_dates(doctor_id: str):
    try:
        if get_doctor(doctor_id) is None:
            return _error("doctor_not_found", 404)
        try:
            days = _days_arg()
            result = doctor_available_dates(doctor_id, request.args.get("from") or None, days)
        except (InvalidDate, ValueError) as exc:
            return _error(str(exc), 400)
        return _result_response(result)
    except Exception as exc:
        record_exception("booking.doctor_dates", exc)
        return _error("Internal server error", 500)


@bp.route("/doctors/<doctor_id>/slots", methods=["GET"], endpoint="doctor_slots")
def doctor_day_slots(doctor_id: str):
    try:
        doctor = get_doctor(doctor_id)
        if doctor is None:
            return _error("doctor_not_found", 404)
        try:
            day = _requested_day()
        except InvalidDate as exc:
            return _error(str(exc), 400)
        result = doctor_slots(doctor_id, day)
        payload = result.to_dict()
        payload["doctor"] = doctor
        return jsonify(payload), 200 if result.ok else 503
    except Exception as exc:
        record_exception("booking.doctor_slots", exc)
        return _error("Internal server error", 500)


@bp.route("/csrf-token", methods=["GET"], endpoint="csrf_token")
def csrf_token():
    return jsonify({"success": True, "data": generate_csrf()})


@bp.route("/appointments", methods=["POST"], endpoint="create_appointment")
@csrf.exempt
@limiter.limit(lambda: current_app.config["BOOKING_RATE_LIMIT"])
def book():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    ensure_csrf_token(payload)
    try:
        form = BookingForm(formdata=json_formdata(payload))
        if not form.validate():
            errors = [f"{name}: {message}" for name, messages in form.errors.items() for message in messages]
            return jsonify({"success": False, "data": None, "errors": errors}), 400
        result = create_appointment(form.to_request())
        return _result_response(result, ok_status=201, failed_status=409)
    except Exception as exc:
        record_exception("booking.create_appointment", exc)
        return _error("Internal server error", 500)
