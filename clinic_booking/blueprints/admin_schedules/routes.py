"""Doctor provisioning and weekly schedule template editor API."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from clinic_booking.extensions import csrf
from clinic_booking.forms.booking import DoctorForm, json_formdata
from clinic_booking.services.csrf import ensure_csrf_token
from clinic_booking.services.errors import (
    DoctorNotFound,
    ScheduleReplaceError,
    ScheduleValidationError,
    SchedulingError,
    record_exception,
)
from clinic_booking.services.schedules import (
    format_time_input,
    load_schedule,
    provision_doctor,
    replace_schedule,
    suggest_next_range,
    template_to_dict,
    validate_template,
)

bp = Blueprint("admin_schedules", __name__)


def _payload() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _error(message: str, status: int, **extra):
    return jsonify({"success": False, "data": None, "errors": [message], **extra}), status


def _invalid_template(exc: ScheduleValidationError):
    return _error(exc.message, 400, error=exc.to_dict())


@bp.route("/doctors", methods=["POST"], endpoint="create_doctor")
@csrf.exempt
def create_doctor():
    payload = _payload()
    ensure_csrf_token(payload)
    try:
        schedule = payload.pop("schedule", None)
        form = DoctorForm(formdata=json_formdata(payload))
        if not form.validate():
            errors = [f"{name}: {message}" for name, messages in form.errors.items() for message in messages]
            return jsonify({"success": False, "data": None, "errors": errors}), 400
        try:
            doctor_id = provision_doctor(
                form.name.data,
                form.specialization.data,
                schedule if schedule is not None else {},
                doctor_id=form.doctor_id.data or None,
                room_number=form.room_number.data,
                experience_years=form.experience_years.data or 0,
                max_patients_per_slot=form.max_patients_per_slot.data,
                department_name=form.department_name.data or None,
                bio=form.bio.data or None,
            )
        except ScheduleValidationError as exc:
            return _invalid_template(exc)
        except SchedulingError as exc:
            return _error(str(exc), 409)
        return jsonify({"success": True, "data": {"id": doctor_id, "schedule": load_schedule(doctor_id)}}), 201
    except Exception as exc:
        record_exception("admin_schedules.create_doctor", exc)
        return _error("Internal server error", 500)


@bp.route("/doctors/<doctor_id>/schedule", methods=["GET"], endpoint="get_schedule")
def get_schedule(doctor_id: str):
    try:
        try:
            schedule = load_schedule(doctor_id)
        except DoctorNotFound:
            return _error("doctor_not_found", 404)
        return jsonify({"success": True, "data": schedule})
    except Exception as exc:
        record_exception("admin_schedules.get_schedule", exc)
        return _error("Internal server error", 500)


@bp.route("/doctors/<doctor_id>/schedule", methods=["PUT"], endpoint="replace_schedule")
@csrf.exempt
def put_schedule(doctor_id: str):
    payload = _payload()
    ensure_csrf_token(payload)
    try:
        max_patients = payload.get("max_patients_per_slot")
        if max_patients is not None and (
            isinstance(max_patients, bool) or not isinstance(max_patients, int) or max_patients < 1
        ):
            return _error("max_patients_per_slot must be a positive integer", 400)
        try:
            summary = replace_schedule(doctor_id, payload.get("schedule"), max_patients=max_patients)
        except ScheduleValidationError as exc:
            return _invalid_template(exc)
        except DoctorNotFound:
            return _error("doctor_not_found", 404)
        except ScheduleReplaceError as exc:
            return _error(f"schedule_not_saved: {exc}", 503)
        return jsonify({"success": True, "data": {"changes": summary, "schedule": load_schedule(doctor_id)}})
    except Exception as exc:
        record_exception("admin_schedules.replace_schedule", exc)
        return _error("Internal server error", 500)


# Editor helpers below only compute; they change no state and need no token.
@bp.route("/schedules/validate", methods=["POST"], endpoint="validate_schedule")
@csrf.exempt
def validate_schedule():
    try:
        try:
            accepted = validate_template(_payload().get("schedule"))
        except ScheduleValidationError as exc:
            return _invalid_template(exc)
        return jsonify({"success": True, "data": template_to_dict(accepted)})
    except Exception as exc:
        record_exception("admin_schedules.validate_schedule", exc)
        return _error("Internal server error", 500)


@bp.route("/schedules/format-time", methods=["POST"], endpoint="format_time")
@csrf.exempt
def format_time():
    text = _payload().get("text")
    return jsonify({"success": True, "data": format_time_input(text if isinstance(text, str) else "")})


@bp.route("/schedules/suggest", methods=["POST"], endpoint="suggest_range")
@csrf.exempt
def suggest_range():
    ranges = _payload().get("ranges")
    suggestion = suggest_next_range(ranges if isinstance(ranges, list) else [])
    return jsonify({"success": True, "data": suggestion.to_dict()})
