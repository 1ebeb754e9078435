"""Forms for booking requests and doctor provisioning.

The HTTP surface is JSON, so forms are fed a MultiDict built from the
request body; CSRF is enforced globally by CSRFProtect instead of per form.
"""

from __future__ import annotations

from typing import Any, Mapping

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import DateField, IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp

from clinic_booking.services.booking import BookingRequest


def json_formdata(payload: Mapping[str, Any] | None) -> MultiDict:
    """Form data from a JSON body, dropping null and blank values."""

    data = MultiDict()
    for key, value in (payload or {}).items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(item) for item in value)
        data.add(key, str(value))
    return data


class BookingForm(FlaskForm):
    """Patient booking of one template slot on one date."""

    class Meta:
        csrf = False

    user_id = StringField("User", validators=[DataRequired(), Length(max=64)])
    doctor_id = StringField("Doctor", validators=[DataRequired(), Length(max=64)])
    day = DateField("Date", validators=[DataRequired()], format="%Y-%m-%d")
    slot_id = IntegerField("Slot", validators=[DataRequired(), NumberRange(min=1)])
    start_time = StringField("Start time", validators=[
        DataRequired(),
        Regexp(r"^([0-1][0-9]|2[0-3]):[0-5][0-9](:[0-5][0-9])?$", message="start_time must be HH:MM"),
    ])
    patient_name = StringField("Patient name", validators=[DataRequired(), Length(max=200)])
    patient_phone = StringField("Phone", validators=[Optional(), Length(max=32)])
    price = IntegerField("Price", validators=[Optional(), NumberRange(min=0)])

    def to_request(self) -> BookingRequest:
        return BookingRequest(
            user_id=self.user_id.data.strip(),
            doctor_id=self.doctor_id.data.strip(),
            day=self.day.data,
            slot_id=self.slot_id.data,
            patient_name=self.patient_name.data,
            patient_phone=self.patient_phone.data,
            price=self.price.data,
            start_time=self.start_time.data[:5],
        )


class DoctorForm(FlaskForm):
    """Doctor profile fields; the weekly template travels next to it as JSON."""

    class Meta:
        csrf = False

    doctor_id = StringField("Doctor id", validators=[Optional(), Length(max=64)])
    name = StringField("Name", validators=[DataRequired(), Length(max=200)])
    specialization = StringField("Specializations", validators=[DataRequired(), Length(max=500)])
    room_number = StringField("Room", validators=[Optional(), Length(max=32)])
    experience_years = IntegerField("Experience (years)", validators=[Optional(), NumberRange(min=0, max=80)])
    max_patients_per_slot = IntegerField("Patients per slot", validators=[Optional(), NumberRange(min=1, max=100)])
    department_name = StringField("Department", validators=[Optional(), Length(max=200)])
    bio = TextAreaField("Bio", validators=[Optional(), Length(max=2000)])
