"""Flask CLI commands for migrations, doctor provisioning and date lookups."""

from __future__ import annotations

import json
from pathlib import Path

import click
from flask import current_app
from flask.cli import AppGroup, with_appcontext

from clinic_booking.services.availability import available_dates
from clinic_booking.services.errors import ScheduleValidationError, SchedulingError
from clinic_booking.services.migrations import run_migrations
from clinic_booking.services.schedules import provision_doctor
from clinic_booking.services.weekdays import InvalidDate


def register_cli(app) -> None:
    db_group = AppGroup("db")

    @db_group.command("upgrade")
    @with_appcontext
    def upgrade() -> None:
        run_migrations(current_app._get_current_object())
        click.echo("Database upgraded to head.")

    app.cli.add_command(db_group)

    @app.cli.command("create-doctor")
    @click.option("--name", required=True)
    @click.option("--specialization", required=True, help="Comma separated specialization names.")
    @click.option(
        "--schedule",
        "schedule_path",
        required=True,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="JSON file mapping weekday labels to [{start, end}] ranges.",
    )
    @click.option("--room", default=None)
    @click.option("--experience", default=0, show_default=True, type=int)
    @click.option("--max-patients", default=None, type=int)
    @click.option("--id", "doctor_id", default=None)
    @with_appcontext
    def create_doctor(
        name: str,
        specialization: str,
        schedule_path: Path,
        room: str | None,
        experience: int,
        max_patients: int | None,
        doctor_id: str | None,
    ) -> None:
        try:
            template = json.loads(schedule_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise click.ClickException(f"Schedule file is not valid JSON: {exc}") from exc
        try:
            new_id = provision_doctor(
                name,
                specialization,
                template,
                doctor_id=doctor_id,
                room_number=room,
                experience_years=experience,
                max_patients_per_slot=max_patients,
            )
        except ScheduleValidationError as exc:
            raise click.ClickException(f"Invalid schedule ({exc.rule}): {exc.message}") from exc
        except SchedulingError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Created doctor {new_id}.")

    @app.cli.command("available-dates")
    @click.option("--from", "from_date", default=None, help="First date (YYYY-MM-DD); defaults to today.")
    @click.option("--days", default=None, type=int)
    @with_appcontext
    def list_available_dates(from_date: str | None, days: int | None) -> None:
        try:
            result = available_dates(from_date, days)
        except InvalidDate as exc:
            raise click.ClickException(str(exc)) from exc
        if not result.ok:
            raise click.ClickException(result.error or "dates_unavailable")
        for day in result.data:
            click.echo(day)
