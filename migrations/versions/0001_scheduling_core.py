"""Doctors, specializations, weekly schedule templates and appointments."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

from clinic_booking.models import APPOINTMENT_STATUSES, sql_values


revision = "0001_scheduling_core"
down_revision = None
branch_labels = None
depends_on = None


def _create_index_if_not_exists(name: str, table: str, columns: str, *, unique: bool = False) -> None:
    kind = "UNIQUE INDEX" if unique else "INDEX"
    op.execute(f"CREATE {kind} IF NOT EXISTS {name} ON {table}({columns})")


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(sa.inspect(bind).get_table_names())

    if "doctors" not in tables:
        op.create_table(
            "doctors",
            sa.Column("id", sa.Text(), primary_key=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("room_number", sa.Text(), nullable=True),
            sa.Column("experience_years", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("max_patients_per_slot", sa.Integer(), nullable=True),
            sa.Column("department_name", sa.Text(), nullable=True),
            sa.Column("bio", sa.Text(), nullable=True),
            sa.Column("created_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
        )

    if "specializations" not in tables:
        op.create_table(
            "specializations",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.Text(), nullable=False, unique=True),
        )

    if "doctor_specializations" not in tables:
        op.create_table(
            "doctor_specializations",
            sa.Column("doctor_id", sa.Text(), nullable=False),
            sa.Column("specialization_id", sa.Integer(), nullable=False),
            sa.PrimaryKeyConstraint("doctor_id", "specialization_id"),
            sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["specialization_id"], ["specializations.id"], ondelete="CASCADE"),
        )
    _create_index_if_not_exists(
        "idx_doctor_specializations_spec", "doctor_specializations", "specialization_id"
    )

    if "doctor_schedule_template" not in tables:
        op.create_table(
            "doctor_schedule_template",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("doctor_id", sa.Text(), nullable=False),
            sa.Column("day_of_week", sa.Text(), nullable=False),
            sa.Column("start_time", sa.Text(), nullable=False),
            sa.Column("end_time", sa.Text(), nullable=False),
            sa.Column("max_patients_per_slot", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
            sa.CheckConstraint("start_time < end_time", name="ck_schedule_start_before_end"),
        )
    _create_index_if_not_exists("idx_schedule_day", "doctor_schedule_template", "day_of_week")
    _create_index_if_not_exists(
        "idx_schedule_doctor_day_start",
        "doctor_schedule_template",
        "doctor_id, day_of_week, start_time",
        unique=True,
    )

    if "appointments" not in tables:
        op.create_table(
            "appointments",
            sa.Column("id", sa.Text(), primary_key=True),
            sa.Column("user_id", sa.Text(), nullable=False),
            sa.Column("doctor_id", sa.Text(), nullable=False),
            sa.Column("slot_id", sa.Integer(), nullable=True),
            sa.Column("date", sa.Text(), nullable=False),
            sa.Column("appointment_date", sa.Text(), nullable=False),
            sa.Column("patient_name", sa.Text(), nullable=False),
            sa.Column("patient_phone", sa.Text(), nullable=True),
            sa.Column("price", sa.Integer(), nullable=False),
            sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
            sa.Column("created_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
            sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["slot_id"], ["doctor_schedule_template.id"], ondelete="SET NULL"),
            sa.CheckConstraint(
                f"status IN ({sql_values(APPOINTMENT_STATUSES)})",
                name="ck_appointments_status",
            ),
        )
    _create_index_if_not_exists("idx_appointments_slot_date", "appointments", "slot_id, date")
    _create_index_if_not_exists("idx_appointments_doctor_date", "appointments", "doctor_id, date")

    if "services" not in tables:
        op.create_table(
            "services",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("department", sa.Text(), nullable=True),
            sa.Column("service_type", sa.Text(), nullable=False, server_default="consultation"),
            sa.Column("price", sa.Integer(), nullable=False),
            sa.Column("is_active", sa.Integer(), nullable=False, server_default="1"),
        )


def downgrade() -> None:
    for table in (
        "appointments",
        "doctor_schedule_template",
        "doctor_specializations",
        "specializations",
        "services",
        "doctors",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table}")
