"""SQLAlchemy models for doctors, weekly templates and appointments."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

APPOINTMENT_STATUSES = (
    "pending",
    "confirmed",
    "waiting_results",
    "completed",
    "cancelled",
    "patient_cancelled",
    "doctor_cancelled",
)

# Statuses that release a seat; every other status occupies one.
CANCELLED_STATUSES = ("cancelled", "patient_cancelled", "doctor_cancelled")


def sql_values(values: tuple[str, ...]) -> str:
    """Quoted SQL literal list for CHECK constraints and triggers."""
    return ",".join(f"'{value}'" for value in values)


class Base(DeclarativeBase):
    pass


doctor_specializations = Table(
    "doctor_specializations",
    Base.metadata,
    Column("doctor_id", String, ForeignKey("doctors.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "specialization_id",
        Integer,
        ForeignKey("specializations.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Specialization(Base):
    __tablename__ = "specializations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, unique=True, nullable=False)

    doctors: Mapped[list["Doctor"]] = relationship(
        "Doctor",
        secondary=doctor_specializations,
        back_populates="specializations",
    )


class Doctor(Base):
    __tablename__ = "doctors"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    room_number: Mapped[str | None] = mapped_column(Text, nullable=True)
    experience_years: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_patients_per_slot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    department_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        Text, nullable=False, default=lambda: datetime.now(timezone.utc).isoformat()
    )

    specializations: Mapped[list[Specialization]] = relationship(
        Specialization,
        secondary=doctor_specializations,
        back_populates="doctors",
        lazy="joined",
        order_by=Specialization.name,
    )
    schedule: Mapped[list["ScheduleTemplateEntry"]] = relationship(
        "ScheduleTemplateEntry",
        back_populates="doctor",
        cascade="all, delete-orphan",
    )


class ScheduleTemplateEntry(Base):
    __tablename__ = "doctor_schedule_template"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    doctor_id: Mapped[str] = mapped_column(
        String, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[str] = mapped_column(Text, nullable=False)
    start_time: Mapped[str] = mapped_column(Text, nullable=False)
    end_time: Mapped[str] = mapped_column(Text, nullable=False)
    max_patients_per_slot: Mapped[int | None] = mapped_column(Integer, nullable=True)

    doctor: Mapped[Doctor] = relationship(Doctor, back_populates="schedule")


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    doctor_id: Mapped[str] = mapped_column(
        String, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False
    )
    slot_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("doctor_schedule_template.id", ondelete="SET NULL"), nullable=True
    )
    date: Mapped[str] = mapped_column(Text, nullable=False)
    appointment_date: Mapped[str] = mapped_column(Text, nullable=False)
    patient_name: Mapped[str] = mapped_column(Text, nullable=False)
    patient_phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", server_default="pending")
    created_at: Mapped[str] = mapped_column(
        Text, nullable=False, default=lambda: datetime.now(timezone.utc).isoformat()
    )


class Service(Base):
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    department: Mapped[str | None] = mapped_column(Text, nullable=True)
    service_type: Mapped[str] = mapped_column(Text, nullable=False, default="consultation")
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
