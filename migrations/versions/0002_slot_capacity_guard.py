"""Enforce slot capacity and slot ownership inside the store.

Two patients can both be shown the last free seat; the insert that arrives
second must fail here, not in the booking client.
"""

from __future__ import annotations

from alembic import op

from clinic_booking.models import CANCELLED_STATUSES, sql_values


revision = "0002_slot_capacity_guard"
down_revision = "0001_scheduling_core"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
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
        """
    )
    op.execute(
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
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_appointments_slot_capacity")
    op.execute("DROP TRIGGER IF EXISTS trg_appointments_slot_doctor")
