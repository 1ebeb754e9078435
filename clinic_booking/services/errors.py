"""Scheduling error taxonomy and offline error logging."""

from __future__ import annotations

import traceback
from datetime import datetime, UTC
from pathlib import Path

from flask import current_app


class SchedulingError(Exception):
    """Base exception for scheduling operations."""


class ScheduleValidationError(SchedulingError):
    """A proposed weekly template broke a format, ordering or overlap rule.

    ``weekday`` is ``None`` for template-wide failures (an empty template).
    """

    def __init__(self, rule: str, message: str, *, weekday: str | None = None) -> None:
        super().__init__(message)
        self.rule = rule
        self.weekday = weekday
        self.message = message

    def to_dict(self) -> dict[str, str | None]:
        return {"rule": self.rule, "weekday": self.weekday, "message": self.message}


class AvailabilityQueryError(SchedulingError):
    """Reading schedule templates or doctors from the store failed."""


class CapacityQueryError(SchedulingError):
    """Reading existing bookings from the store failed."""


class BookingWriteError(SchedulingError):
    """The store rejected an appointment insert."""


class ScheduleReplaceError(SchedulingError):
    """Replacing a doctor's template failed; the previous template is intact."""


class DoctorNotFound(SchedulingError):
    """Raised when a doctor id does not exist."""


def record_exception(context: str, exc: BaseException) -> None:
    """Append exception details to data/logs/app_errors.log for offline inspection."""

    try:
        root = Path(current_app.config["DATA_ROOT"]) / "logs"
        root.mkdir(parents=True, exist_ok=True)
        with (root / "app_errors.log").open("a", encoding="utf-8") as handle:
            handle.write(f"[{datetime.now(UTC).isoformat()}] {context}\n")
            handle.write("".join(traceback.format_exception(exc)))
            handle.write("\n")
    except Exception:
        # Never let logging failures break the request cycle.
        current_app.logger.exception("Could not write error log for %s", context)
