"""Blueprint registration."""

from __future__ import annotations

from flask import Flask


def register_blueprints(app: Flask) -> None:
    from .admin_schedules.routes import bp as admin_schedules_bp
    from .booking.routes import bp as booking_bp

    app.register_blueprint(booking_bp, url_prefix="/booking")
    app.register_blueprint(admin_schedules_bp, url_prefix="/admin")
