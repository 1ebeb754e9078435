"""CSRF checks for the JSON endpoints."""

from __future__ import annotations

from typing import Mapping, MutableMapping

from flask import current_app, request
from flask_wtf.csrf import CSRFError, validate_csrf
from wtforms.validators import ValidationError


def ensure_csrf_token(payload: MutableMapping[str, object] | Mapping[str, object] | None = None) -> None:
    """Validate the token sent in ``X-CSRFToken`` or a ``csrf_token`` body field.

    Views using this are exempt from CSRFProtect, which only inspects form
    data. The token itself comes from ``GET /booking/csrf-token``.
    """

    if not current_app.config.get("WTF_CSRF_ENABLED", True):
        return
    token = request.headers.get("X-CSRFToken") or request.headers.get("X-CSRF-Token")
    if not token and payload and isinstance(payload, MutableMapping):
        token = payload.pop("csrf_token", None)
    if not token:
        raise CSRFError("The CSRF token is missing.")
    try:
        validate_csrf(token, secret_key=current_app.secret_key)
    except ValidationError as exc:
        raise CSRFError(str(exc)) from exc
