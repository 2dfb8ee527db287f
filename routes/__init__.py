"""Shared helpers for route blueprints."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import current_app, jsonify, request
from flask_wtf.csrf import generate_csrf, validate_csrf
from wtforms import BooleanField, FieldList, IntegerField
from wtforms.validators import ValidationError

from services.errors import StoreError, TaskFlowError

__all__ = [
    "checked_json_payload",
    "json_error",
    "json_form_error",
    "is_truthy",
    "json_success",
    "process_json_form",
    "service_error_response",
    "validate_request_csrf",
]


def validate_request_csrf(token: str | None) -> tuple[bool, str | None]:
    """Validate CSRF tokens supplied with JSON payloads."""
    if not current_app.config.get("WTF_CSRF_ENABLED", True):
        return True, None
    if not token:
        return False, "The CSRF token is missing."
    try:
        validate_csrf(token)
    except ValidationError:
        return (
            False,
            "The CSRF token is invalid or has expired. Please refresh and try again.",
        )
    except Exception:
        return False, "The CSRF token is invalid."
    return True, None


def json_error(message: str, *, status: int = 400, **extra: Any):
    """Return a JSON error response with a refreshed CSRF token."""
    return (
        jsonify(
            {
                "success": False,
                "message": message,
                **extra,
                "csrf_token": generate_csrf(),
            }
        ),
        status,
    )


def json_success(message: str | None = None, *, status: int = 200, **payload: Any):
    body = {"success": True, **payload, "csrf_token": generate_csrf()}
    if message:
        body["message"] = message
    return jsonify(body), status


def json_form_error(form, message: str | None = None, status: int = 400):
    """Return a JSON response detailing form errors."""
    return json_error(
        message or "Please correct the highlighted fields.",
        status=status,
        errors=form.errors,
    )


def service_error_response(error: TaskFlowError):
    """Translate a service error into a JSON response."""
    if isinstance(error, StoreError):
        logging.exception("Store failure while handling request")
        return json_error("A database error occurred. Please try again.", status=500)
    extra = {}
    field = getattr(error, "field", None)
    if field:
        extra["field"] = field
    return json_error(str(error), status=error.status_code, **extra)


def process_json_form(
    form_cls,
    payload: Mapping[str, Any],
    *,
    current: Mapping[str, Any] | None = None,
):
    """Validate a JSON payload with a WTForms form.

    ``current`` holds the stored values of the record being edited, so that a
    partial payload is validated as the complete record it produces. Returns
    the form and the cleaned values for the fields present in ``payload`` (or
    every field when creating), or ``None`` when validation fails.
    """
    form = form_cls(meta={"csrf": False})
    field_names = [name for name in form._fields if name not in ("submit", "csrf_token")]
    submitted = {name: payload[name] for name in field_names if name in payload}
    merged = {**{name: (current or {}).get(name) for name in field_names}, **submitted}
    form.process(data={name: _normalize(form[name], value) for name, value in merged.items()})
    if not form.validate():
        return form, None
    keys = submitted.keys() if current is not None else field_names
    return form, {name: form[name].data for name in keys}


def is_truthy(value: Any) -> bool:
    """Return True when the provided value represents an enabled boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
    return False


def _normalize(field, value: Any) -> Any:
    if isinstance(field, BooleanField):
        return is_truthy(value)
    if isinstance(field, FieldList):
        if value in (None, ""):
            return []
        return list(value) if isinstance(value, (list, tuple)) else [value]
    if isinstance(field, IntegerField) and value == "":
        return None
    if isinstance(value, str):
        return value.strip()
    return value


def checked_json_payload() -> tuple[dict[str, Any], Any]:
    """Return the request's JSON payload, plus an error response if its CSRF token is rejected."""
    payload = request.get_json(silent=True) or {}
    csrf_valid, csrf_message = validate_request_csrf(payload.get("csrf_token"))
    if not csrf_valid:
        return payload, json_error(csrf_message, status=400)
    return payload, None
