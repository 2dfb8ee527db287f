"""Admin endpoints for tags, projects and users."""
from __future__ import annotations

from typing import Any, Callable

from flask import Blueprint, request

from forms import ProjectForm, TagForm, UserForm
from routes import (
    checked_json_payload,
    json_error,
    json_form_error,
    json_success,
    process_json_form,
    service_error_response,
)
from services import taxonomy_service
from services.errors import TaskFlowError

taxonomies_bp = Blueprint("taxonomies", __name__, url_prefix="/admin")

NAMED_KINDS = "any(tags,projects,users)"

_FORMS = {"tags": TagForm, "projects": ProjectForm, "users": UserForm}
_SINGULAR = {"tags": "tag", "projects": "project", "users": "user"}


def _service(action: str, kind: str) -> Callable[..., Any]:
    if action == "list":
        return getattr(taxonomy_service, f"list_{kind}")
    return getattr(taxonomy_service, f"{action}_{_SINGULAR[kind]}")


def _items(kind: str, search: str | None = None) -> list[dict[str, Any]]:
    return [record.to_dict() for record in _service("list", kind)(search)]


@taxonomies_bp.route(f"/<{NAMED_KINDS}:kind>", methods=["GET"])
def list_named(kind: str):
    search = request.args.get("q", "")
    try:
        items = _items(kind, search)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return json_success(kind=kind, items=items, search=search)


@taxonomies_bp.route(f"/<{NAMED_KINDS}:kind>", methods=["POST"])
def add_named(kind: str):
    payload, error = checked_json_payload()
    if error:
        return error
    form, values = process_json_form(_FORMS[kind], payload)
    if values is None:
        return json_form_error(form)
    try:
        record = _service("create", kind)(values)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return json_success(
        f"{_SINGULAR[kind].capitalize()} added!",
        status=201,
        kind=kind,
        item=record.to_dict(),
        items=_items(kind),
    )


@taxonomies_bp.route(f"/<{NAMED_KINDS}:kind>/<int:entity_id>", methods=["POST"])
def update_named(kind: str, entity_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    current = next((item for item in _items(kind) if item["id"] == entity_id), None)
    if current is None:
        return json_error(f"{_SINGULAR[kind].capitalize()} not found.", status=404)
    form, values = process_json_form(_FORMS[kind], payload, current=current)
    if values is None:
        return json_form_error(form)
    try:
        record = _service("update", kind)(entity_id, values)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return json_success(
        f"{_SINGULAR[kind].capitalize()} updated!",
        kind=kind,
        item=record.to_dict(),
        items=_items(kind),
    )


@taxonomies_bp.route(f"/<{NAMED_KINDS}:kind>/<int:entity_id>/delete", methods=["POST"])
def delete_named(kind: str, entity_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        _service("delete", kind)(entity_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return json_success(f"{_SINGULAR[kind].capitalize()} deleted!", kind=kind, items=_items(kind))
