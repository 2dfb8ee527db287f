"""Admin endpoints for the manually ordered taxonomies.

Categories, priorities and statuses share one set of routes; the ``kind`` URL
segment selects the collection.
"""
from __future__ import annotations

from flask import Blueprint, request

from forms import CategoryForm, PriorityForm, StatusForm
from routes import (
    checked_json_payload,
    json_error,
    json_form_error,
    json_success,
    process_json_form,
    service_error_response,
)
from services.errors import NotFoundError, TaskFlowError
from services.ordered_collection import OrderedCollectionManager, open_collection
from services.projection import project_collection

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

ORDERED_KINDS = "any(categories,priorities,statuses)"

_FORMS = {
    "categories": CategoryForm,
    "priorities": PriorityForm,
    "statuses": StatusForm,
}


def _manager(kind: str) -> OrderedCollectionManager:
    return open_collection(kind)


def _collection_response(
    manager: OrderedCollectionManager, message: str | None = None, status: int = 200, **extra
):
    kind = manager.kind
    items = [
        projected.to_dict()
        for projected in project_collection(manager.list(), None, kind.search_fields)
    ]
    return json_success(message, status=status, kind=kind.collection, items=items, **extra)


@admin_bp.route(f"/<{ORDERED_KINDS}:kind>", methods=["GET"])
def list_ordered(kind: str):
    search = request.args.get("q", "")
    with _manager(kind) as manager:
        if manager.error is not None:
            return json_error(
                f"Unable to load {kind}.",
                status=500,
                is_loading=manager.is_loading,
                error=str(manager.error),
            )
        items = [
            projected.to_dict()
            for projected in project_collection(manager.list(), search, manager.kind.search_fields)
        ]
        return json_success(
            kind=kind,
            items=items,
            search=search,
            is_loading=manager.is_loading,
            error=None,
        )


@admin_bp.route(f"/<{ORDERED_KINDS}:kind>", methods=["POST"])
def add_ordered(kind: str):
    payload, error = checked_json_payload()
    if error:
        return error
    form, values = process_json_form(_FORMS[kind], payload)
    if values is None:
        return json_form_error(form)
    values["order"] = payload.get("order")
    with _manager(kind) as manager:
        try:
            entity_id = manager.add(values)
        except TaskFlowError as exc:
            return service_error_response(exc)
        label = manager.kind.label.capitalize()
        return _collection_response(manager, f"{label} added!", status=201, id=entity_id)


@admin_bp.route(f"/<{ORDERED_KINDS}:kind>/<int:entity_id>", methods=["POST"])
def update_ordered(kind: str, entity_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    with _manager(kind) as manager:
        current = manager.get(entity_id)
        if current is None:
            return service_error_response(NotFoundError(f"Unknown {manager.kind.label} id {entity_id}."))
        form, values = process_json_form(_FORMS[kind], payload, current=current)
        if values is None:
            return json_form_error(form)
        if "order" in payload:
            values["order"] = payload["order"]
        try:
            manager.update(entity_id, values)
        except TaskFlowError as exc:
            return service_error_response(exc)
        label = manager.kind.label.capitalize()
        return _collection_response(manager, f"{label} updated!")


@admin_bp.route(f"/<{ORDERED_KINDS}:kind>/<int:entity_id>/delete", methods=["POST"])
def delete_ordered(kind: str, entity_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    with _manager(kind) as manager:
        try:
            manager.remove(entity_id)
        except TaskFlowError as exc:
            return service_error_response(exc)
        label = manager.kind.label.capitalize()
        return _collection_response(manager, f"{label} deleted!")


@admin_bp.route(f"/<{ORDERED_KINDS}:kind>/<int:entity_id>/move", methods=["POST"])
def move_ordered(kind: str, entity_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    with _manager(kind) as manager:
        try:
            moved = manager.move(entity_id, payload.get("direction"))
        except TaskFlowError as exc:
            return service_error_response(exc)
        return _collection_response(manager, moved=moved)
