"""Task blueprint: tasks, subtasks, checklists and action items."""
from __future__ import annotations

from typing import Any

from flask import Blueprint, request

from forms import TaskForm
from models.status import Status
from routes import (
    checked_json_payload,
    json_form_error,
    json_success,
    process_json_form,
    service_error_response,
)
from services import task_service
from services.errors import TaskFlowError, ValidationError

tasks_bp = Blueprint("tasks", __name__, url_prefix="/tasks")

_NESTED_FIELDS = ("subtasks", "checklist")


def _optional_int(value: Any, field: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer.", field=field) from exc


def _subtask_id(payload: dict[str, Any]) -> int | None:
    return _optional_int(payload.get("subtask_id"), "subtask_id")


def _task_response(task, message: str | None = None, status: int = 200):
    return json_success(message, status=status, task=task_service.serialize_task(task))


@tasks_bp.route("", methods=["GET"])
def list_tasks():
    project_id = request.args.get("project_id")
    try:
        tasks = task_service.filter_and_sort_tasks(
            status=request.args.get("status") or None,
            priority=request.args.get("priority") or None,
            project_id=_optional_int(project_id, "project_id"),
            sort=request.args.get("sort") or None,
        )
        statuses = Status.query.all()
        items = [task_service.serialize_task(task, statuses) for task in tasks]
    except TaskFlowError as exc:
        return service_error_response(exc)
    return json_success(tasks=items)


@tasks_bp.route("", methods=["POST"])
def create_task():
    payload, error = checked_json_payload()
    if error:
        return error
    form, values = process_json_form(TaskForm, payload)
    if values is None:
        return json_form_error(form)
    values.update({key: payload[key] for key in _NESTED_FIELDS if key in payload})
    try:
        task = task_service.create_task(values)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task, "Task added!", status=201)


@tasks_bp.route("/<int:task_id>", methods=["GET"])
def get_task(task_id: int):
    try:
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task)


@tasks_bp.route("/<int:task_id>", methods=["POST"])
def update_task(task_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        current = task_service.get_task(task_id).to_dict()
    except TaskFlowError as exc:
        return service_error_response(exc)
    form, values = process_json_form(TaskForm, payload, current=current)
    if values is None:
        return json_form_error(form)
    try:
        task = task_service.update_task(task_id, values)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task, "Task updated!")


@tasks_bp.route("/<int:task_id>/delete", methods=["POST"])
def delete_task(task_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.delete_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return json_success("Task deleted!")


@tasks_bp.route("/<int:task_id>/subtasks", methods=["POST"])
def add_subtask(task_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.add_subtask(task_id, payload)
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task, "Subtask added!", status=201)


@tasks_bp.route("/<int:task_id>/subtasks/<int:subtask_id>", methods=["POST"])
def update_subtask(task_id: int, subtask_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.update_subtask(task_id, subtask_id, payload)
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task, "Subtask updated!")


@tasks_bp.route("/<int:task_id>/subtasks/<int:subtask_id>/delete", methods=["POST"])
def delete_subtask(task_id: int, subtask_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.delete_subtask(task_id, subtask_id)
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task, "Subtask deleted!")


@tasks_bp.route("/<int:task_id>/checklist", methods=["POST"])
def add_checklist_item(task_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.add_checklist_item(
            task_id, payload.get("text"), subtask_id=_subtask_id(payload)
        )
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task, status=201)


@tasks_bp.route("/<int:task_id>/checklist/<int:item_id>/toggle", methods=["POST"])
def toggle_checklist_item(task_id: int, item_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.toggle_checklist_item(
            task_id, item_id, subtask_id=_subtask_id(payload)
        )
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task)


@tasks_bp.route("/<int:task_id>/checklist/<int:item_id>/delete", methods=["POST"])
def delete_checklist_item(task_id: int, item_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.delete_checklist_item(
            task_id, item_id, subtask_id=_subtask_id(payload)
        )
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task)


@tasks_bp.route("/<int:task_id>/checklist/<int:item_id>/actions", methods=["POST"])
def add_action_item(task_id: int, item_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.add_action_item(
            task_id,
            item_id,
            payload.get("text"),
            subtask_id=_subtask_id(payload),
        )
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task, status=201)


@tasks_bp.route(
    "/<int:task_id>/checklist/<int:item_id>/actions/<int:action_id>/toggle", methods=["POST"]
)
def toggle_action_item(task_id: int, item_id: int, action_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.toggle_action_item(
            task_id, item_id, action_id, subtask_id=_subtask_id(payload)
        )
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task)


@tasks_bp.route(
    "/<int:task_id>/checklist/<int:item_id>/actions/<int:action_id>/delete", methods=["POST"]
)
def delete_action_item(task_id: int, item_id: int, action_id: int):
    payload, error = checked_json_payload()
    if error:
        return error
    try:
        task_service.delete_action_item(
            task_id, item_id, action_id, subtask_id=_subtask_id(payload)
        )
        task = task_service.get_task(task_id)
    except TaskFlowError as exc:
        return service_error_response(exc)
    return _task_response(task)
