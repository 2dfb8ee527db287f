"""Task, subtask and checklist operations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from sqlalchemy.exc import SQLAlchemyError

from database import db
from models.checklist import ActionItem, ChecklistItem
from models.priority import Priority
from models.project import Project
from models.status import Status
from models.subtask import Subtask
from models.task import DEFAULT_PRIORITY, DEFAULT_STATUS, DEFAULT_TASK_NAME, Task
from services.errors import NotFoundError, StoreError, ValidationError
from services.projection import sort_tasks_by_priority
from services.taxonomy_service import resolve_tags, resolve_users

logger = logging.getLogger(__name__)

DEFAULT_STATUS_PROGRESS = {"To Do": 10, "In Progress": 50, "Done": 100}

TASK_SORTS = ("updated_at_desc", "created_at_desc", "due_date_asc", "priority")
DEFAULT_SORT = "updated_at_desc"


def _commit(operation: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Unable to %s: %s", operation, exc, exc_info=True)
        raise StoreError(f"Unable to {operation}.") from exc


def parse_due_date(raw: Any) -> datetime | None:
    """Parse an ISO 8601 date or datetime; aware values are stored as naive UTC."""
    if raw in (None, ""):
        return None
    if isinstance(raw, datetime):
        value = raw
    else:
        try:
            value = datetime.fromisoformat(str(raw).strip())
        except ValueError as exc:
            raise ValidationError(f"Invalid due date {raw!r}.", field="due_date") from exc
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _text(data: Mapping[str, Any], key: str, default: str = "") -> str:
    return str(data.get(key) or "").strip() or default


def _required_text(data: Mapping[str, Any], key: str, label: str) -> str:
    value = _text(data, key)
    if not value:
        raise ValidationError(f"The {label} {key} is required.", field=key)
    return value


def _attachments(raw: Any) -> list[str]:
    if raw in (None, ""):
        return []
    if isinstance(raw, str) or not isinstance(raw, Iterable):
        raise ValidationError("Attachments must be a list of URLs.", field="attachments")
    return [str(url).strip() for url in raw if str(url).strip()]


def _project_id(raw: Any) -> int | None:
    if raw in (None, ""):
        return None
    try:
        project_id = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid project id {raw!r}.", field="project_id") from exc
    if db.session.get(Project, project_id) is None:
        raise NotFoundError(f"Unknown project id {project_id}.")
    return project_id


def _next_position(rows) -> int:
    return max((row.position for row in rows), default=-1) + 1


def get_task(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError(f"Unknown task id {task_id}.")
    return task


def _build_checklist(entries: Iterable[Mapping[str, Any]] | None) -> list[ChecklistItem]:
    items = []
    for position, entry in enumerate(entries or ()):
        item = ChecklistItem(
            text=_required_text(entry, "text", "checklist item"),
            completed=bool(entry.get("completed")),
            position=position,
        )
        item.actions = [
            ActionItem(
                text=_required_text(action, "text", "action"),
                completed=bool(action.get("completed")),
                position=index,
            )
            for index, action in enumerate(entry.get("actions") or ())
        ]
        items.append(item)
    return items


def _build_subtask(data: Mapping[str, Any], position: int) -> Subtask:
    subtask = Subtask(
        name=_required_text(data, "name", "subtask"),
        status=_text(data, "status", DEFAULT_STATUS),
        priority=_text(data, "priority", DEFAULT_PRIORITY),
        position=position,
    )
    subtask.checklist = _build_checklist(data.get("checklist"))
    return subtask


def create_task(data: Mapping[str, Any]) -> Task:
    """Create a task, including any nested subtasks and checklist entries."""
    now = datetime.utcnow()
    task = Task(
        name=_text(data, "name", DEFAULT_TASK_NAME),
        content=str(data.get("content") or ""),
        category=_text(data, "category"),
        priority=_text(data, "priority", DEFAULT_PRIORITY),
        status=_text(data, "status", DEFAULT_STATUS),
        attachments=_attachments(data.get("attachments")),
        project_id=_project_id(data.get("project_id")),
        due_date=parse_due_date(data.get("due_date")),
        created_at=now,
        updated_at=now,
    )
    task.tags = resolve_tags(data.get("tag_ids") or ())
    task.assignees = resolve_users(data.get("assigned_user_ids") or ())
    task.subtasks = [
        _build_subtask(entry, position) for position, entry in enumerate(data.get("subtasks") or ())
    ]
    task.checklist = _build_checklist(data.get("checklist"))
    db.session.add(task)
    _commit("create task")
    return task


def update_task(task_id: int, data: Mapping[str, Any]) -> Task:
    task = get_task(task_id)
    if "name" in data:
        task.name = _text(data, "name", DEFAULT_TASK_NAME)
    if "content" in data:
        task.content = str(data.get("content") or "")
    if "category" in data:
        task.category = _text(data, "category")
    if "priority" in data:
        task.priority = _text(data, "priority", DEFAULT_PRIORITY)
    if "status" in data:
        task.status = _text(data, "status", DEFAULT_STATUS)
    if "attachments" in data:
        task.attachments = _attachments(data.get("attachments"))
    if "project_id" in data:
        task.project_id = _project_id(data.get("project_id"))
    if "due_date" in data:
        task.due_date = parse_due_date(data.get("due_date"))
    if "tag_ids" in data:
        task.tags = resolve_tags(data.get("tag_ids") or ())
    if "assigned_user_ids" in data:
        task.assignees = resolve_users(data.get("assigned_user_ids") or ())
    task.touch()
    _commit("update task")
    return task


def delete_task(task_id: int) -> None:
    task = get_task(task_id)
    db.session.delete(task)
    _commit("delete task")


# Subtasks


def _get_subtask(task: Task, subtask_id: int) -> Subtask:
    subtask = task.find_subtask(subtask_id)
    if subtask is None:
        raise NotFoundError(f"Unknown subtask id {subtask_id} for task {task.id}.")
    return subtask


def add_subtask(task_id: int, data: Mapping[str, Any]) -> Subtask:
    task = get_task(task_id)
    subtask = _build_subtask(data, _next_position(task.subtasks))
    task.subtasks.append(subtask)
    task.touch()
    _commit("add subtask")
    return subtask


def update_subtask(task_id: int, subtask_id: int, data: Mapping[str, Any]) -> Subtask:
    task = get_task(task_id)
    subtask = _get_subtask(task, subtask_id)
    if "name" in data:
        subtask.name = _required_text(data, "name", "subtask")
    if "status" in data:
        subtask.status = _text(data, "status", DEFAULT_STATUS)
    if "priority" in data:
        subtask.priority = _text(data, "priority", DEFAULT_PRIORITY)
    task.touch()
    _commit("update subtask")
    return subtask


def delete_subtask(task_id: int, subtask_id: int) -> None:
    task = get_task(task_id)
    task.subtasks.remove(_get_subtask(task, subtask_id))
    task.touch()
    _commit("delete subtask")


# Checklist and action items


def _checklist_owner(task: Task, subtask_id: int | None):
    return task if subtask_id is None else _get_subtask(task, subtask_id)


def _get_checklist_item(owner, item_id: int) -> ChecklistItem:
    item = next((entry for entry in owner.checklist if entry.id == item_id), None)
    if item is None:
        raise NotFoundError(f"Unknown checklist item id {item_id}.")
    return item


def _get_action(item: ChecklistItem, action_id: int) -> ActionItem:
    action = item.find_action(action_id)
    if action is None:
        raise NotFoundError(f"Unknown action id {action_id}.")
    return action


def add_checklist_item(task_id: int, text: str, subtask_id: int | None = None) -> ChecklistItem:
    task = get_task(task_id)
    owner = _checklist_owner(task, subtask_id)
    item = ChecklistItem(
        text=_required_text({"text": text}, "text", "checklist item"),
        completed=False,
        position=_next_position(owner.checklist),
    )
    owner.checklist.append(item)
    task.touch()
    _commit("add checklist item")
    return item


def toggle_checklist_item(task_id: int, item_id: int, subtask_id: int | None = None) -> ChecklistItem:
    task = get_task(task_id)
    item = _get_checklist_item(_checklist_owner(task, subtask_id), item_id)
    item.completed = not item.completed
    task.touch()
    _commit("toggle checklist item")
    return item


def delete_checklist_item(task_id: int, item_id: int, subtask_id: int | None = None) -> None:
    task = get_task(task_id)
    owner = _checklist_owner(task, subtask_id)
    db.session.delete(_get_checklist_item(owner, item_id))
    task.touch()
    _commit("delete checklist item")


def add_action_item(
    task_id: int, item_id: int, text: str, subtask_id: int | None = None
) -> ActionItem:
    task = get_task(task_id)
    item = _get_checklist_item(_checklist_owner(task, subtask_id), item_id)
    action = ActionItem(
        text=_required_text({"text": text}, "text", "action"),
        completed=False,
        position=_next_position(item.actions),
    )
    item.actions.append(action)
    task.touch()
    _commit("add action item")
    return action


def toggle_action_item(
    task_id: int, item_id: int, action_id: int, subtask_id: int | None = None
) -> ActionItem:
    task = get_task(task_id)
    item = _get_checklist_item(_checklist_owner(task, subtask_id), item_id)
    action = _get_action(item, action_id)
    action.completed = not action.completed
    task.touch()
    _commit("toggle action item")
    return action


def delete_action_item(
    task_id: int, item_id: int, action_id: int, subtask_id: int | None = None
) -> None:
    task = get_task(task_id)
    item = _get_checklist_item(_checklist_owner(task, subtask_id), item_id)
    item.actions.remove(_get_action(item, action_id))
    task.touch()
    _commit("delete action item")


# Listing and progress


def _completion_status_names(statuses: Iterable[Any] | None = None) -> set[str]:
    if statuses is None:
        statuses = Status.query.filter_by(is_completion_status=True).all()
    names = set()
    for status in statuses:
        if isinstance(status, Mapping):
            flagged, name = status.get("is_completion_status"), status.get("name")
        else:
            flagged, name = status.is_completion_status, status.name
        if flagged:
            names.add(name)
    return names


def task_progress(task: Task, statuses: Iterable[Any] | None = None) -> int:
    """Percentage of completed checklist items, or an estimate from the status."""
    items = list(task.iter_checklist_items())
    if items:
        done = sum(1 for item in items if item.completed)
        return round(done * 100 / len(items))
    if task.status in _completion_status_names(statuses):
        return 100
    return DEFAULT_STATUS_PROGRESS.get(task.status, 0)


def filter_and_sort_tasks(
    status: str | None = None,
    priority: str | None = None,
    project_id: int | None = None,
    sort: str | None = None,
) -> list[Task]:
    sort = sort or DEFAULT_SORT
    if sort not in TASK_SORTS:
        raise ValidationError(
            f"Unknown sort {sort!r}; expected one of {', '.join(TASK_SORTS)}.", field="sort"
        )
    query = Task.query
    if status:
        query = query.filter(Task.status == status)
    if priority:
        query = query.filter(Task.priority == priority)
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)

    if sort == "created_at_desc":
        return query.order_by(Task.created_at.desc(), Task.id.desc()).all()
    if sort == "due_date_asc":
        tasks = query.order_by(Task.id.asc()).all()
        return sorted(tasks, key=lambda task: (task.due_date is None, task.due_date or datetime.max))
    if sort == "priority":
        tasks = query.order_by(Task.updated_at.desc(), Task.id.desc()).all()
        return sort_tasks_by_priority(tasks, Priority.query.all())
    return query.order_by(Task.updated_at.desc(), Task.id.desc()).all()


def serialize_task(task: Task, statuses: Iterable[Any] | None = None) -> dict[str, Any]:
    payload = task.to_dict()
    payload["progress"] = task_progress(task, statuses)
    return payload
