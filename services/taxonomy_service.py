"""CRUD helpers for the name-ordered taxonomies: tags, projects and users."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from database import db
from models.project import Project
from models.tag import Tag
from models.task import Task
from models.user import User, derive_initials
from services.errors import DuplicateError, NotFoundError, StoreError, ValidationError

logger = logging.getLogger(__name__)

TAG_FIELDS = ("name", "color", "icon_name")
PROJECT_FIELDS = ("name", "description", "color", "icon_name")
USER_FIELDS = ("name", "email", "phone", "mobile", "avatar_url", "initials")


def _commit(operation: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Unable to %s: %s", operation, exc, exc_info=True)
        raise StoreError(f"Unable to {operation}.") from exc


def _get_or_404(model, entity_id: int, label: str):
    record = db.session.get(model, entity_id)
    if record is None:
        raise NotFoundError(f"Unknown {label} id {entity_id}.")
    return record


def _search(model, search: str | None, columns: Iterable[str]):
    query = model.query
    needle = (search or "").strip().lower()
    if needle:
        # Literal substring match: "%" and "_" in the term are escaped.
        query = query.filter(
            or_(
                *(
                    func.lower(getattr(model, column)).contains(needle, autoescape=True)
                    for column in columns
                )
            )
        )
    return query.order_by(func.lower(model.name).asc()).all()


def _required(data: Mapping[str, Any], field: str, label: str) -> str:
    value = str(data.get(field) or "").strip()
    if not value:
        raise ValidationError(f"The {label} {field} is required.", field=field)
    return value


def _ensure_unique(model, column: str, value: str, label: str, exclude_id: int | None = None) -> None:
    query = model.query.filter(func.lower(getattr(model, column)) == value.lower())
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first() is not None:
        raise DuplicateError(
            f"A {label} with {column} \"{value}\" already exists.",
            field=column,
            value=value,
        )


def _optional(value: Any) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


def _apply(record, data: Mapping[str, Any], allowed: Iterable[str]) -> None:
    for field in allowed:
        if field in data:
            setattr(record, field, _optional(data[field]))
    record.updated_at = datetime.utcnow()


# Tags


def list_tags(search: str | None = None) -> list[Tag]:
    return _search(Tag, search, ("name",))


def create_tag(data: Mapping[str, Any]) -> Tag:
    name = _required(data, "name", "tag")
    _ensure_unique(Tag, "name", name, "tag")
    tag = Tag(name=name)
    _apply(tag, {k: v for k, v in data.items() if k != "name"}, TAG_FIELDS)
    db.session.add(tag)
    _commit("create tag")
    return tag


def update_tag(tag_id: int, data: Mapping[str, Any]) -> Tag:
    tag = _get_or_404(Tag, tag_id, "tag")
    if "name" in data:
        name = _required(data, "name", "tag")
        _ensure_unique(Tag, "name", name, "tag", exclude_id=tag.id)
        data = {**data, "name": name}
    _apply(tag, data, TAG_FIELDS)
    _commit("update tag")
    return tag


def delete_tag(tag_id: int) -> None:
    tag = _get_or_404(Tag, tag_id, "tag")
    db.session.delete(tag)
    _commit("delete tag")


# Projects


def list_projects(search: str | None = None) -> list[Project]:
    return _search(Project, search, ("name", "description"))


def create_project(data: Mapping[str, Any]) -> Project:
    name = _required(data, "name", "project")
    _ensure_unique(Project, "name", name, "project")
    project = Project(name=name)
    _apply(project, {k: v for k, v in data.items() if k != "name"}, PROJECT_FIELDS)
    db.session.add(project)
    _commit("create project")
    return project


def update_project(project_id: int, data: Mapping[str, Any]) -> Project:
    project = _get_or_404(Project, project_id, "project")
    if "name" in data:
        name = _required(data, "name", "project")
        _ensure_unique(Project, "name", name, "project", exclude_id=project.id)
        data = {**data, "name": name}
    _apply(project, data, PROJECT_FIELDS)
    _commit("update project")
    return project


def delete_project(project_id: int) -> None:
    """Delete a project; its tasks are kept and become unassigned."""
    project = _get_or_404(Project, project_id, "project")
    Task.query.filter_by(project_id=project.id).update(
        {Task.project_id: None}, synchronize_session="fetch"
    )
    db.session.delete(project)
    _commit("delete project")


# Users


def list_users(search: str | None = None) -> list[User]:
    return _search(User, search, ("name", "email"))


def _user_fields(data: Mapping[str, Any], user: User | None = None) -> dict[str, Any]:
    fields = {key: data[key] for key in USER_FIELDS if key in data}
    if user is None or "name" in fields:
        fields["name"] = _required(data, "name", "user")
    if user is None or "email" in fields:
        fields["email"] = _required(data, "email", "user").lower()
        _ensure_unique(User, "email", fields["email"], "user", exclude_id=user.id if user else None)
    name = fields.get("name") or (user.name if user else "")
    if not _optional(fields.get("initials")) and (user is None or "name" in fields or "initials" in fields):
        fields["initials"] = derive_initials(name)
    return fields


def create_user(data: Mapping[str, Any]) -> User:
    fields = _user_fields(data)
    user = User(name=fields["name"], email=fields["email"])
    _apply(user, fields, USER_FIELDS)
    db.session.add(user)
    _commit("create user")
    return user


def update_user(user_id: int, data: Mapping[str, Any]) -> User:
    user = _get_or_404(User, user_id, "user")
    fields = _user_fields(data, user)
    _apply(user, fields, USER_FIELDS)
    _commit("update user")
    return user


def delete_user(user_id: int) -> None:
    user = _get_or_404(User, user_id, "user")
    db.session.delete(user)
    _commit("delete user")


def resolve_tags(tag_ids: Iterable[Any]) -> list[Tag]:
    return _resolve(Tag, tag_ids, "tag")


def resolve_users(user_ids: Iterable[Any]) -> list[User]:
    return _resolve(User, user_ids, "user")


def _resolve(model, ids: Iterable[Any], label: str) -> list:
    records = []
    for raw in ids or ():
        try:
            entity_id = int(raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid {label} id {raw!r}.", field=f"{label}_ids") from exc
        record = _get_or_404(model, entity_id, label)
        if record not in records:
            records.append(record)
    return records
