"""A task represent an objective that needs to be completed

A Task has a category, a priority and a status, referenced by name
A Task can belong to a Project
A Task can have multiple Tags
A Task can be assigned to multiple Users
A Task can contain multiple Subtasks
A Task and each of its Subtasks can hold a checklist
A checklist item can hold nested action items

"""
from __future__ import annotations
from datetime import datetime
from typing import Optional

import bleach
from database import db
from .tag import task_tags
from .user import task_assignees
from markdown import markdown as render_markdown
from markupsafe import Markup

DEFAULT_TASK_NAME = "Untitled task"
DEFAULT_PRIORITY = "Medium"
DEFAULT_STATUS = "To Do"


def render_task_content_html(content: Optional[str]) -> Markup:
    """Render task content Markdown into sanitized HTML."""
    if not content:
        return Markup("")
    html = render_markdown(
        content,
        extensions=["extra", "sane_lists"],
        output_format="html",
        tab_length=2,
    )
    allowed_tags = list(bleach.sanitizer.ALLOWED_TAGS) + [
        "p",
        "pre",
        "code",
        "ul",
        "ol",
        "li",
        "table",
        "thead",
        "tbody",
        "tr",
        "th",
        "td",
        "span",
        "strong",
        "em",
        "blockquote",
        "br",
        "h1",
        "h2",
        "h3",
        "h4",
        "hr",
    ]
    allowed_attributes = {
        **bleach.sanitizer.ALLOWED_ATTRIBUTES,
        "a": ["href", "title", "target", "rel"],
        "img": ["src", "alt", "title"],
        "code": ["class"],
    }
    sanitized_html = bleach.clean(html, tags=allowed_tags, attributes=allowed_attributes)
    return Markup(sanitized_html)


class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.Text, nullable=False, default=DEFAULT_TASK_NAME)
    content = db.Column(db.Text, nullable=False, default="")
    category = db.Column(db.String(80), nullable=False, default="")
    priority = db.Column(db.String(80), nullable=False, default=DEFAULT_PRIORITY)
    status = db.Column(db.String(80), nullable=False, default=DEFAULT_STATUS)
    attachments = db.Column(db.JSON, nullable=False, default=list)
    project_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    project = db.relationship("Project", back_populates="tasks")
    tags = db.relationship(
        "Tag",
        secondary=task_tags,
        back_populates="tasks",
        lazy="selectin",
    )
    assignees = db.relationship(
        "User",
        secondary=task_assignees,
        back_populates="assigned_tasks",
        lazy="selectin",
    )
    subtasks = db.relationship(
        "Subtask",
        back_populates="task",
        lazy="selectin",
        order_by="Subtask.position",
        cascade="all, delete-orphan",
    )
    checklist = db.relationship(
        "ChecklistItem",
        back_populates="task",
        lazy="selectin",
        order_by="ChecklistItem.position",
        cascade="all",
    )

    def iter_checklist_items(self):
        """Yield the checklist items of the task followed by those of its subtasks."""
        yield from self.checklist
        for subtask in self.subtasks:
            yield from subtask.checklist

    def find_subtask(self, subtask_id: int | None) -> "Subtask" | None:
        return next((st for st in self.subtasks if st.id == subtask_id), None)

    def touch(self) -> None:
        self.updated_at = datetime.utcnow()

    @property
    def content_html(self):
        return render_task_content_html(self.content)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "content": self.content or "",
            "content_html": str(self.content_html),
            "category": self.category or "",
            "priority": self.priority,
            "status": self.status,
            "tags": [tag.name for tag in self.tags],
            "tag_ids": [tag.id for tag in self.tags],
            "attachments": list(self.attachments or []),
            "project_id": self.project_id,
            "project_name": self.project.name if self.project else None,
            "assigned_user_ids": [user.id for user in self.assignees],
            "assigned_user_names": [user.name for user in self.assignees],
            "subtasks": [subtask.to_dict() for subtask in self.subtasks],
            "checklist": [item.to_dict() for item in self.checklist],
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Task {self.name}>"
