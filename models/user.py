""" Represents a user in the system.

Users are people tasks can be assigned to.
A User has a name and a unique email address
A User can have phone and mobile numbers and an avatar
A User's initials are derived from the name unless set explicitly
A User can be assigned to many Tasks (see Task)

"""
from __future__ import annotations

import re
from datetime import datetime

from database import db

# Assignees of a task
task_assignees = db.Table(
    "task_assignees",
    db.Column("task_id", db.Integer, db.ForeignKey("task.id", ondelete="CASCADE"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
)

_LETTER = re.compile(r"[^\W\d_]")


def _initial(char: str) -> str:
    return char.upper() if _LETTER.match(char) else char


def derive_initials(name: str | None) -> str:
    """Return up to two initials for the supplied display name.

    "Jane Doe" gives "JD", a single word gives its first two letters ("Alice"
    gives "AL").
    """
    if not name or not name.strip():
        return ""
    words = name.split()
    if len(words) == 1:
        word = words[0]
        return "".join(_initial(char) for char in word[:2])
    return "".join(_initial(word[0]) for word in words[:2])


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(40), nullable=True)
    mobile = db.Column(db.String(40), nullable=True)
    avatar_url = db.Column(db.String(255), nullable=True)
    initials = db.Column(db.String(4), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    assigned_tasks = db.relationship(
        "Task",
        secondary=task_assignees,
        back_populates="assignees",
        lazy="selectin",
    )

    @property
    def display_initials(self) -> str:
        return self.initials or derive_initials(self.name)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "mobile": self.mobile,
            "avatar_url": self.avatar_url,
            "initials": self.display_initials,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}>"
