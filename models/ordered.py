"""Columns shared by records whose display order is set explicitly.

Categories, priorities and statuses are shown sorted by an integer ``order``
column that admins change with the move up / move down controls. Order values
are unique after every completed reorder, but gaps may appear after a delete
until the next move renumbers the collection.
"""
from __future__ import annotations

from datetime import datetime

from database import db


class OrderedEntityMixin:
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=0)
    color = db.Column(db.String(20), nullable=True)
    icon_name = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    def to_dict(self) -> dict[str, object]:
        """Return the fields common to every ordered entity."""

        return {
            "id": self.id,
            "name": self.name,
            "order": self.order if self.order is not None else 0,
            "color": self.color,
            "icon_name": self.icon_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<{type(self).__name__} {self.name} order={self.order}>"
