"""A workflow status for tasks.

Statuses flagged with ``is_completion_status`` mark a task as done for
progress and dashboard statistics.
"""
from database import db
from models.ordered import OrderedEntityMixin


class Status(OrderedEntityMixin, db.Model):
    __tablename__ = "status"

    value = db.Column(db.String(80), nullable=False)
    is_completion_status = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self):
        data = super().to_dict()
        data["value"] = self.value
        data["is_completion_status"] = bool(self.is_completion_status)
        return data
