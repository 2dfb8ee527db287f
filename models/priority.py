"""A priority level that can be assigned to tasks.

Tasks reference a priority by name; sorting tasks "by priority" uses the
priority's ``order`` (lowest first).
"""
from database import db
from models.ordered import OrderedEntityMixin


class Priority(OrderedEntityMixin, db.Model):
    __tablename__ = "priority"

    value = db.Column(db.String(80), nullable=False)

    def to_dict(self):
        data = super().to_dict()
        data["value"] = self.value
        return data
