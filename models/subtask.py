"""A step of a task with its own status, priority and checklist."""
from database import db
from models.task import DEFAULT_PRIORITY, DEFAULT_STATUS


class Subtask(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("task.id"), nullable=False, index=True)
    name = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(80), nullable=False, default=DEFAULT_STATUS)
    priority = db.Column(db.String(80), nullable=False, default=DEFAULT_PRIORITY)
    position = db.Column(db.Integer, nullable=False, default=0)

    task = db.relationship("Task", back_populates="subtasks")
    checklist = db.relationship(
        "ChecklistItem",
        back_populates="subtask",
        lazy="selectin",
        order_by="ChecklistItem.position",
        cascade="all",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "priority": self.priority,
            "checklist": [item.to_dict() for item in self.checklist],
        }

    def __repr__(self):
        return f"<Subtask {self.name}>"
