"""Checklist items and their nested action items.

A checklist item belongs either to a Task or to a Subtask, never both.
"""
from database import db


class ChecklistItem(db.Model):
    __tablename__ = "checklist_item"

    __table_args__ = (
        db.CheckConstraint(
            "(task_id IS NULL) <> (subtask_id IS NULL)",
            name="ck_checklist_item_single_parent",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("task.id"), nullable=True, index=True)
    subtask_id = db.Column(db.Integer, db.ForeignKey("subtask.id"), nullable=True, index=True)
    text = db.Column(db.Text, nullable=False)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    task = db.relationship("Task", back_populates="checklist")
    subtask = db.relationship("Subtask", back_populates="checklist")
    actions = db.relationship(
        "ActionItem",
        back_populates="checklist_item",
        lazy="selectin",
        order_by="ActionItem.position",
        cascade="all, delete-orphan",
    )

    def find_action(self, action_id):
        return next((action for action in self.actions if action.id == action_id), None)

    def to_dict(self):
        return {
            "id": self.id,
            "text": self.text,
            "completed": bool(self.completed),
            "actions": [action.to_dict() for action in self.actions],
        }

    def __repr__(self):
        return f"<ChecklistItem {self.text!r} completed={self.completed}>"


class ActionItem(db.Model):
    __tablename__ = "action_item"

    id = db.Column(db.Integer, primary_key=True)
    checklist_item_id = db.Column(
        db.Integer, db.ForeignKey("checklist_item.id"), nullable=False, index=True
    )
    text = db.Column(db.Text, nullable=False)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    checklist_item = db.relationship("ChecklistItem", back_populates="actions")

    def to_dict(self):
        return {
            "id": self.id,
            "text": self.text,
            "completed": bool(self.completed),
        }
