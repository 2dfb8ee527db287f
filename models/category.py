"""A category groups tasks under a common theme.

Categories are listed in the order chosen by an admin.
"""
from database import db
from models.ordered import OrderedEntityMixin


class Category(OrderedEntityMixin, db.Model):
    __tablename__ = "category"

    description = db.Column(db.Text, nullable=True)

    def to_dict(self):
        data = super().to_dict()
        data["description"] = self.description
        return data
