"""Live, manually ordered collections of categories, priorities and statuses.

One ``OrderedCollectionManager`` serves every kind; an ``EntityKind`` tells it
which model to use, which fields it accepts and whether a ``value`` slug is
derived from the name.

Rules enforced before anything reaches the database:

Names are required and unique within a kind, ignoring case
Priority and Status values are required and unique within a kind, ignoring case
A new record is appended after the last one unless an order is supplied
Deleting a record leaves a gap in the orders; the next move renumbers them
Moving a record past either end of the collection does nothing

The manager never edits its own list: it waits for the change feed to push
the committed state.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from models.category import Category
from models.priority import Priority
from models.status import Status
from services.errors import DuplicateError, NotFoundError, ValidationError
from services.ordering import MoveDirection, compute_move, next_order, sorted_by_order
from services.store import OrderedEntityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityKind:
    collection: str
    model: type
    label: str
    fields: tuple[str, ...]
    derives_value: bool = False
    search_fields: tuple[str, ...] = ()
    defaults: Mapping[str, Any] = field(default_factory=dict)

    @property
    def unique_fields(self) -> tuple[str, ...]:
        return ("name", "value") if self.derives_value else ("name",)


_DISPLAY_FIELDS = ("color", "icon_name")

CATEGORY_KIND = EntityKind(
    collection="categories",
    model=Category,
    label="category",
    fields=("name", "description", *_DISPLAY_FIELDS),
    search_fields=("description",),
)
PRIORITY_KIND = EntityKind(
    collection="priorities",
    model=Priority,
    label="priority",
    fields=("name", "value", *_DISPLAY_FIELDS),
    derives_value=True,
    search_fields=("value",),
)
STATUS_KIND = EntityKind(
    collection="statuses",
    model=Status,
    label="status",
    fields=("name", "value", "is_completion_status", *_DISPLAY_FIELDS),
    derives_value=True,
    search_fields=("value",),
    defaults={"is_completion_status": False},
)

ENTITY_KINDS = {kind.collection: kind for kind in (CATEGORY_KIND, PRIORITY_KIND, STATUS_KIND)}


def slugify_value(name: str | None) -> str:
    """Lowercase the name and replace each run of whitespace with a hyphen."""
    return re.sub(r"\s+", "-", (name or "").lower()).strip()


def _coerce_order(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValidationError("Order must be a whole number.", field="order")
    try:
        order = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Order must be a whole number.", field="order") from exc
    if isinstance(raw, float) and not raw.is_integer():
        raise ValidationError("Order must be a whole number.", field="order")
    if order < 0:
        raise ValidationError("Order must be a non-negative whole number.", field="order")
    return order


class OrderedCollectionManager:
    def __init__(self, kind: EntityKind, store: OrderedEntityStore | None = None):
        self.kind = kind
        self.store = store if store is not None else OrderedEntityStore(kind.model, kind.collection)
        self.items: list[dict[str, Any]] = []
        self.is_loading = True
        self.error: Exception | None = None
        self._unsubscribe = None

    def open(self) -> "OrderedCollectionManager":
        if self._unsubscribe is None:
            self.is_loading = True
            self._unsubscribe = self.store.subscribe(self._on_data, self._on_error)
        return self

    def close(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def __enter__(self) -> "OrderedCollectionManager":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _on_data(self, records: list[dict[str, Any]]) -> None:
        self.items = sorted_by_order(records)
        self.is_loading = False
        self.error = None

    def _on_error(self, exc: Exception) -> None:
        logger.warning("Unable to load %s: %s", self.kind.collection, exc)
        self.is_loading = False
        self.error = exc

    def list(self) -> list[dict[str, Any]]:
        return list(self.items)

    def get(self, entity_id: Any) -> dict[str, Any] | None:
        return next((item for item in self.items if item["id"] == entity_id), None)

    def add(self, data: Mapping[str, Any]) -> int:
        """Validate and insert a new record, returning its id."""
        fields = {key: value for key, value in data.items() if key in self.kind.fields}
        for key, default in self.kind.defaults.items():
            fields.setdefault(key, default)

        fields["name"] = self._clean_name(fields.get("name"))
        if self.kind.derives_value:
            fields["value"] = self._clean_value(fields.get("value"), fields["name"])
        self._check_duplicates(fields)

        raw_order = data.get("order")
        fields["order"] = next_order(self.items) if raw_order in (None, "") else _coerce_order(raw_order)
        return self.store.insert(fields)

    def update(self, entity_id: Any, partial: Mapping[str, Any]) -> None:
        current = self.get(entity_id)
        if current is None:
            raise NotFoundError(f"Unknown {self.kind.label} id {entity_id}.")

        fields = {key: value for key, value in partial.items() if key in self.kind.fields}
        if "name" in fields:
            fields["name"] = self._clean_name(fields["name"])
        if self.kind.derives_value:
            explicit = str(fields.get("value") or "").strip()
            if explicit:
                fields["value"] = explicit
            elif "name" in fields:
                fields["value"] = self._clean_value(None, fields["name"])
            elif "value" in fields:
                fields["value"] = self._clean_value(None, current["name"])
        if "order" in partial and partial["order"] not in (None, ""):
            fields["order"] = _coerce_order(partial["order"])
        self._check_duplicates(fields, exclude_id=entity_id)
        if fields:
            self.store.update_fields(entity_id, fields)

    def remove(self, entity_id: Any) -> None:
        if self.get(entity_id) is None:
            raise NotFoundError(f"Unknown {self.kind.label} id {entity_id}.")
        self.store.remove(entity_id)

    def move(self, entity_id: Any, direction: MoveDirection | str) -> bool:
        """Move a record one step; returns False when nothing had to change."""
        assignments = compute_move(self.items, entity_id, direction)
        if assignments is None:
            return False
        try:
            self.store.batch_update_order(assignments)
        except NotFoundError:
            # A concurrent delete removed one of the records being renumbered.
            logger.info("Skipped move of %s %s: the collection changed", self.kind.label, entity_id)
            return False
        return True

    def _clean_name(self, raw: Any) -> str:
        name = str(raw or "").strip()
        if not name:
            raise ValidationError(f"The {self.kind.label} name is required.", field="name")
        return name

    def _clean_value(self, raw: Any, name: str) -> str:
        value = str(raw or "").strip() or slugify_value(name)
        if not value:
            raise ValidationError(f"The {self.kind.label} value is required.", field="value")
        return value

    def _check_duplicates(self, fields: Mapping[str, Any], exclude_id: Any = None) -> None:
        for field_name in self.kind.unique_fields:
            candidate = fields.get(field_name)
            if not candidate:
                continue
            folded = str(candidate).casefold()
            for item in self.items:
                if item["id"] == exclude_id:
                    continue
                if str(item.get(field_name) or "").casefold() == folded:
                    raise DuplicateError(
                        f"A {self.kind.label} with {field_name} \"{candidate}\" already exists.",
                        field=field_name,
                        value=str(candidate),
                    )


def open_collection(collection: str, store: OrderedEntityStore | None = None) -> OrderedCollectionManager:
    """Return a subscribed manager for ``categories``, ``priorities`` or ``statuses``."""
    kind = ENTITY_KINDS.get(collection)
    if kind is None:
        raise NotFoundError(f"Unknown collection {collection!r}.")
    return OrderedCollectionManager(kind, store).open()
