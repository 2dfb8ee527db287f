"""Persistence adapter for manually ordered collections.

``OrderedEntityStore`` wraps one model (Category, Priority or Status) and is
the only code that writes those tables. Every committed write is announced on
the process-wide ``ChangeFeed`` so that every live subscription to the same
collection receives the full, freshly queried result set.
"""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, Mapping

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from database import db
from services.errors import NotFoundError, StoreError, TaskFlowError, ValidationError

logger = logging.getLogger(__name__)

CHANGE_FEED_EXTENSION = "taskflow.change_feed"

_READ_ONLY_FIELDS = {"id", "created_at", "updated_at"}

DataCallback = Callable[[list[dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """A live query on one collection, fed by the change feed."""

    def __init__(
        self,
        store: "OrderedEntityStore",
        on_data: DataCallback,
        on_error: ErrorCallback | None = None,
    ):
        self.store = store
        self.on_data = on_data
        self.on_error = on_error
        self.active = True

    def refresh(self) -> None:
        if not self.active:
            return
        try:
            records = self.store.fetch_all()
        except StoreError as exc:
            if self.on_error is None:
                raise
            self.on_error(exc)
            return
        self.on_data(records)

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self.store.feed.unregister(self.store.collection, self)


class ChangeFeed:
    """Registry of live subscriptions keyed by collection name."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    def register(self, collection: str, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions[collection].append(subscription)

    def unregister(self, collection: str, subscription: Subscription) -> None:
        with self._lock:
            subscriptions = self._subscriptions.get(collection, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)
            if not subscriptions:
                self._subscriptions.pop(collection, None)

    def subscriber_count(self, collection: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(collection, []))

    def publish(self, collection: str) -> None:
        """Refresh every subscription to ``collection`` after a committed write.

        The feed is shared by the whole process, so callbacks run on the
        writer's thread and query through the writer's session, including
        subscriptions opened by other requests. Each callback replaces its
        manager's items wholesale.
        """
        with self._lock:
            subscriptions = list(self._subscriptions.get(collection, []))
        for subscription in subscriptions:
            try:
                subscription.refresh()
            except Exception:
                logger.exception("Subscriber to %s failed while handling a change", collection)


def get_change_feed() -> ChangeFeed:
    return current_app.extensions.setdefault(CHANGE_FEED_EXTENSION, ChangeFeed())


class OrderedEntityStore:
    def __init__(self, model, collection: str | None = None, feed: ChangeFeed | None = None):
        self.model = model
        self.collection = collection or model.__tablename__
        self._feed = feed
        self._columns = {column.name for column in model.__table__.columns}

    @property
    def feed(self) -> ChangeFeed:
        return self._feed if self._feed is not None else get_change_feed()

    def fetch_all(self) -> list[dict[str, Any]]:
        """Return every record ordered by ``order`` then ``name``."""
        try:
            records = (
                self.model.query.order_by(self.model.order.asc(), self.model.name.asc()).all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Unable to load %s: %s", self.collection, exc, exc_info=True)
            raise StoreError(f"Unable to load {self.collection}.") from exc
        return [record.to_dict() for record in records]

    def subscribe(self, on_data: DataCallback, on_error: ErrorCallback | None = None) -> Callable[[], None]:
        """Deliver the current records now and after every committed change.

        Returns a callable that cancels the subscription. It is safe to call it
        more than once.
        """
        subscription = Subscription(self, on_data, on_error)
        self.feed.register(self.collection, subscription)
        subscription.refresh()
        return subscription.cancel

    def insert(self, data: Mapping[str, Any]) -> int:
        fields = self._writable(data)
        name = fields.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("A name is required.", field="name")
        now = datetime.utcnow()
        record = self.model(**fields)
        record.created_at = now
        record.updated_at = now
        with self._transaction("insert into"):
            db.session.add(record)
            db.session.flush()
        return record.id

    def update_fields(self, entity_id: int, partial: Mapping[str, Any]) -> None:
        fields = self._writable(partial)
        if "name" in fields and (not isinstance(fields["name"], str) or not fields["name"].strip()):
            raise ValidationError("A name is required.", field="name")
        with self._transaction("update"):
            record = self._get(entity_id)
            for key, value in fields.items():
                setattr(record, key, value)
            record.updated_at = datetime.utcnow()

    def remove(self, entity_id: int) -> None:
        """Hard delete. Raises ``NotFoundError`` when the record is already gone."""
        with self._transaction("delete from"):
            db.session.delete(self._get(entity_id))

    def batch_update_order(self, assignments: Iterable[Any]) -> None:
        """Apply every ``{id, order}`` pair in a single transaction.

        Nothing is written when one of the ids is missing or the commit fails.
        """
        pairs = [_assignment_pair(item) for item in assignments]
        if not pairs:
            return
        with self._transaction("reorder"):
            now = datetime.utcnow()
            for entity_id, order in pairs:
                record = self._get(entity_id)
                record.order = order
                record.updated_at = now

    def _writable(self, data: Mapping[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(data) - (self._columns - _READ_ONLY_FIELDS))
        if unknown:
            raise ValidationError(
                f"Unknown field(s) for {self.collection}: {', '.join(unknown)}.",
                field=unknown[0],
            )
        return dict(data)

    def _get(self, entity_id: int):
        record = db.session.get(self.model, entity_id)
        if record is None:
            raise NotFoundError(f"No {self.collection} record with id {entity_id}.")
        return record

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        try:
            yield
            db.session.commit()
        except TaskFlowError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Unable to %s %s: %s", operation, self.collection, exc, exc_info=True)
            raise StoreError(f"Unable to {operation} {self.collection}.") from exc
        self.feed.publish(self.collection)


def _assignment_pair(item: Any) -> tuple[int, int]:
    if isinstance(item, Mapping):
        entity_id, order = item.get("id"), item.get("order")
    else:
        entity_id, order = getattr(item, "id", None), getattr(item, "order", None)
    if entity_id is None or order is None:
        raise ValidationError("Every order assignment needs an id and an order.")
    return entity_id, int(order)
