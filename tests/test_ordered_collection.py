import unittest
from unittest import mock

from sqlalchemy.exc import OperationalError

from models.category import Category
from models.priority import Priority
from models.status import Status
from services.errors import DuplicateError, NotFoundError, StoreError, ValidationError
from services.ordered_collection import (
    CATEGORY_KIND,
    PRIORITY_KIND,
    STATUS_KIND,
    OrderedCollectionManager,
    open_collection,
    slugify_value,
)
from services.store import OrderedEntityStore, get_change_feed
from tests.utils.db import DatabaseTestCase


class StubStore:
    """In-memory store that records every write it receives."""

    def __init__(self, records=None, fail_subscribe=False):
        self.records = list(records or [])
        self.fail_subscribe = fail_subscribe
        self.calls = []
        self.unsubscribed = 0

    def subscribe(self, on_data, on_error=None):
        if self.fail_subscribe:
            on_error(StoreError("Unable to load priorities."))
        else:
            on_data(list(self.records))

        def unsubscribe():
            self.unsubscribed += 1

        return unsubscribe

    def insert(self, data):
        self.calls.append(("insert", data))
        return 99

    def update_fields(self, entity_id, partial):
        self.calls.append(("update_fields", entity_id, partial))

    def remove(self, entity_id):
        self.calls.append(("remove", entity_id))

    def batch_update_order(self, assignments):
        self.calls.append(("batch_update_order", list(assignments)))


class ManagerWithStubStoreTestCase(unittest.TestCase):
    def _manager(self, records=None, kind=PRIORITY_KIND, **kwargs):
        store = StubStore(records, **kwargs)
        return OrderedCollectionManager(kind, store).open(), store

    def test_boundary_moves_never_call_the_store(self):
        records = [
            {"id": 1, "name": "Low", "value": "low", "order": 0},
            {"id": 2, "name": "Medium", "value": "medium", "order": 1},
            {"id": 3, "name": "High", "value": "high", "order": 2},
        ]
        manager, store = self._manager(records)

        self.assertFalse(manager.move(1, "up"))
        self.assertFalse(manager.move(3, "down"))
        self.assertEqual(store.calls, [])

    def test_move_on_empty_collection_is_a_noop(self):
        manager, store = self._manager([], kind=STATUS_KIND)

        self.assertFalse(manager.move(42, "up"))
        self.assertEqual(store.calls, [])

    def test_move_on_unknown_id_is_a_noop(self):
        manager, store = self._manager(
            [{"id": 1, "name": "A", "order": 0}, {"id": 2, "name": "B", "order": 1}],
            kind=CATEGORY_KIND,
        )

        self.assertFalse(manager.move(7, "down"))
        self.assertEqual(store.calls, [])

    def test_subscription_error_stops_loading(self):
        manager, _ = self._manager(fail_subscribe=True)

        self.assertFalse(manager.is_loading)
        self.assertIsInstance(manager.error, StoreError)
        self.assertEqual(manager.list(), [])

    def test_close_is_idempotent(self):
        manager, store = self._manager([])

        manager.close()
        manager.close()

        self.assertEqual(store.unsubscribed, 1)

    def test_validation_happens_before_the_store(self):
        manager, store = self._manager([{"id": 1, "name": "Bug", "value": "bug", "order": 0}])

        with self.assertRaises(ValidationError):
            manager.add({"name": "   "})
        with self.assertRaises(DuplicateError):
            manager.add({"name": "BUG"})
        with self.assertRaises(ValidationError):
            manager.add({"name": "Blocker", "order": -1})
        self.assertEqual(store.calls, [])

    def test_add_defaults_order_to_end_and_derives_value(self):
        manager, store = self._manager(
            [{"id": 1, "name": "Low", "value": "low", "order": 4}]
        )

        self.assertEqual(manager.add({"name": "  Very   High "}), 99)

        (_, data), = store.calls
        self.assertEqual(data["name"], "Very   High")
        self.assertEqual(data["value"], "very-high")
        self.assertEqual(data["order"], 5)

    def test_slugify_value(self):
        self.assertEqual(slugify_value("In  Progress"), "in-progress")
        self.assertEqual(slugify_value(""), "")


class OrderedCollectionTestCase(DatabaseTestCase):
    def _orders(self, model):
        return {record.name: record.order for record in model.query.all()}

    def test_priority_scenario_move_medium_up(self):
        with self.app.app_context():
            with OrderedCollectionManager(PRIORITY_KIND) as manager:
                low = manager.add({"name": "Low"})
                medium = manager.add({"name": "Medium"})
                high = manager.add({"name": "High"})
                self.assertEqual(self._orders(Priority), {"Low": 0, "Medium": 1, "High": 2})

                self.assertTrue(manager.move(medium, "up"))

                self.assertEqual(self._orders(Priority), {"Medium": 0, "Low": 1, "High": 2})
                self.assertEqual([item["id"] for item in manager.list()], [medium, low, high])

    def test_adds_and_moves_keep_a_permutation(self):
        with self.app.app_context():
            with OrderedCollectionManager(CATEGORY_KIND) as manager:
                ids = [manager.add({"name": f"Category {index}"}) for index in range(5)]
                for entity_id, direction in [
                    (ids[0], "down"),
                    (ids[4], "up"),
                    (ids[2], "up"),
                    (ids[0], "down"),
                    (ids[3], "down"),
                ]:
                    manager.move(entity_id, direction)

                orders = sorted(record.order for record in Category.query.all())
                self.assertEqual(orders, [0, 1, 2, 3, 4])

    def test_remove_leaves_gap_until_next_move(self):
        with self.app.app_context():
            with OrderedCollectionManager(STATUS_KIND) as manager:
                first = manager.add({"name": "To Do"})
                middle = manager.add({"name": "In Progress"})
                last = manager.add({"name": "Done", "is_completion_status": True})

                manager.remove(middle)
                self.assertEqual(self._orders(Status), {"To Do": 0, "Done": 2})

                manager.move(last, "up")
                self.assertEqual(self._orders(Status), {"Done": 0, "To Do": 1})
                self.assertEqual([item["id"] for item in manager.list()], [last, first])

    def test_duplicate_name_leaves_collection_unchanged(self):
        with self.app.app_context():
            with OrderedCollectionManager(CATEGORY_KIND) as manager:
                manager.add({"name": "bug"})

                with self.assertRaises(DuplicateError) as ctx:
                    manager.add({"name": "Bug"})

                self.assertEqual(ctx.exception.field, "name")
                self.assertEqual(Category.query.count(), 1)

    def test_duplicate_value_is_rejected(self):
        with self.app.app_context():
            with OrderedCollectionManager(STATUS_KIND) as manager:
                manager.add({"name": "In Progress"})

                with self.assertRaises(DuplicateError) as ctx:
                    manager.add({"name": "Working", "value": "IN-PROGRESS"})

                self.assertEqual(ctx.exception.field, "value")

    def test_update_rederives_value_and_ignores_own_record(self):
        with self.app.app_context():
            with OrderedCollectionManager(PRIORITY_KIND) as manager:
                entity_id = manager.add({"name": "Urgent"})
                manager.add({"name": "Low"})

                manager.update(entity_id, {"name": "URGENT"})
                self.assertEqual(manager.get(entity_id)["value"], "urgent")

                manager.update(entity_id, {"name": "Really Urgent"})
                record = db_get(Priority, entity_id)
                self.assertEqual(record.value, "really-urgent")

                manager.update(entity_id, {"value": "p0"})
                self.assertEqual(db_get(Priority, entity_id).value, "p0")

                with self.assertRaises(DuplicateError):
                    manager.update(entity_id, {"name": "low"})
                with self.assertRaises(NotFoundError):
                    manager.update(12345, {"name": "Ghost"})

    def test_fresh_subscription_sees_last_write(self):
        with self.app.app_context():
            with OrderedCollectionManager(PRIORITY_KIND) as writer:
                a = writer.add({"name": "A"})
                b = writer.add({"name": "B"})
                writer.move(b, "up")
                writer.update(a, {"color": "#ff0000"})

                with OrderedCollectionManager(PRIORITY_KIND) as reader:
                    self.assertFalse(reader.is_loading)
                    self.assertEqual(reader.list(), writer.list())
                    self.assertEqual([item["id"] for item in reader.list()], [b, a])
                    self.assertEqual(reader.get(a)["color"], "#ff0000")

    def test_live_subscription_receives_other_writers_changes(self):
        with self.app.app_context():
            with OrderedCollectionManager(CATEGORY_KIND) as watcher:
                self.assertEqual(watcher.list(), [])
                with OrderedCollectionManager(CATEGORY_KIND) as writer:
                    writer.add({"name": "Design"})

                self.assertEqual([item["name"] for item in watcher.list()], ["Design"])

    def test_unsubscribe_can_be_called_twice(self):
        with self.app.app_context():
            store = OrderedEntityStore(Category, "categories")
            feed = get_change_feed()
            baseline = feed.subscriber_count("categories")

            unsubscribe = store.subscribe(lambda records: None)
            self.assertEqual(feed.subscriber_count("categories"), baseline + 1)

            unsubscribe()
            unsubscribe()
            self.assertEqual(feed.subscriber_count("categories"), baseline)

    def test_batch_update_is_all_or_nothing(self):
        with self.app.app_context():
            with OrderedCollectionManager(CATEGORY_KIND) as manager:
                first = manager.add({"name": "First"})
                second = manager.add({"name": "Second"})

            store = OrderedEntityStore(Category, "categories")
            with self.assertRaises(NotFoundError):
                store.batch_update_order(
                    [{"id": first, "order": 1}, {"id": second, "order": 0}, {"id": 999, "order": 2}]
                )

            self.assertEqual(self._orders(Category), {"First": 0, "Second": 1})

    def test_commit_failure_raises_store_error_and_rolls_back(self):
        with self.app.app_context():
            with OrderedCollectionManager(CATEGORY_KIND) as manager:
                first = manager.add({"name": "First"})
                second = manager.add({"name": "Second"})

                failure = OperationalError("COMMIT", {}, Exception("disk I/O error"))
                with mock.patch.object(self.db.session, "commit", side_effect=failure):
                    with self.assertRaises(StoreError):
                        manager.move(first, "down")

                self.assertEqual(self._orders(Category), {"First": 0, "Second": 1})
                self.assertEqual([item["id"] for item in manager.list()], [first, second])

    def test_store_refuses_invalid_writes(self):
        with self.app.app_context():
            store = OrderedEntityStore(Category, "categories")

            with self.assertRaises(ValidationError):
                store.insert({"name": "  ", "order": 0})
            with self.assertRaises(ValidationError):
                store.insert({"name": "Ok", "nonsense": 1})
            with self.assertRaises(NotFoundError):
                store.update_fields(404, {"name": "Nope"})
            with self.assertRaises(NotFoundError):
                store.remove(404)
            self.assertEqual(Category.query.count(), 0)

    def test_reorder_refreshes_updated_at(self):
        with self.app.app_context():
            with OrderedCollectionManager(CATEGORY_KIND) as manager:
                manager.add({"name": "First"})
                second = manager.add({"name": "Second"})
                before = db_get(Category, second).updated_at

                manager.move(second, "up")

                self.assertGreaterEqual(db_get(Category, second).updated_at, before)

    def test_open_collection_rejects_unknown_kind(self):
        with self.app.app_context():
            with self.assertRaises(NotFoundError):
                open_collection("colors")

            manager = open_collection("statuses")
            try:
                self.assertFalse(manager.is_loading)
                self.assertEqual(manager.list(), [])
            finally:
                manager.close()


def db_get(model, entity_id):
    from database import db

    db.session.expire_all()
    return db.session.get(model, entity_id)
