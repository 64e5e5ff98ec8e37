"""
Document Store Tests
====================

The in-process store and the MongoDB store (against a mocked client).
"""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import COUNTERS, FIRST_ID, MemoryDocumentStore, MongoDocumentStore, connect
from errors import BackendError


class TestMemoryDocumentStore:

    def test_allocate_starts_at_first_id_and_increments(self):
        store = MemoryDocumentStore()

        assert [store.allocate("lastUserId") for _ in range(3)] == [FIRST_ID, FIRST_ID + 1, FIRST_ID + 2]

    def test_counters_are_independent(self):
        store = MemoryDocumentStore()
        store.allocate("lastUserId")

        assert store.allocate("lastIncomeId") == FIRST_ID

    def test_concurrent_allocations_never_repeat(self):
        store = MemoryDocumentStore()

        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(lambda _: store.allocate("lastExpenseId"), range(50)))

        assert sorted(ids) == list(range(FIRST_ID, FIRST_ID + 50))

    def test_update_is_shallow(self):
        store = MemoryDocumentStore()
        store.set("expenses", "100", {"savings": {"rrsp": 10, "bonds": 20}, "housing": {"rent": 900}})

        store.update("expenses", "100", {"savings": {"rrsp": 50}})

        assert store.read_one("expenses", "100") == {"savings": {"rrsp": 50}, "housing": {"rent": 900}}

    def test_reads_return_copies(self):
        store = MemoryDocumentStore()
        store.set("users", "100", {"name": "Ann"})

        store.read_one("users", "100")["name"] = "Changed"
        store.read("users")["100"]["name"] = "Changed"

        assert store.read_one("users", "100") == {"name": "Ann"}

    def test_missing_records(self):
        store = MemoryDocumentStore()

        assert store.read("income") == {}
        assert store.read_one("income", "100") is None
        store.remove("income", "100")

    def test_remove(self):
        store = MemoryDocumentStore()
        store.set("income", "100", {"wages": 1})

        store.remove("income", "100")

        assert store.read("income") == {}


@pytest.fixture
def mongo():
    client = MagicMock()
    store = MongoDocumentStore(client, "finance")
    # MagicMock hands back the same collection mock for every name
    return store, store.db[COUNTERS]


class TestMongoDocumentStore:

    def test_allocate_is_a_single_atomic_upsert(self, mongo):
        store, collection = mongo
        collection.find_one_and_update.return_value = {"_id": "lastUserId", "value": 100}

        assert store.allocate("lastUserId") == 100

        args, kwargs = collection.find_one_and_update.call_args
        assert args[0] == {"_id": "lastUserId"}
        assert args[1] == [{"$set": {"value": {"$add": [{"$ifNull": ["$value", FIRST_ID - 1]}, 1]}}}]
        assert kwargs == {"upsert": True, "return_document": ReturnDocument.AFTER}

    def test_allocate_retries_colliding_upsert(self, mongo):
        store, collection = mongo
        collection.find_one_and_update.side_effect = [DuplicateKeyError("dup"), {"value": 101}]

        assert store.allocate("lastUserId") == 101
        assert collection.find_one_and_update.call_count == 2

    def test_allocate_gives_up_after_repeated_collisions(self, mongo):
        store, collection = mongo
        collection.find_one_and_update.side_effect = DuplicateKeyError("dup")

        with pytest.raises(BackendError):
            store.allocate("lastUserId")

    def test_read_keys_records_by_id(self, mongo):
        store, collection = mongo
        collection.find.return_value = [{"_id": "100", "name": "Ann"}, {"_id": "101", "name": "Bo"}]

        assert store.read("users") == {"100": {"name": "Ann"}, "101": {"name": "Bo"}}

    def test_read_one_strips_id(self, mongo):
        store, collection = mongo
        collection.find_one.return_value = {"_id": "100", "wages": 3000}

        assert store.read_one("income", "100") == {"wages": 3000}
        collection.find_one.assert_called_with({"_id": "100"})

    def test_read_one_missing(self, mongo):
        store, collection = mongo
        collection.find_one.return_value = None

        assert store.read_one("income", "100") is None

    def test_set_replaces_whole_document(self, mongo):
        store, collection = mongo

        store.set("users", "100", {"name": "Ann"})

        collection.replace_one.assert_called_once_with({"_id": "100"}, {"name": "Ann"}, upsert=True)

    def test_update_sets_top_level_keys_only(self, mongo):
        store, collection = mongo

        store.update("expenses", "100", {"savings": {"rrsp": 50, "bonds": 20}})

        collection.update_one.assert_called_once_with(
            {"_id": "100"}, {"$set": {"savings": {"rrsp": 50, "bonds": 20}}}
        )

    def test_empty_update_is_skipped(self, mongo):
        store, collection = mongo

        store.update("expenses", "100", {})

        collection.update_one.assert_not_called()

    def test_remove(self, mongo):
        store, collection = mongo

        store.remove("users", "100")

        collection.delete_one.assert_called_once_with({"_id": "100"})

    def test_driver_errors_become_backend_errors(self, mongo):
        store, collection = mongo
        collection.find.side_effect = PyMongoError("connection refused")

        with pytest.raises(BackendError) as excinfo:
            store.read("users")

        assert excinfo.value.status_code == 500
        assert isinstance(excinfo.value.__cause__, PyMongoError)


def test_connect_memory():
    assert isinstance(connect("memory://", "finance"), MemoryDocumentStore)


def test_connect_mongo_is_lazy():
    store = connect("mongodb://localhost:27017", "finance", timeout_ms=10)

    assert isinstance(store, MongoDocumentStore)
    assert store.db.name == "finance"
    store.close()
