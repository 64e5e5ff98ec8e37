"""
Database Helpers

The document store behind the API. Records live under one node per record
type ("users", "expenses", "income"), keyed by their id as a string. The
counters that mint new ids ("lastUserId", "lastExpenseId", "lastIncomeId")
are kept next to them.

Two backends are available:
- MongoDocumentStore: one collection per node, counters in "counters"
- MemoryDocumentStore: in-process, for local runs and tests
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Optional

from pymongo import MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import BackendError

logger = logging.getLogger(__name__)

FIRST_ID = 100
COUNTERS = "counters"


class DocumentStore(ABC):
    @abstractmethod
    def read(self, node: str) -> Dict[str, Dict[str, Any]]:
        """All records under node, keyed by id."""

    @abstractmethod
    def read_one(self, node: str, record_id: str) -> Optional[Dict[str, Any]]:
        """One record, or None when it does not exist."""

    @abstractmethod
    def set(self, node: str, record_id: str, data: Dict[str, Any]) -> None:
        """Write a whole record, replacing whatever was stored under record_id."""

    @abstractmethod
    def update(self, node: str, record_id: str, data: Dict[str, Any]) -> None:
        """Shallow merge: replace only the top-level keys present in data."""

    @abstractmethod
    def remove(self, node: str, record_id: str) -> None:
        pass

    @abstractmethod
    def allocate(self, counter: str) -> int:
        """
        Atomically advance counter and return the new value.
        The first allocation returns FIRST_ID, every later one the previous value + 1.
        """

    @abstractmethod
    def ping(self) -> Dict[str, Any]:
        """Connectivity details for the health endpoint."""

    def close(self) -> None:
        pass


# ---------- MongoDB ----------

@contextmanager
def _backend(message: str):
    try:
        yield
    except PyMongoError as exc:
        raise BackendError(message) from exc


class MongoDocumentStore(DocumentStore):
    # Upserting the same counter from two clients can collide on _id once
    ALLOCATE_ATTEMPTS = 3

    def __init__(self, client: MongoClient, database_name: str):
        self.client = client
        self.db = client[database_name]

    def read(self, node):
        with _backend(f"Could not retrieve {node} from the database."):
            return {str(doc.pop("_id")): doc for doc in self.db[node].find()}

    def read_one(self, node, record_id):
        with _backend(f"Could not retrieve {node}/{record_id} from the database."):
            doc = self.db[node].find_one({"_id": record_id})
        if doc is not None:
            doc.pop("_id", None)
        return doc

    def set(self, node, record_id, data):
        with _backend(f"Could not write {node}/{record_id} to the database."):
            self.db[node].replace_one({"_id": record_id}, dict(data), upsert=True)

    def update(self, node, record_id, data):
        if not data:
            return
        with _backend(f"Could not update {node}/{record_id} in the database."):
            self.db[node].update_one({"_id": record_id}, {"$set": dict(data)})

    def remove(self, node, record_id):
        with _backend(f"Could not delete {node}/{record_id} from the database."):
            self.db[node].delete_one({"_id": record_id})

    def allocate(self, counter):
        # Single-document pipeline update: value = (value or FIRST_ID - 1) + 1
        pipeline = [{"$set": {"value": {"$add": [{"$ifNull": ["$value", FIRST_ID - 1]}, 1]}}}]
        with _backend(f"Could not allocate a new id from {counter}."):
            for attempt in range(1, self.ALLOCATE_ATTEMPTS + 1):
                try:
                    doc = self.db[COUNTERS].find_one_and_update(
                        {"_id": counter},
                        pipeline,
                        upsert=True,
                        return_document=ReturnDocument.AFTER,
                    )
                    return int(doc["value"])
                except DuplicateKeyError:
                    if attempt == self.ALLOCATE_ATTEMPTS:
                        raise
                    logger.warning("Counter %s upsert collided, retrying (attempt %d)", counter, attempt)

    def ping(self):
        with _backend("Could not reach the database."):
            self.client.admin.command("ping")
            return {
                "database_name": self.db.name,
                "collections": self.db.list_collection_names()[:10],
            }

    def close(self):
        self.client.close()


# ---------- In-process ----------

class MemoryDocumentStore(DocumentStore):
    """Keeps every node in a dict; reads and writes copy so callers never share state with the store."""

    def __init__(self):
        self._nodes: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._counters: Dict[str, int] = {}
        self._lock = threading.Lock()

    def read(self, node):
        with self._lock:
            return copy.deepcopy(self._nodes.get(node, {}))

    def read_one(self, node, record_id):
        with self._lock:
            return copy.deepcopy(self._nodes.get(node, {}).get(record_id))

    def set(self, node, record_id, data):
        with self._lock:
            self._nodes.setdefault(node, {})[record_id] = copy.deepcopy(dict(data))

    def update(self, node, record_id, data):
        with self._lock:
            record = self._nodes.setdefault(node, {}).setdefault(record_id, {})
            record.update(copy.deepcopy(dict(data)))

    def remove(self, node, record_id):
        with self._lock:
            self._nodes.get(node, {}).pop(record_id, None)

    def allocate(self, counter):
        with self._lock:
            current = self._counters.get(counter)
            value = FIRST_ID if current is None else current + 1
            self._counters[counter] = value
            return value

    def ping(self):
        with self._lock:
            return {"database_name": "memory", "collections": sorted(self._nodes)[:10]}


def connect(url: str, database_name: str, timeout_ms: int = 5000) -> DocumentStore:
    """Open the store named by url; "memory://" selects the in-process backend."""
    if url.startswith("memory://"):
        logger.info("Using in-memory document store")
        return MemoryDocumentStore()
    logger.info("Connecting to MongoDB database %s", database_name)
    client = MongoClient(url, serverSelectionTimeoutMS=timeout_ms)
    return MongoDocumentStore(client, database_name)
