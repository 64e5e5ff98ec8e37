"""
Record services: fetch, shape or merge, then write, for one record type.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict

from database import DocumentStore
from errors import BadRequest, RecordNotFound, RecordValidationError
from merging import merge_expense, merge_income, merge_user
from shaping import lowercase_keys, shape_expense, shape_income, shape_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordKind:
    node: str       # store node, e.g. "users"
    counter: str    # id counter, e.g. "lastUserId"
    label: str      # used in messages, e.g. "User"
    shape: Callable[[Any], Dict[str, Any]]
    merge: Callable[[Any, Any], Dict[str, Any]]


USERS = RecordKind("users", "lastUserId", "User", shape_user, merge_user)
EXPENSES = RecordKind("expenses", "lastExpenseId", "Expense", shape_expense, merge_expense)
INCOME = RecordKind("income", "lastIncomeId", "Income", shape_income, merge_income)


class RecordService:
    def __init__(self, store: DocumentStore, kind: RecordKind):
        self.store = store
        self.kind = kind

    def list(self) -> Dict[str, Dict[str, Any]]:
        return self.store.read(self.kind.node)

    def get(self, record_id: str) -> Dict[str, Any]:
        record = self.store.read_one(self.kind.node, record_id)
        if record is None:
            raise RecordNotFound(self.kind.label, record_id)
        return record

    def create(self, payload: Any) -> int:
        """Shape the payload and store it under a freshly allocated id.

        Validation runs first, so a rejected payload never consumes an id.
        """
        record = self.kind.shape(lowercase_keys(payload))
        if not record:
            raise RecordValidationError(f"Invalid input: {self.kind.label} object is empty.")
        new_id = self.store.allocate(self.kind.counter)
        self.store.set(self.kind.node, str(new_id), record)
        logger.info("Created %s %s", self.kind.label, new_id)
        return new_id

    def update(self, record_id: str, payload: Any) -> Dict[str, Any]:
        # Read, merge and write are separate calls; concurrent updates race per top-level key
        existing = self.get(record_id)
        merged = self.kind.merge(existing, payload)
        self.store.update(self.kind.node, record_id, merged)
        logger.info("Updated %s %s (%s)", self.kind.label, record_id, ", ".join(merged) or "no fields")
        return merged

    def delete(self, record_id: str) -> None:
        if not record_id or not record_id.strip():
            raise BadRequest(f"{self.kind.label} ID is required")
        self.get(record_id)
        self.store.remove(self.kind.node, record_id)
        logger.info("Deleted %s %s", self.kind.label, record_id)
