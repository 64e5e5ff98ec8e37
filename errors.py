"""Errors raised by the shaping, merging and persistence layers.

Each error knows the HTTP status and the `{error, message}` body it is
rendered with by the API.
"""

from typing import Any, Dict


class FinanceTrackerError(Exception):
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class RecordNotFound(FinanceTrackerError):
    status_code = 404
    error = "Not Found"

    def __init__(self, label: str, record_id: str):
        super().__init__(f"{label} with ID {record_id} does not exist.")
        self.label = label
        self.record_id = record_id


class RecordValidationError(FinanceTrackerError):
    """Required fields missing or malformed."""
    status_code = 400
    error = "Bad Request"


class BadRequest(FinanceTrackerError):
    status_code = 400
    error = "Bad Request"


class BackendError(FinanceTrackerError):
    """The document store could not be reached or rejected the operation."""
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str = "Could not complete the request against the database."):
        super().__init__(message)
