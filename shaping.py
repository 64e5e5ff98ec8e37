"""
Shape Normalizer

Turns arbitrary nested request bodies into records holding only the
recognized fields of each record type:

- keys are lowercased at every depth
- fields missing from the schema allow-lists are dropped
- fields that are None or "" are pruned, and so are expense categories
  left without any field

Nothing in here touches the store or logs; failures are raised as
RecordValidationError.
"""

from typing import Any, Dict, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError

from errors import RecordValidationError
from schemas import EXPENSE_CATEGORIES, Address, Income, User, field_keys

USER_FIELDS = [key for key in field_keys(User) if key != "address"]
ADDRESS_FIELDS = field_keys(Address)


# ---------- Key normalizer ----------

def lowercase_keys(value: Any) -> Any:
    """Return a copy of value with every mapping key lowercased, recursively."""
    if isinstance(value, Mapping):
        return {
            (key.lower() if isinstance(key, str) else key): lowercase_keys(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [lowercase_keys(item) for item in value]
    return value


# ---------- Pruning ----------

def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def prune(fields: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Drop empty entries. Returns None when nothing is left, so the caller omits the key."""
    cleaned = {key: value for key, value in fields.items() if not is_empty(value)}
    return cleaned or None


# ---------- Helpers ----------

def as_mapping(data: Any) -> Mapping[str, Any]:
    return data if isinstance(data, Mapping) else {}


def section(data: Any, key: str) -> Mapping[str, Any]:
    """Nested mapping stored under key; anything that is not a mapping counts as empty."""
    return as_mapping(as_mapping(data).get(key))


def parse(model: Type[BaseModel], data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate data against model and return every recognized field under its stored key."""
    try:
        return model.model_validate(dict(data)).model_dump(by_alias=True)
    except ValidationError as exc:
        raise RecordValidationError(describe_errors(exc)) from exc


def describe_errors(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        problems.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(problems)


def compose_user(fields: Mapping[str, Any], address: Mapping[str, Any]) -> Dict[str, Any]:
    # The address is always written, even when all four parts are None
    user = prune({key: fields.get(key) for key in USER_FIELDS}) or {}
    user["address"] = {
        key: None if is_empty(address.get(key)) else address.get(key)
        for key in ADDRESS_FIELDS
    }
    return user


# ---------- Validation ----------

def validate_income(data: Any) -> None:
    if not as_mapping(data).get("wages"):
        raise RecordValidationError("wages is a required field.")


def validate_user(data: Any) -> None:
    if not isinstance(data, Mapping):
        raise RecordValidationError("Invalid input: data must be an object.")
    if not data.get("name") or not data.get("username"):
        raise RecordValidationError("Name and Username are required.")
    email = data.get("email")
    if not isinstance(email, str) or "@" not in email:
        raise RecordValidationError("A valid email string is required.")


# ---------- Shapers ----------

def shape_expense(data: Any) -> Dict[str, Any]:
    """Keep the recognized fields of each category and omit the empty categories."""
    record = {}
    for key, model in EXPENSE_CATEGORIES.items():
        category = prune(parse(model, section(data, key)))
        if category is not None:
            record[key] = category
    return record


def shape_income(data: Any) -> Dict[str, Any]:
    validate_income(data)
    return prune(parse(Income, as_mapping(data))) or {}


def shape_user(data: Any) -> Dict[str, Any]:
    validate_user(data)
    user = parse(User, data)
    return compose_user(user, user.get("address") or {})
