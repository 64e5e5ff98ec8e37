"""
Merge Engine

Combines a stored record with a partial update. Every recognized field
takes the new value when the request carries one (anything but None or
""), else keeps the stored value. The result only holds fields that
survive pruning, ready for a shallow update that leaves the rest of the
stored document untouched.
"""

from typing import Any, Dict, Iterable, Mapping

from schemas import EXPENSE_CATEGORIES, Income, User, field_keys
from shaping import (
    ADDRESS_FIELDS,
    USER_FIELDS,
    as_mapping,
    compose_user,
    is_empty,
    lowercase_keys,
    parse,
    prune,
    section,
)


def pick(keys: Iterable[str], new: Mapping[str, Any], old: Mapping[str, Any]) -> Dict[str, Any]:
    """Per key, the new value when it is present, else the old one."""
    return {key: old.get(key) if is_empty(new.get(key)) else new.get(key) for key in keys}


def merge_expense(existing: Any, raw: Any) -> Dict[str, Any]:
    data = lowercase_keys(raw)
    merged = {}
    for key, model in EXPENSE_CATEGORIES.items():
        incoming = parse(model, section(data, key))
        category = prune(pick(field_keys(model), incoming, section(existing, key)))
        if category is not None:
            merged[key] = category
    return merged


def merge_income(existing: Any, raw: Any) -> Dict[str, Any]:
    incoming = parse(Income, as_mapping(lowercase_keys(raw)))
    return prune(pick(field_keys(Income), incoming, as_mapping(existing))) or {}


def merge_user(existing: Any, raw: Any) -> Dict[str, Any]:
    """Address parts fall back to the stored ones independently of each other."""
    incoming = parse(User, as_mapping(lowercase_keys(raw)))
    stored = as_mapping(existing)
    fields = pick(USER_FIELDS, incoming, stored)
    address = pick(ADDRESS_FIELDS, incoming.get("address") or {}, section(stored, "address"))
    return compose_user(fields, address)
