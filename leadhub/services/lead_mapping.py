"""Map platform lead payloads onto canonical lead fields.

A mapping is a dict of ``canonical_field -> source_path`` where the source path
is a dot-separated walk into the payload (``"contact.address.city"``). Fields
whose path does not resolve are omitted from the result rather than set to
``None``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

MISSING = object()


def get_nested_value(payload: Any, path: str) -> Any:
    current = payload
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return MISSING
        current = current[key]
    return current


def map_lead_data(source: Mapping[str, Any] | None, mapping: Mapping[str, str] | None) -> dict:
    mapped: dict[str, Any] = {}
    if not source or not mapping:
        return mapped
    for target_field, source_path in mapping.items():
        if not isinstance(source_path, str) or not source_path:
            continue
        value = get_nested_value(source, source_path)
        if value is not MISSING:
            mapped[target_field] = value
    return mapped


def flatten_field_data(field_data: list | None) -> dict:
    """Flatten Meta ``field_data`` entries, keeping the first value of each."""
    flattened: dict[str, Any] = {}
    for field in field_data or []:
        if not isinstance(field, Mapping):
            continue
        name = field.get("name")
        values = field.get("values") or []
        if name and values:
            flattened[name] = values[0]
    return flattened


def flatten_user_column_data(columns: list | None) -> dict:
    """Flatten Google lead form ``user_column_data`` keyed by lower-cased column id."""
    flattened: dict[str, Any] = {}
    for column in columns or []:
        if isinstance(column, Mapping):
            column_id = column.get("column_id")
            value = column.get("string_value")
        else:
            column_id = getattr(column, "column_id", None)
            value = getattr(column, "string_value", None)
        if column_id and value is not None:
            flattened[str(column_id).lower()] = value
    return flattened
