"""Id parsing, lookup, ordering and paging helpers shared by the services."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, TypeVar

from fastapi import HTTPException

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT")


def coerce_uuid(value: Any) -> uuid.UUID | None:
    if value is None or isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def try_uuid(value: Any) -> uuid.UUID | None:
    """Parse an id taken from a path or payload; anything malformed is None."""
    try:
        return coerce_uuid(value)
    except (TypeError, ValueError):
        return None


def apply_ordering(query, order_by: str, order_dir: str, allowed_columns: dict):
    column = allowed_columns.get(order_by)
    if column is None:
        allowed = ", ".join(sorted(allowed_columns))
        raise HTTPException(
            status_code=400,
            detail=f"Cannot order by '{order_by}'; use one of: {allowed}",
        )
    return query.order_by(column.desc() if order_dir == "desc" else column.asc())


def apply_pagination(query, limit: int, offset: int):
    return query.offset(offset).limit(limit)


def validate_enum(value, enum_cls, label: str):
    """Turn a query-string value into ``enum_cls``; unknown values are a 400."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_cls)
        raise HTTPException(
            status_code=400,
            detail=f"Unknown {label} '{value}'; expected one of: {choices}",
        ) from exc


def get_or_404(db: Session, model: type[ModelT], id, detail: str | None = None) -> ModelT:
    entity_id = try_uuid(id)
    entity = db.get(model, entity_id) if entity_id is not None else None
    if entity is None:
        raise HTTPException(status_code=404, detail=detail or f"{model.__name__} not found")
    return entity


def list_response(items: list, limit: int, offset: int) -> dict:
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


class ListResponseMixin:
    """``list_response`` for managers whose ``list`` ends with ``limit, offset``."""

    @classmethod
    def list_response(cls, db, *args, limit: int | None = None, offset: int | None = None, **filters):
        if limit is None or offset is None:
            *args, limit, offset = args
        items = cls.list(db, *args, limit=limit, offset=offset, **filters)
        return list_response(items, limit, offset)
