"""
crudkit Backend — Record Capabilities
======================================

What:  Behaviour every persisted resource exposes to the generic controller.
Why:   ResourceController must shape records and build store queries without
       knowing which entity it serves. Models opt in by mixing in
       ResourceRecord next to the declarative Base.

Capabilities:
    to_response(schema)  → dict shaped by a pydantic response model
    to_query(filters)    → {column: value} restricted to real columns
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Type

from pydantic import BaseModel
from sqlalchemy import inspect

from crudkit.core.text import camel_to_snake


class RecordStatus(str, enum.Enum):
    """Lifecycle marker stored on every resource row. Deletes only set DELETED."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


def new_uid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ResourceRecord:
    """Mixin implementing the record capability interface for ORM models."""

    def to_response(self, schema: Type[BaseModel]) -> Dict[str, Any]:
        """Shape this record with a response model (camelCase, JSON-safe values)."""
        return schema.model_validate(self, from_attributes=True).model_dump(
            mode="json", by_alias=True
        )

    @classmethod
    def column_names(cls) -> set:
        return {column.key for column in inspect(cls).column_attrs}

    @classmethod
    def to_query(cls, filters: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Convert a query-string filter into column conditions.

        Keys may be camelCase (`userId`) or snake_case (`user_id`); keys that
        don't name a column are dropped so clients cannot probe arbitrary
        attributes.
        """
        columns = cls.column_names()
        query: Dict[str, Any] = {}
        for key, value in filters.items():
            column = camel_to_snake(key)
            if column in columns:
                query[column] = value.value if isinstance(value, enum.Enum) else value
        return query

    def apply(self, values: Mapping[str, Any]) -> None:
        """Copy known column values onto this record."""
        columns = self.column_names()
        for key, value in values.items():
            column = camel_to_snake(key)
            if column in columns:
                setattr(self, column, value)
