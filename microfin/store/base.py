"""Generic data-access protocol consumed by the engine and the reconciler."""

from typing import Any, Protocol

from microfin.models.base import enum_value

Row = dict[str, Any]
Filters = dict[str, Any]


class DataAccess(Protocol):
    """Table-and-filter CRUD over a relational store.

    Filters map column names to values. A list, tuple or set value matches
    any of its members, ``None`` matches NULL, anything else matches by
    equality. Every method raises ``StorageError`` (or its subclass
    ``ForeignKeyViolationError``) when the backend refuses the call.
    """

    def query(self, table: str, filters: Filters | None = None) -> list[Row]: ...

    def insert(self, table: str, row: Row) -> Row: ...

    def update(self, table: str, filters: Filters, patch: Row) -> int: ...

    def delete(self, table: str, filters: Filters) -> int: ...


def matches(row: Row, filters: Filters | None) -> bool:
    """Evaluate the filter semantics of ``DataAccess`` against one row."""
    if not filters:
        return True
    for column, expected in filters.items():
        actual = enum_value(row.get(column))
        if expected is None:
            if actual is not None:
                return False
        elif isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in {enum_value(v) for v in expected}:
                return False
        elif actual != enum_value(expected):
            return False
    return True
