"""In-memory relational store with referential integrity."""

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any

from microfin.exceptions import ForeignKeyViolationError, StorageError
from microfin.models.base import enum_value
from microfin.store.base import Filters, Row, matches
from microfin.store.schema import FOREIGN_KEYS, TABLES, UNIQUE_COLUMNS, ForeignKey


@dataclass
class InMemoryDataStore:
    """Dict-backed implementation of ``DataAccess``.

    Behaves like the hosted database for the parts the core relies on:
    foreign keys are checked on insert and update, deletes of referenced
    rows are restricted, and unique columns are enforced. Rows are copied
    in and out so callers never share state with the store.
    """

    foreign_keys: tuple[ForeignKey, ...] = FOREIGN_KEYS
    unique_columns: dict[str, tuple[str, ...]] = field(default_factory=lambda: dict(UNIQUE_COLUMNS))
    tables: dict[str, dict[str, Row]] = field(
        default_factory=lambda: {name: {} for name in TABLES}
    )

    def query(self, table: str, filters: Filters | None = None) -> list[Row]:
        """Return copies of all rows in ``table`` matching ``filters``."""
        rows = self._table(table)
        return [copy.deepcopy(row) for row in rows.values() if matches(row, filters)]

    def insert(self, table: str, row: Row) -> Row:
        """Insert a row, assigning an ``id`` when it has none."""
        rows = self._table(table)
        new_row = {key: enum_value(value) for key, value in row.items()}
        new_row.setdefault("id", None)
        if new_row["id"] is None:
            new_row["id"] = uuid.uuid4().hex

        if new_row["id"] in rows:
            raise StorageError(f"duplicate key value violates unique constraint \"{table}_pkey\"")

        self._check_unique(table, new_row)
        self._check_references(table, new_row)

        rows[new_row["id"]] = new_row
        return copy.deepcopy(new_row)

    def update(self, table: str, filters: Filters, patch: Row) -> int:
        """Apply ``patch`` to every matching row; return the number updated."""
        if "id" in patch:
            raise StorageError(f"Primary key of {table} cannot be updated")

        rows = self._table(table)
        clean_patch = {key: enum_value(value) for key, value in patch.items()}
        targets = [row for row in rows.values() if matches(row, filters)]

        # Validate every row before mutating any of them
        for row in targets:
            candidate = {**row, **clean_patch}
            self._check_unique(table, candidate)
            self._check_references(table, candidate)

        for row in targets:
            row.update(clean_patch)
        return len(targets)

    def delete(self, table: str, filters: Filters) -> int:
        """Delete every matching row; return the number deleted.

        Raises ``ForeignKeyViolationError`` without deleting anything when
        another row still references one of the targets.
        """
        rows = self._table(table)
        target_ids = [row_id for row_id, row in rows.items() if matches(row, filters)]

        for fk in self.foreign_keys:
            if fk.ref_table != table:
                continue
            referenced = {rows[row_id].get(fk.ref_column) for row_id in target_ids}
            for child in self._table(fk.table).values():
                if fk.table == table and child["id"] in target_ids:
                    continue
                if child.get(fk.column) is not None and child.get(fk.column) in referenced:
                    raise ForeignKeyViolationError(
                        f"update or delete on table \"{table}\" violates foreign key constraint "
                        f"\"{fk.table}_{fk.column}_fkey\" on table \"{fk.table}\""
                    )

        for row_id in target_ids:
            del rows[row_id]
        return len(target_ids)

    def truncate(self) -> None:
        """Remove every row from every table."""
        for rows in self.tables.values():
            rows.clear()

    def summary(self) -> dict[str, int]:
        """Return row counts per table."""
        return {name: len(rows) for name, rows in self.tables.items()}

    def _table(self, table: str) -> dict[str, Row]:
        try:
            return self.tables[table]
        except KeyError:
            raise StorageError(f"relation \"{table}\" does not exist") from None

    def _check_unique(self, table: str, row: Row) -> None:
        for column in self.unique_columns.get(table, ()):
            value = row.get(column)
            if value is None:
                continue
            for other in self._table(table).values():
                if other["id"] != row["id"] and other.get(column) == value:
                    raise StorageError(
                        f"duplicate key value violates unique constraint \"{table}_{column}_key\""
                    )

    def _check_references(self, table: str, row: Row) -> None:
        for fk in self.foreign_keys:
            if fk.table != table:
                continue
            value: Any = row.get(fk.column)
            if value is None:
                continue
            parents = self._table(fk.ref_table)
            if not any(parent.get(fk.ref_column) == value for parent in parents.values()):
                raise ForeignKeyViolationError(
                    f"insert or update on table \"{table}\" violates foreign key constraint "
                    f"\"{table}_{fk.column}_fkey\": {fk.ref_table} {value} not found"
                )
