"""PostgreSQL implementation of the data-access protocol."""

from __future__ import annotations

import logging
import uuid
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from microfin.config import PostgresConfig
from microfin.exceptions import ForeignKeyViolationError, StorageError
from microfin.models.base import enum_value
from microfin.store.base import Filters, Row
from microfin.store.schema import TABLES

logger = logging.getLogger(__name__)

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS groups (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    contact_person_id TEXT,
    loan_officer_id TEXT,
    created_at TIMESTAMP DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS members (
    id TEXT PRIMARY KEY,
    full_name TEXT NOT NULL,
    phone_number TEXT,
    group_id TEXT REFERENCES groups(id),
    status TEXT DEFAULT 'active',
    created_at TIMESTAMP DEFAULT NOW()
);

DO $$
BEGIN
    IF NOT EXISTS (
        SELECT 1 FROM pg_constraint WHERE conname = 'groups_contact_person_id_fkey'
    ) THEN
        ALTER TABLE groups ADD CONSTRAINT groups_contact_person_id_fkey
            FOREIGN KEY (contact_person_id) REFERENCES members(id);
    END IF;
END $$;

CREATE TABLE IF NOT EXISTS loans (
    id TEXT PRIMARY KEY,
    member_id TEXT NOT NULL REFERENCES members(id),
    principal_amount NUMERIC(15,2) NOT NULL,
    interest_disbursed NUMERIC(15,2) NOT NULL DEFAULT 0,
    loan_program TEXT,
    issue_date DATE,
    total_paid NUMERIC(15,2) NOT NULL DEFAULT 0,
    current_balance NUMERIC(15,2),
    status TEXT NOT NULL DEFAULT 'active',
    is_deleted BOOLEAN DEFAULT false,
    deleted_at TIMESTAMP,
    deleted_by TEXT,
    created_at TIMESTAMP DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS loan_payments (
    id TEXT PRIMARY KEY,
    loan_id TEXT NOT NULL REFERENCES loans(id),
    installment_number INTEGER NOT NULL,
    amount NUMERIC(15,2) NOT NULL CHECK (amount > 0),
    payment_date DATE NOT NULL DEFAULT CURRENT_DATE,
    payment_reference TEXT NOT NULL UNIQUE,
    notes TEXT,
    created_at TIMESTAMP DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS loan_installments (
    id TEXT PRIMARY KEY,
    loan_id TEXT NOT NULL REFERENCES loans(id),
    installment_number INTEGER NOT NULL,
    due_date DATE,
    amount NUMERIC(15,2),
    status TEXT
);

CREATE TABLE IF NOT EXISTS communication_logs (
    id TEXT PRIMARY KEY,
    loan_id TEXT REFERENCES loans(id),
    member_id TEXT,
    message TEXT,
    created_at TIMESTAMP DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS realizable_assets (
    id TEXT PRIMARY KEY,
    loan_id TEXT REFERENCES loans(id),
    member_id TEXT,
    description TEXT,
    value NUMERIC(15,2)
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    loan_id TEXT REFERENCES loans(id),
    amount NUMERIC(15,2),
    description TEXT,
    created_at TIMESTAMP DEFAULT NOW()
);
"""


class PostgresDataStore:
    """``DataAccess`` over a PostgreSQL database using psycopg 3.

    Each call runs in its own autocommit statement; there is no
    multi-statement transaction, matching the hosted query client.
    """

    def __init__(self, conninfo: str | PostgresConfig) -> None:
        """Initialize the store.

        Parameters
        ----------
        conninfo : str | PostgresConfig
            Connection string or ``PostgresConfig``.
        """
        if isinstance(conninfo, PostgresConfig):
            conninfo = conninfo.connection_string
        self.conninfo = conninfo
        self._conn: psycopg.Connection | None = None

    @property
    def connection(self) -> psycopg.Connection:
        """Lazily opened autocommit connection returning dict rows."""
        if self._conn is None or self._conn.closed:
            try:
                self._conn = psycopg.connect(self.conninfo, autocommit=True, row_factory=dict_row)
            except psycopg.Error as e:
                raise StorageError(f"connection failed: {e}") from e
        return self._conn

    def close(self) -> None:
        """Close the underlying connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> PostgresDataStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def query(self, table: str, filters: Filters | None = None) -> list[Row]:
        where, params = self._where(filters)
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(table)) + where
        with self._cursor() as cur:
            self._execute(cur, query, params)
            return list(cur.fetchall())

    def insert(self, table: str, row: Row) -> Row:
        values = {key: enum_value(value) for key, value in row.items()}
        if values.get("id") is None:
            values["id"] = uuid.uuid4().hex

        columns = list(values)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        )
        with self._cursor() as cur:
            self._execute(cur, query, [values[c] for c in columns])
            return cur.fetchone()

    def update(self, table: str, filters: Filters, patch: Row) -> int:
        if not patch:
            return 0
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in patch
        )
        where, params = self._where(filters)
        query = sql.SQL("UPDATE {} SET ").format(sql.Identifier(table)) + assignments + where
        with self._cursor() as cur:
            self._execute(cur, query, [enum_value(v) for v in patch.values()] + params)
            return cur.rowcount

    def delete(self, table: str, filters: Filters) -> int:
        where, params = self._where(filters)
        query = sql.SQL("DELETE FROM {}").format(sql.Identifier(table)) + where
        with self._cursor() as cur:
            self._execute(cur, query, params)
            return cur.rowcount

    def create_schema(self) -> None:
        """Create all tables and constraints if they do not exist."""
        with self._cursor() as cur:
            self._execute(cur, SCHEMA_DDL, None)
        logger.info("Schema ready (%d tables)", len(TABLES))

    def truncate(self) -> None:
        """Remove every row from every table."""
        query = sql.SQL("TRUNCATE {} CASCADE").format(
            sql.SQL(", ").join(sql.Identifier(t) for t in TABLES)
        )
        with self._cursor() as cur:
            self._execute(cur, query, [])

    def summary(self) -> dict[str, int]:
        """Return row counts per table."""
        counts: dict[str, int] = {}
        with self._cursor() as cur:
            for table in TABLES:
                self._execute(
                    cur, sql.SQL("SELECT COUNT(*) AS n FROM {}").format(sql.Identifier(table)), []
                )
                counts[table] = cur.fetchone()["n"]
        return counts

    def _cursor(self) -> psycopg.Cursor:
        return self.connection.cursor()

    def _execute(self, cur: psycopg.Cursor, query: Any, params: list[Any] | None) -> None:
        try:
            cur.execute(query, params or None)
        except psycopg.errors.ForeignKeyViolation as e:
            raise ForeignKeyViolationError(str(e)) from e
        except psycopg.Error as e:
            raise StorageError(str(e)) from e

    @staticmethod
    def _where(filters: Filters | None) -> tuple[sql.Composable, list[Any]]:
        """Build a WHERE clause following the ``DataAccess`` filter semantics."""
        if not filters:
            return sql.SQL(""), []

        clauses: list[sql.Composable] = []
        params: list[Any] = []
        for column, value in filters.items():
            ident = sql.Identifier(column)
            if value is None:
                clauses.append(sql.SQL("{} IS NULL").format(ident))
            elif isinstance(value, (list, tuple, set, frozenset)):
                values = [enum_value(v) for v in value]
                if not values:
                    clauses.append(sql.SQL("FALSE"))
                    continue
                clauses.append(sql.SQL("{} = ANY(%s)").format(ident))
                params.append(values)
            else:
                clauses.append(sql.SQL("{} = %s").format(ident))
                params.append(enum_value(value))

        return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), params
