"""Tests for PostgresDataStore with a mocked psycopg connection."""

from unittest.mock import MagicMock, patch

import psycopg
import pytest

from microfin.config import PostgresConfig
from microfin.exceptions import ForeignKeyViolationError, StorageError
from microfin.store.postgres import SCHEMA_DDL, PostgresDataStore


@pytest.fixture
def mock_conn():
    """Patch psycopg.connect and yield (connect, cursor) mocks."""
    with patch("microfin.store.postgres.psycopg.connect") as mock_connect:
        conn = MagicMock()
        conn.closed = False
        cursor = MagicMock()
        conn.cursor.return_value.__enter__.return_value = cursor
        mock_connect.return_value = conn
        yield mock_connect, cursor


class TestPostgresDataStore:
    """Tests for PostgresDataStore."""

    def test_accepts_config(self) -> None:
        store = PostgresDataStore(PostgresConfig(host="db", database="mf"))
        assert store.conninfo == "postgresql://postgres:postgres@db:5432/mf"

    def test_lazy_connect(self, mock_conn) -> None:
        mock_connect, _ = mock_conn
        store = PostgresDataStore("postgresql://localhost/mf")
        mock_connect.assert_not_called()

        store.query("loans")
        mock_connect.assert_called_once()
        assert mock_connect.call_args.kwargs["autocommit"] is True

    def test_query_params(self, mock_conn) -> None:
        _, cursor = mock_conn
        cursor.fetchall.return_value = [{"id": "loan-001"}]
        store = PostgresDataStore("postgresql://localhost/mf")

        rows = store.query("loans", {"member_id": "mem-001", "id": ["a", "b"], "deleted_at": None})

        assert rows == [{"id": "loan-001"}]
        _, params = cursor.execute.call_args.args
        assert params == ["mem-001", ["a", "b"]]

    def test_query_without_filters(self, mock_conn) -> None:
        _, cursor = mock_conn
        cursor.fetchall.return_value = []
        PostgresDataStore("postgresql://localhost/mf").query("members")

        _, params = cursor.execute.call_args.args
        assert params is None

    def test_insert_assigns_id(self, mock_conn) -> None:
        _, cursor = mock_conn
        cursor.fetchone.return_value = {"id": "x", "name": "Umoja"}
        store = PostgresDataStore("postgresql://localhost/mf")

        assert store.insert("groups", {"name": "Umoja"}) == {"id": "x", "name": "Umoja"}
        _, params = cursor.execute.call_args.args
        assert params[0] == "Umoja"
        assert len(params[1]) == 32

    def test_update_returns_rowcount(self, mock_conn) -> None:
        _, cursor = mock_conn
        cursor.rowcount = 3
        store = PostgresDataStore("postgresql://localhost/mf")

        assert store.update("transactions", {"loan_id": "loan-001"}, {"loan_id": None}) == 3
        _, params = cursor.execute.call_args.args
        assert params == [None, "loan-001"]

    def test_empty_patch_is_noop(self, mock_conn) -> None:
        _, cursor = mock_conn
        assert PostgresDataStore("postgresql://localhost/mf").update("loans", {"id": "a"}, {}) == 0
        cursor.execute.assert_not_called()

    def test_delete_returns_rowcount(self, mock_conn) -> None:
        _, cursor = mock_conn
        cursor.rowcount = 1
        assert PostgresDataStore("postgresql://localhost/mf").delete("loans", {"id": "a"}) == 1

    def test_foreign_key_violation_translated(self, mock_conn) -> None:
        _, cursor = mock_conn
        cursor.execute.side_effect = psycopg.errors.ForeignKeyViolation("violates foreign key constraint")
        store = PostgresDataStore("postgresql://localhost/mf")

        with pytest.raises(ForeignKeyViolationError, match="foreign key"):
            store.delete("members", {"id": "mem-001"})

    def test_other_errors_translated(self, mock_conn) -> None:
        _, cursor = mock_conn
        cursor.execute.side_effect = psycopg.OperationalError("connection lost")
        store = PostgresDataStore("postgresql://localhost/mf")

        with pytest.raises(StorageError, match="connection lost") as exc_info:
            store.query("loans")
        assert not isinstance(exc_info.value, ForeignKeyViolationError)

    def test_connect_failure(self) -> None:
        with patch("microfin.store.postgres.psycopg.connect", side_effect=psycopg.OperationalError("refused")):
            store = PostgresDataStore("postgresql://localhost/mf")
            with pytest.raises(StorageError, match="connection failed"):
                store.query("loans")

    def test_create_schema(self, mock_conn) -> None:
        _, cursor = mock_conn
        PostgresDataStore("postgresql://localhost/mf").create_schema()
        cursor.execute.assert_called_once_with(SCHEMA_DDL, None)

    def test_context_manager_closes(self, mock_conn) -> None:
        mock_connect, _ = mock_conn
        with PostgresDataStore("postgresql://localhost/mf") as store:
            store.query("loans")
        mock_connect.return_value.close.assert_called_once()
