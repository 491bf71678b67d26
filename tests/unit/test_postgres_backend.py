from __future__ import annotations

from unittest.mock import MagicMock

import psycopg2
import pytest

from supasheet.db.backend import BackendError, ErrorKind
from supasheet.db.postgres import PostgresBackend


class FakePgError(psycopg2.ProgrammingError):
    """ProgrammingError whose pgcode / pgerror can be set in tests."""

    def __init__(self, message: str, code: str | None) -> None:
        super().__init__(message)
        self._code = code
        self._message = message

    @property
    def pgcode(self):  # type: ignore[override]
        return self._code

    @property
    def pgerror(self):  # type: ignore[override]
        return self._message


def _backend(cursor: MagicMock) -> tuple[PostgresBackend, MagicMock]:
    conn = MagicMock()
    conn.closed = 0
    conn.cursor.return_value.__enter__.return_value = cursor
    connect = MagicMock(return_value=conn)
    return PostgresBackend("dbname=test", connect=connect), connect


def test_execute_sql_calls_remote_function():
    cur = MagicMock()
    backend, connect = _backend(cur)
    backend.execute_sql("CREATE TABLE t (id BIGINT);")
    connect.assert_called_once_with("dbname=test")
    (query, params), _ = cur.execute.call_args
    assert params == ("CREATE TABLE t (id BIGINT);",)
    assert backend.conn.autocommit is True


def test_connection_is_reused_and_closed():
    cur = MagicMock()
    cur.fetchall.return_value = [{"table_name": "a"}, {"table_name": "b"}]
    backend, connect = _backend(cur)
    assert backend.list_tables() == ["a", "b"]
    backend.list_tables()
    assert connect.call_count == 1
    conn = backend.conn
    backend.close()
    conn.close.assert_called_once()


def test_missing_function_is_capability_missing():
    cur = MagicMock()
    cur.execute.side_effect = FakePgError("function public.exec_sql(unknown) does not exist", "42883")
    backend, _ = _backend(cur)
    with pytest.raises(BackendError) as e:
        backend.execute_sql("SELECT 1;")
    assert e.value.kind is ErrorKind.CAPABILITY_MISSING
    assert e.value.code == "42883"


def test_other_error_is_rejected():
    cur = MagicMock()
    cur.execute.side_effect = FakePgError('relation "t" already exists', "42P07")
    backend, _ = _backend(cur)
    with pytest.raises(BackendError) as e:
        backend.execute_sql("CREATE TABLE t (id BIGINT);")
    assert e.value.kind is ErrorKind.REJECTED


def test_connect_failure_is_transport():
    connect = MagicMock(side_effect=psycopg2.OperationalError("could not connect"))
    backend = PostgresBackend("dbname=test", connect=connect)
    with pytest.raises(BackendError) as e:
        backend.execute_sql("SELECT 1;")
    assert e.value.kind is ErrorKind.TRANSPORT


def test_crud_returns_rows():
    cur = MagicMock()
    backend, _ = _backend(cur)
    cur.fetchall.return_value = [{"id": 1, "name": "Ada"}]
    assert backend.insert_row("people", {"name": "Ada"}) == {"id": 1, "name": "Ada"}
    cur.fetchall.return_value = []
    assert backend.update_row("people", 5, {"name": "x"}) is None
    assert backend.delete_row("people", 5) is False
    cur.fetchall.return_value = [{"n": 7}]
    assert backend.count_rows("people") == 7
