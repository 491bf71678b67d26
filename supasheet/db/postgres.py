from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import psycopg2
import psycopg2.extras
from psycopg2 import sql

from .backend import Backend, BackendError, ErrorKind, classify_error

"""Direct PostgreSQL backend (psycopg2).

The "execute SQL" capability is still reached through the remote function
(``SELECT <schema>.exec_sql(%s)``) so that a database without the function
reports CAPABILITY_MISSING (SQLSTATE 42883) exactly like the Supabase RPC path.

The connection runs in autocommit mode: every statement (and so every INSERT
batch) commits on its own; earlier batches stay committed when a later one fails.
"""

__all__ = [
    "PostgresBackend",
]

logger = logging.getLogger(__name__)


class PostgresBackend(Backend):
    def __init__(
        self,
        dsn: str,
        *,
        schema: str = "public",
        sql_function: str = "exec_sql",
        connect: Callable[[str], Any] = psycopg2.connect,
    ) -> None:
        self.dsn = dsn
        self.schema = schema
        self.sql_function = sql_function
        self._connect = connect
        self._conn: Any | None = None

    @property
    def conn(self) -> Any:
        if self._conn is None or self._conn.closed:
            try:
                self._conn = self._connect(self.dsn)
            except psycopg2.Error as e:
                raise BackendError(ErrorKind.TRANSPORT, f"connection failed: {e}") from e
            self._conn.autocommit = True
            logger.debug("postgres connection opened")
        return self._conn

    def close(self) -> None:
        if self._conn is not None and not self._conn.closed:
            self._conn.close()
        self._conn = None

    def _run(self, query: Any, params: Any = None, *, fetch: bool = False) -> list[dict[str, Any]]:
        try:
            with self.conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                if fetch:
                    return [dict(r) for r in cur.fetchall()]
                return []
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise BackendError(ErrorKind.TRANSPORT, str(e).strip()) from e
        except psycopg2.Error as e:
            message = (e.pgerror or str(e)).strip()
            raise BackendError(classify_error(e.pgcode, message), message, code=e.pgcode) from e

    def _table(self, table: str) -> sql.Composed:
        return sql.SQL("{}.{}").format(sql.Identifier(self.schema), sql.Identifier(table))

    def execute_sql(self, text: str) -> None:
        query = sql.SQL("SELECT {}.{}(%s)").format(
            sql.Identifier(self.schema), sql.Identifier(self.sql_function)
        )
        self._run(query, (text,))

    def list_tables(self) -> list[str]:
        rows = self._run(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s AND table_type = 'BASE TABLE' ORDER BY table_name",
            (self.schema,),
            fetch=True,
        )
        return [r["table_name"] for r in rows]

    def select_rows(self, table: str, *, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        query = sql.SQL("SELECT * FROM {} ORDER BY id LIMIT %s OFFSET %s").format(self._table(table))
        return self._run(query, (limit, offset), fetch=True)

    def count_rows(self, table: str) -> int:
        query = sql.SQL("SELECT count(*) AS n FROM {}").format(self._table(table))
        return int(self._run(query, fetch=True)[0]["n"])

    def insert_row(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        cols = list(values)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            self._table(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in cols),
            sql.SQL(", ").join(sql.Placeholder() for _ in cols),
        )
        return self._run(query, [values[c] for c in cols], fetch=True)[0]

    def update_row(self, table: str, row_id: int, values: dict[str, Any]) -> dict[str, Any] | None:
        cols = list(values)
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
            self._table(table),
            sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(c)) for c in cols
            ),
        )
        rows = self._run(query, [*(values[c] for c in cols), row_id], fetch=True)
        return rows[0] if rows else None

    def delete_row(self, table: str, row_id: int) -> bool:
        query = sql.SQL("DELETE FROM {} WHERE id = %s RETURNING id").format(self._table(table))
        return bool(self._run(query, (row_id,), fetch=True))
