from __future__ import annotations

import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..config.loader import Settings

"""Backend collaborator contract.

Two capabilities are required from the remote store:

(a) "execute arbitrary SQL" - a remote function (``exec_sql`` by default) that
    runs the supplied text verbatim; used for CREATE/ALTER/DROP TABLE and the
    generated bulk INSERT statements.
(b) row level CRUD - select / insert / update / delete / count on one table.

Implementations raise ``BackendError`` tagged with an ``ErrorKind`` so callers
never have to inspect message text to tell a missing capability apart from an
ordinary rejection.
"""

__all__ = [
    "ErrorKind",
    "BackendError",
    "Backend",
    "classify_error",
    "setup_sql",
    "create_backend",
]


class ErrorKind(Enum):
    CAPABILITY_MISSING = "capability_missing"
    REJECTED = "rejected"
    TRANSPORT = "transport"


class BackendError(Exception):
    def __init__(self, kind: ErrorKind, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code


# 42883 = undefined_function (PostgreSQL), PGRST202 = function not in PostgREST schema cache
CAPABILITY_MISSING_CODES = frozenset({"42883", "PGRST202"})
_MISSING_FUNCTION_RE = re.compile(
    r"function .* does not exist|could not find the function", re.IGNORECASE
)


def classify_error(code: str | None, message: str | None) -> ErrorKind:
    """Map a backend error to CAPABILITY_MISSING or REJECTED.

    Typed error codes decide first; the message match only covers servers
    that report a missing function without a code.
    """
    if code in CAPABILITY_MISSING_CODES:
        return ErrorKind.CAPABILITY_MISSING
    if not code and message and _MISSING_FUNCTION_RE.search(message):
        return ErrorKind.CAPABILITY_MISSING
    return ErrorKind.REJECTED


_SETUP_SQL_TEMPLATE = """\
-- Run once in the Supabase SQL editor (or psql) before importing.
CREATE OR REPLACE FUNCTION {schema}.{function}(query text)
RETURNS void
LANGUAGE plpgsql
SECURITY DEFINER
AS $$
BEGIN
  EXECUTE query;
  NOTIFY pgrst, 'reload schema';
END;
$$;

CREATE OR REPLACE FUNCTION {schema}.list_tables()
RETURNS TABLE (table_name text)
LANGUAGE sql
SECURITY DEFINER
AS $$
  SELECT t.table_name::text
  FROM information_schema.tables t
  WHERE t.table_schema = '{schema}' AND t.table_type = 'BASE TABLE'
  ORDER BY t.table_name;
$$;
"""


def setup_sql(function: str = "exec_sql", schema: str = "public") -> str:
    """SQL that installs the remote functions this tool relies on."""
    return _SETUP_SQL_TEMPLATE.format(function=function, schema=schema)


class Backend(ABC):
    """Remote relational store used by the import pipeline and table admin."""

    sql_function: str = "exec_sql"
    schema: str = "public"

    @abstractmethod
    def execute_sql(self, sql: str) -> None:
        """Run ``sql`` verbatim through the remote SQL function."""

    @abstractmethod
    def list_tables(self) -> list[str]:
        ...

    @abstractmethod
    def select_rows(self, table: str, *, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        """Rows ordered by ``id`` ascending."""

    @abstractmethod
    def count_rows(self, table: str) -> int:
        ...

    @abstractmethod
    def insert_row(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    def update_row(self, table: str, row_id: int, values: dict[str, Any]) -> dict[str, Any] | None:
        """Return the updated row, or None when no row has ``row_id``."""

    @abstractmethod
    def delete_row(self, table: str, row_id: int) -> bool:
        ...

    def setup_sql(self) -> str:
        return setup_sql(self.sql_function, self.schema)

    def close(self) -> None:  # noqa: B027 - optional hook
        pass

    def __enter__(self) -> Backend:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def create_backend(settings: Settings) -> Backend:
    """Build the backend selected by ``settings.backend``.

    Connection details are resolved here (environment first, config second);
    nothing is contacted until the first call.
    """
    from ..config.loader import resolve_dsn, resolve_supabase_credentials

    if settings.backend == "postgres":
        from .postgres import PostgresBackend

        return PostgresBackend(
            resolve_dsn(settings), schema=settings.schema, sql_function=settings.sql_function
        )

    from .supabase_backend import SupabaseBackend

    url, key = resolve_supabase_credentials(settings)
    return SupabaseBackend.from_credentials(
        url, key, schema=settings.schema, sql_function=settings.sql_function
    )
