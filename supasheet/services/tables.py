from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..db.backend import Backend, BackendError, ErrorKind
from ..db.sql import add_column_sql, drop_column_sql, drop_table_sql
from ..errors import (
    BackendConnectionError,
    CapabilityMissingError,
    ImportToolError,
    RowError,
    ValidationError,
)
from ..models.table_spec import TableSpec
from ..naming import IMPLICIT_COLUMNS, validate_identifier
from .provisioner import ddl_error, provision_table

"""Table and row administration.

DDL (create / drop table, add / drop column) goes through the remote SQL
function; row operations use the backend's CRUD capability. Every user
supplied table or column name is sanitized the same way the import pipeline
sanitizes sheet names and headers.
"""

__all__ = [
    "list_tables",
    "create_table",
    "drop_table",
    "add_column",
    "drop_column",
    "list_rows",
    "count_rows",
    "add_row",
    "update_row",
    "delete_row",
]

logger = logging.getLogger(__name__)


def _row_error(backend: Backend, e: BackendError, context: str) -> ImportToolError:
    if e.kind is ErrorKind.CAPABILITY_MISSING:
        return CapabilityMissingError(
            f"{context}: required remote function is not installed ({e.message})",
            setup_sql=backend.setup_sql(),
        )
    if e.kind is ErrorKind.TRANSPORT:
        return BackendConnectionError(f"{context}: {e.message}")
    return RowError(f"{context}: {e.message}")


def _execute_ddl(backend: Backend, statement: str, context: str) -> None:
    logger.debug(f"ddl: {statement}")
    try:
        backend.execute_sql(statement)
    except BackendError as e:
        raise ddl_error(backend, e, context) from e


def _clean_values(values: Mapping[str, Any]) -> dict[str, Any]:
    """Sanitize column keys and drop blank values (stripped strings)."""
    cleaned: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        elif value is None:
            continue
        column = validate_identifier(key, kind="column")
        if column in IMPLICIT_COLUMNS:
            raise ValidationError(f"column '{column}' is managed by the database")
        cleaned[column] = value
    return cleaned


def list_tables(backend: Backend) -> list[str]:
    try:
        return backend.list_tables()
    except BackendError as e:
        raise _row_error(backend, e, "list tables") from e


def create_table(backend: Backend, name: str, columns: Sequence[str]) -> TableSpec:
    """Create an empty table from a name and a list of column names."""
    table = validate_identifier(name, kind="table")
    column_names = [c.strip() for c in columns if c and c.strip()]
    if not column_names:
        raise ValidationError("at least one column is required")
    spec = TableSpec.from_names(table, column_names)
    provision_table(backend, spec)
    return spec


def drop_table(backend: Backend, name: str) -> str:
    table = validate_identifier(name, kind="table")
    _execute_ddl(backend, drop_table_sql(table), f"drop table '{table}'")
    logger.info(f"table dropped: {table}")
    return table


def add_column(backend: Backend, table: str, column: str) -> str:
    table = validate_identifier(table, kind="table")
    col = validate_identifier(column, kind="column")
    if col in IMPLICIT_COLUMNS:
        raise ValidationError(f"column '{col}' already exists on every table")
    _execute_ddl(backend, add_column_sql(table, col), f"add column '{col}' to '{table}'")
    logger.info(f"column added: {table}.{col}")
    return col


def drop_column(backend: Backend, table: str, column: str) -> str:
    table = validate_identifier(table, kind="table")
    col = validate_identifier(column, kind="column")
    if col in IMPLICIT_COLUMNS:
        raise ValidationError(f"column '{col}' cannot be dropped")
    _execute_ddl(backend, drop_column_sql(table, col), f"drop column '{col}' from '{table}'")
    logger.info(f"column dropped: {table}.{col}")
    return col


def list_rows(backend: Backend, table: str, *, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
    if limit < 1:
        raise ValidationError(f"limit must be positive: {limit}")
    table = validate_identifier(table, kind="table")
    try:
        return backend.select_rows(table, limit=limit, offset=offset)
    except BackendError as e:
        raise _row_error(backend, e, f"select from '{table}'") from e


def count_rows(backend: Backend, table: str) -> int:
    table = validate_identifier(table, kind="table")
    try:
        return backend.count_rows(table)
    except BackendError as e:
        raise _row_error(backend, e, f"count '{table}'") from e


def add_row(backend: Backend, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
    table = validate_identifier(table, kind="table")
    data = _clean_values(values)
    if not data:
        raise ValidationError("fill in at least one field")
    try:
        row = backend.insert_row(table, data)
    except BackendError as e:
        raise _row_error(backend, e, f"insert into '{table}'") from e
    logger.info(f"row added to {table}")
    return row


def update_row(backend: Backend, table: str, row_id: int, values: Mapping[str, Any]) -> dict[str, Any]:
    """Update ``row_id``; blank values are left unchanged."""
    table = validate_identifier(table, kind="table")
    data = _clean_values(values)
    if not data:
        raise ValidationError("nothing to update")
    try:
        row = backend.update_row(table, row_id, data)
    except BackendError as e:
        raise _row_error(backend, e, f"update '{table}' id={row_id}") from e
    if row is None:
        raise RowError(f"update '{table}': no row with id={row_id}")
    logger.info(f"row updated: {table} id={row_id}")
    return row


def delete_row(backend: Backend, table: str, row_id: int) -> None:
    table = validate_identifier(table, kind="table")
    try:
        deleted = backend.delete_row(table, row_id)
    except BackendError as e:
        raise _row_error(backend, e, f"delete from '{table}' id={row_id}") from e
    if not deleted:
        raise RowError(f"delete from '{table}': no row with id={row_id}")
    logger.info(f"row deleted: {table} id={row_id}")
