from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from ..models.table_spec import TableSpec
from ..naming import IDENTIFIER_RE

"""SQL text generation for the "execute SQL" remote capability.

The statement shapes are an external compatibility contract and are produced
verbatim:

    CREATE TABLE <name> (id BIGINT PRIMARY KEY GENERATED ALWAYS AS IDENTITY,
        <col> TEXT, ..., created_at TIMESTAMP WITH TIME ZONE DEFAULT TIMEZONE('utc', NOW()));
    INSERT INTO <name> (<cols>) VALUES (<v1>), (<v2>), ...;

Identifiers are never quoted, so every identifier passed in must already be
sanitized (checked here with IDENTIFIER_RE).
"""

__all__ = [
    "NULL",
    "sql_literal",
    "create_table_sql",
    "insert_sql",
    "drop_table_sql",
    "add_column_sql",
    "drop_column_sql",
]

NULL = "NULL"

_ID_COLUMN = "id BIGINT PRIMARY KEY GENERATED ALWAYS AS IDENTITY"
_CREATED_AT_COLUMN = "created_at TIMESTAMP WITH TIME ZONE DEFAULT TIMEZONE('utc', NOW())"


def _ident(name: str) -> str:
    if not IDENTIFIER_RE.match(name):
        raise ValueError(f"unsanitized identifier: {name!r}")
    return name


def _quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def sql_literal(value: Any) -> str:
    """Render one cell value as a SQL literal.

    None / NaN -> NULL. Every other value becomes a single-quoted text literal
    (embedded quotes doubled) since all target columns are TEXT: integral
    floats lose the trailing ``.0``, dates and times use ISO format. Empty
    strings and 0 are kept.
    """
    if value is None:
        return NULL
    if isinstance(value, bool):
        return _quote("TRUE" if value else "FALSE")
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return NULL
        # 1.0 -> '1' (Excel stores integers as floats)
        return _quote(str(int(value)) if value.is_integer() else repr(value))
    if isinstance(value, Decimal):
        return NULL if value.is_nan() else _quote(str(value))
    if isinstance(value, (datetime, date, time)):
        return _quote(value.isoformat())
    return _quote(str(value))


def create_table_sql(spec: TableSpec) -> str:
    parts = [_ID_COLUMN]
    parts.extend(f"{_ident(c)} TEXT" for c in spec.column_names)
    parts.append(_CREATED_AT_COLUMN)
    return f"CREATE TABLE {_ident(spec.name)} ({', '.join(parts)});"


def insert_sql(table: str, columns: Sequence[str], rows: Iterable[Mapping[str, Any]]) -> str:
    """Build one bulk INSERT for ``rows`` keyed by (sanitized) column name.

    Columns missing from a row are emitted as NULL.
    """
    cols = ", ".join(_ident(c) for c in columns)
    values = ", ".join(
        "(" + ", ".join(sql_literal(row.get(c)) for c in columns) + ")" for row in rows
    )
    if not values:
        raise ValueError("insert_sql requires at least one row")
    return f"INSERT INTO {_ident(table)} ({cols}) VALUES {values};"


def drop_table_sql(table: str) -> str:
    return f"DROP TABLE {_ident(table)};"


def add_column_sql(table: str, column: str) -> str:
    return f"ALTER TABLE {_ident(table)} ADD COLUMN {_ident(column)} TEXT;"


def drop_column_sql(table: str, column: str) -> str:
    return f"ALTER TABLE {_ident(table)} DROP COLUMN {_ident(column)};"
