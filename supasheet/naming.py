from __future__ import annotations

import re
from collections.abc import Iterable

from .errors import ValidationError

"""Identifier sanitation for generated table / column names.

Every function here is pure and idempotent; the output always matches
``^[a-z][a-z0-9_]*$`` so it can be embedded unquoted in generated DDL.
"""

__all__ = [
    "IDENTIFIER_RE",
    "IMPLICIT_COLUMNS",
    "MAX_IDENTIFIER_LENGTH",
    "sanitize_table_name",
    "sanitize_column_name",
    "unique_names",
    "validate_identifier",
]

IDENTIFIER_RE = re.compile(r"^[a-z][a-z0-9_]*$")
MAX_IDENTIFIER_LENGTH = 63  # PostgreSQL NAMEDATALEN - 1
TABLE_PREFIX = "t_"
COLUMN_PREFIX = "col_"
EMPTY_COLUMN = "column"
# CREATE TABLE が自動で付与する列
IMPLICIT_COLUMNS = frozenset({"id", "created_at"})

_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_RE = re.compile(r"[^a-z0-9_]")


def _clean(name: str) -> str:
    lowered = str(name).lower()
    return _INVALID_RE.sub("", _WHITESPACE_RE.sub("_", lowered))


def sanitize_table_name(name: str) -> str:
    """Convert arbitrary text into a table identifier.

    >>> sanitize_table_name("My Table!")
    'my_table'
    >>> sanitize_table_name("2024 sales")
    't_2024_sales'
    """
    cleaned = _clean(name)
    if not cleaned or not cleaned[0].isalpha():
        cleaned = TABLE_PREFIX + cleaned
    return cleaned[:MAX_IDENTIFIER_LENGTH]


def sanitize_column_name(name: str) -> str:
    """Convert a header cell into a column identifier.

    An entirely empty result becomes ``column``; a result that does not
    start with a letter is prefixed with ``col_``.
    """
    cleaned = _clean(name)
    if not cleaned:
        return EMPTY_COLUMN
    if not cleaned[0].isalpha():
        cleaned = COLUMN_PREFIX + cleaned
    return cleaned[:MAX_IDENTIFIER_LENGTH]


def unique_names(names: Iterable[str], reserved: Iterable[str] = IMPLICIT_COLUMNS) -> list[str]:
    """Suffix ``_2``, ``_3``... onto repeated (or reserved) sanitized names.

    Order is preserved and names that are already unique are left untouched.
    """
    taken = set(reserved)
    result: list[str] = []
    for name in names:
        candidate = name
        n = 2
        while candidate in taken:
            suffix = f"_{n}"
            candidate = name[: MAX_IDENTIFIER_LENGTH - len(suffix)] + suffix
            n += 1
        taken.add(candidate)
        result.append(candidate)
    return result


def validate_identifier(name: str, *, kind: str = "table") -> str:
    """Sanitize a user supplied name, rejecting input with no usable character."""
    if name is None or not re.search(r"[A-Za-z0-9]", str(name)):
        raise ValidationError(f"invalid {kind} name: {name!r}")
    if kind == "table":
        return sanitize_table_name(name)
    return sanitize_column_name(name)
