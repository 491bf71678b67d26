# Shared pytest fixtures
from __future__ import annotations

import re
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from supasheet.db.backend import Backend, BackendError, ErrorKind
from supasheet.logging.init import reset_logging

_TABLE_RE = re.compile(r"^(?:CREATE TABLE|INSERT INTO|DROP TABLE|ALTER TABLE) ([a-z][a-z0-9_]*)")


class FakeBackend(Backend):
    """In-memory stand-in for the remote store.

    ``execute_sql`` records every statement; ``fail_when(predicate, error)``
    makes matching statements raise instead of being recorded.
    """

    def __init__(self) -> None:
        self.statements: list[str] = []
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.inserted: dict[str, int] = {}
        self.closed = False
        self._failures: list[tuple[Callable[[str], bool], BackendError]] = []
        self._next_id = 1

    def fail_when(self, predicate: Callable[[str], bool], error: BackendError) -> None:
        self._failures.append((predicate, error))

    def execute_sql(self, sql: str) -> None:
        for predicate, error in self._failures:
            if predicate(sql):
                raise error
        self.statements.append(sql)
        m = _TABLE_RE.match(sql)
        table = m.group(1) if m else ""
        if sql.startswith("CREATE TABLE"):
            self.tables[table] = []
        elif sql.startswith("DROP TABLE"):
            self.tables.pop(table, None)
        elif sql.startswith("INSERT INTO"):
            self.inserted[table] = self.inserted.get(table, 0) + sql.count("), (") + 1

    def _require(self, table: str) -> list[dict[str, Any]]:
        if table not in self.tables:
            raise BackendError(ErrorKind.REJECTED, f'relation "{table}" does not exist', code="42P01")
        return self.tables[table]

    def list_tables(self) -> list[str]:
        return sorted(self.tables)

    def select_rows(self, table: str, *, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        return self._require(table)[offset : offset + limit]

    def count_rows(self, table: str) -> int:
        return len(self._require(table))

    def insert_row(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        row = {"id": self._next_id, **values}
        self._next_id += 1
        self._require(table).append(row)
        return row

    def update_row(self, table: str, row_id: int, values: dict[str, Any]) -> dict[str, Any] | None:
        for row in self._require(table):
            if row["id"] == row_id:
                row.update(values)
                return row
        return None

    def delete_row(self, table: str, row_id: int) -> bool:
        rows = self._require(table)
        for i, row in enumerate(rows):
            if row["id"] == row_id:
                del rows[i]
                return True
        return False

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _clean_logging():
    # setup_logging() binds sys.stdout at creation time; capsys needs a fresh handler
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        for var in ("SUPABASE_URL", "SUPABASE_KEY", "DATABASE_URL", "PGDSN"):
            monkeypatch.delenv(var, raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """backend: supabase
supabase:
  url: https://example.supabase.co
  key: service-role-key
max_upload_mb: 10
na_strings: ["N/A"]
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "supasheet.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_excel() -> Callable[..., Path]:
    """Write a header-less workbook: {sheet: [[row cells], ...]}."""
    def _make(directory: Path, name: str, sheets: dict[str, list[list[object]]]) -> Path:
        p = directory / name
        with pd.ExcelWriter(p, engine="openpyxl") as writer:
            for sheet, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
        return p
    return _make
