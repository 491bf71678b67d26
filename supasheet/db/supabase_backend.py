from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from .backend import Backend, BackendError, ErrorKind, classify_error

"""Supabase backend (supabase-py / PostgREST).

``execute_sql`` goes through ``client.rpc(<sql_function>, {"query": ...})``;
row CRUD uses the PostgREST table builder. ``list_tables`` needs the
``list_tables`` RPC installed by the setup SQL.
"""

__all__ = [
    "SupabaseBackend",
]

logger = logging.getLogger(__name__)


class SupabaseBackend(Backend):
    def __init__(self, client: Client, *, schema: str = "public", sql_function: str = "exec_sql") -> None:
        self.client = client
        self.schema = schema
        self.sql_function = sql_function

    @classmethod
    def from_credentials(cls, url: str, key: str, **kwargs: Any) -> SupabaseBackend:
        try:
            client = create_client(url, key)
        except Exception as e:
            raise BackendError(ErrorKind.TRANSPORT, f"could not create Supabase client: {e}") from e
        logger.debug(f"supabase client created for {url}")
        return cls(client, **kwargs)

    def _execute(self, build: Callable[[], Any]) -> Any:
        try:
            return build().execute()
        except APIError as e:
            message = e.message or str(e)
            raise BackendError(classify_error(e.code, message), message, code=e.code) from e
        except httpx.HTTPError as e:
            raise BackendError(ErrorKind.TRANSPORT, str(e) or e.__class__.__name__) from e

    def execute_sql(self, sql: str) -> None:
        self._execute(lambda: self.client.rpc(self.sql_function, {"query": sql}))

    def list_tables(self) -> list[str]:
        res = self._execute(lambda: self.client.rpc("list_tables", {}))
        return [r["table_name"] for r in (res.data or [])]

    def select_rows(self, table: str, *, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        res = self._execute(
            lambda: self.client.table(table).select("*").order("id").range(offset, offset + limit - 1)
        )
        return list(res.data or [])

    def count_rows(self, table: str) -> int:
        res = self._execute(lambda: self.client.table(table).select("id", count="exact").limit(1))
        return int(res.count or 0)

    def insert_row(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        res = self._execute(lambda: self.client.table(table).insert(values))
        return res.data[0] if res.data else dict(values)

    def update_row(self, table: str, row_id: int, values: dict[str, Any]) -> dict[str, Any] | None:
        res = self._execute(lambda: self.client.table(table).update(values).eq("id", row_id))
        return res.data[0] if res.data else None

    def delete_row(self, table: str, row_id: int) -> bool:
        res = self._execute(lambda: self.client.table(table).delete().eq("id", row_id))
        return bool(res.data)
