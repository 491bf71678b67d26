from __future__ import annotations

import logging

from ..db.backend import Backend, BackendError, ErrorKind
from ..db.sql import create_table_sql
from ..errors import BackendConnectionError, CapabilityMissingError, ImportToolError, SchemaError
from ..models.table_spec import TableSpec

"""Schema provisioner: one CREATE TABLE per import job, sent exactly once."""

__all__ = [
    "provision_table",
    "ddl_error",
]

logger = logging.getLogger(__name__)


def ddl_error(backend: Backend, e: BackendError, context: str) -> ImportToolError:
    """Translate a BackendError raised by a DDL statement into the tool taxonomy."""
    if e.kind is ErrorKind.CAPABILITY_MISSING:
        return CapabilityMissingError(
            f"{context}: remote function '{backend.sql_function}' is not installed "
            f"({e.message}); run `supasheet setup-sql` and execute the output once",
            setup_sql=backend.setup_sql(),
        )
    if e.kind is ErrorKind.TRANSPORT:
        return BackendConnectionError(f"{context}: {e.message}")
    return SchemaError(f"{context}: {e.message}")


def provision_table(backend: Backend, spec: TableSpec) -> None:
    """Create ``spec`` remotely (all columns TEXT + id identity + created_at).

    Never retried: a missing SQL function raises CapabilityMissingError, any
    other rejection SchemaError (the caller then skips loading).
    """
    statement = create_table_sql(spec)
    logger.debug(f"provision: {statement}")
    try:
        backend.execute_sql(statement)
    except BackendError as e:
        raise ddl_error(backend, e, f"create table '{spec.name}'") from e
    logger.info(f"table created: {spec.name} ({len(spec.columns)} columns)")
