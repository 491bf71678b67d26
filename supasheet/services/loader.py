from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from ..db.backend import Backend, BackendError, ErrorKind
from ..db.sql import insert_sql
from ..errors import BackendConnectionError, CapabilityMissingError, LoadError
from ..models.table_spec import TableSpec

"""Batch loader.

Rows are sent as generated bulk INSERT statements of at most ``batch_size``
rows, strictly in order and one at a time. A rejected batch stops the load;
batches committed before it are not rolled back (partial import).
"""

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "BatchMetrics",
    "LoadResult",
    "partition",
    "remap_row",
    "load_rows",
]

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class BatchMetrics:
    """Timing data for a single batch insert."""
    batch_index: int
    batch_size: int  # Number of rows in this batch
    rows_loaded: int  # Cumulative rows committed including this batch
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class LoadResult:
    rows_loaded: int
    batches: int


def partition(rows: Sequence[Any], size: int = DEFAULT_BATCH_SIZE) -> Iterator[Sequence[Any]]:
    """Yield consecutive slices of at most ``size`` items (ceil(N/size) slices)."""
    if size < 1:
        raise ValueError(f"batch size must be positive: {size}")
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


def remap_row(row: dict[str, Any], spec: TableSpec) -> dict[str, Any]:
    """Re-key a header-keyed record by sanitized column name."""
    return {c.sanitized_name: row.get(c.original_name) for c in spec.columns}


def load_rows(
    backend: Backend,
    spec: TableSpec,
    rows: Sequence[dict[str, Any]],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_batch: Callable[[BatchMetrics], None] | None = None,
) -> LoadResult:
    """Insert header-keyed ``rows`` into the (already provisioned) table.

    Raises LoadError on the first rejected batch with ``rows_loaded`` set to
    the rows committed by earlier batches.
    """
    columns = spec.column_names
    loaded = 0
    batches = 0
    for index, batch in enumerate(partition(rows, batch_size)):
        statement = insert_sql(spec.name, columns, [remap_row(r, spec) for r in batch])
        start_time = time.time()
        try:
            backend.execute_sql(statement)
        except BackendError as e:
            logger.debug(f"batch {index} of '{spec.name}' rejected after {loaded} rows")
            if e.kind is ErrorKind.CAPABILITY_MISSING:
                raise CapabilityMissingError(
                    f"insert into '{spec.name}': remote function '{backend.sql_function}' "
                    f"is not installed ({e.message})",
                    setup_sql=backend.setup_sql(),
                ) from e
            if e.kind is ErrorKind.TRANSPORT:
                raise BackendConnectionError(f"insert into '{spec.name}': {e.message}") from e
            raise LoadError(
                f"insert into '{spec.name}' failed at batch {index + 1} "
                f"({loaded} rows already imported): {e.message}",
                rows_loaded=loaded,
                batch_index=index,
            ) from e
        end_time = time.time()
        loaded += len(batch)
        batches += 1
        if on_batch is not None:
            on_batch(
                BatchMetrics(
                    batch_index=index,
                    batch_size=len(batch),
                    rows_loaded=loaded,
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )
    logger.debug(f"loaded {loaded} rows into '{spec.name}' in {batches} batches")
    return LoadResult(rows_loaded=loaded, batches=batches)
