from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import InvalidTransitionError
from .table_spec import TableSpec

"""ImportJob domain model and JobStatus enum.

An ImportJob is one sheet-to-table provisioning-and-loading operation. It is
created when a sheet is selected, consumed once by the provisioner and the
batch loader, then discarded (no retry state is kept).
"""

__all__ = [
    "JobStatus",
    "ImportJob",
]


class JobStatus(Enum):
    """Status enum for the ImportJob lifecycle.

    State transitions:
        pending -> provisioning -> loading -> completed
        pending -> provisioning -> failed
        provisioning -> loading -> partially_loaded   (a later batch rejected)
        provisioning -> loading -> failed             (the first batch rejected)
    """
    PENDING = "pending"
    PROVISIONING = "provisioning"
    LOADING = "loading"
    COMPLETED = "completed"
    PARTIALLY_LOADED = "partially_loaded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({JobStatus.COMPLETED, JobStatus.PARTIALLY_LOADED, JobStatus.FAILED})

_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROVISIONING}),
    JobStatus.PROVISIONING: frozenset({JobStatus.LOADING, JobStatus.FAILED}),
    JobStatus.LOADING: frozenset(
        {JobStatus.COMPLETED, JobStatus.PARTIALLY_LOADED, JobStatus.FAILED}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.PARTIALLY_LOADED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass
class ImportJob:
    """Mutable processing context for a single selected sheet."""
    sheet_name: str
    table_spec: TableSpec
    rows: list[dict[str, Any]]
    status: JobStatus = JobStatus.PENDING
    rows_loaded: int = 0
    error: str | None = None
    history: list[JobStatus] = field(default_factory=lambda: [JobStatus.PENDING])

    def advance(self, target: JobStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"job '{self.sheet_name}': {self.status.value} -> {target.value} not allowed"
            )
        self.status = target
        self.history.append(target)

    def fail(self, message: str, rows_loaded: int = 0) -> None:
        """Move to FAILED, or PARTIALLY_LOADED when some batches were committed."""
        self.error = message
        self.rows_loaded = rows_loaded
        if self.status is JobStatus.LOADING and rows_loaded > 0:
            self.advance(JobStatus.PARTIALLY_LOADED)
        else:
            self.advance(JobStatus.FAILED)
