from __future__ import annotations

from dataclasses import dataclass, field

from .import_job import ImportJob, JobStatus

"""Aggregated result of one orchestrated (multi-sheet) import."""

__all__ = [
    "SheetFailure",
    "ImportSummary",
]


@dataclass(frozen=True)
class SheetFailure:
    sheet_name: str
    error: str
    error_type: str  # UPPER_SNAKE (ImportToolError.error_type)
    rows_loaded: int = 0  # > 0 なら部分インポート

    @property
    def partial(self) -> bool:
        return self.rows_loaded > 0


@dataclass(frozen=True)
class ImportSummary:
    tables_created: int
    rows_imported: int
    failures: list[SheetFailure] = field(default_factory=list)
    jobs: list[ImportJob] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def sheets_attempted(self) -> int:
        return len(self.jobs)

    @property
    def completed(self) -> list[str]:
        return [j.sheet_name for j in self.jobs if j.status is JobStatus.COMPLETED]

    @property
    def ok(self) -> bool:
        return not self.failures
