from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ..config.loader import Settings
from ..db.backend import Backend
from ..errors import ImportToolError, ValidationError
from ..excel.reader import read_workbook, read_workbook_file
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.import_job import ImportJob, JobStatus
from ..models.import_summary import ImportSummary, SheetFailure
from ..models.table_spec import TableSpec
from ..models.workbook import Workbook
from ..naming import validate_identifier
from .loader import DEFAULT_BATCH_SIZE, BatchMetrics, load_rows
from .progress import ImportProgress
from .provisioner import provision_table
from .tables import list_tables

"""Import orchestration: workbook -> one table per selected sheet.

Sheets are processed one after another (never concurrently). A failing sheet
is recorded in the summary and in the error log, then the next sheet is
attempted. After every sheet has been tried the caller's table listing is
refreshed, regardless of failures.
"""

__all__ = [
    "Selections",
    "select_all",
    "plan_jobs",
    "import_workbook",
    "ImportSession",
]

logger = logging.getLogger(__name__)

# sheet name -> table name override (None = sanitized sheet name)
Selections = Mapping[str, "str | None"]


def select_all(workbook: Workbook) -> dict[str, str | None]:
    return {name: None for name in workbook}


def plan_jobs(workbook: Workbook, selections: Selections) -> list[ImportJob]:
    """Build one PENDING ImportJob per selected sheet (workbook order).

    Raises ValidationError for an empty selection, an unknown sheet, an
    unusable table name, or two sheets targeting the same table.
    """
    if not selections:
        raise ValidationError("no sheet selected for import")
    unknown = [name for name in selections if name not in workbook]
    if unknown:
        raise ValidationError(f"unknown sheet(s): {unknown}; available: {list(workbook)}")

    jobs: list[ImportJob] = []
    targets: dict[str, str] = {}
    for name, sheet in workbook.items():
        if name not in selections:
            continue
        override = selections[name]
        table_name = validate_identifier(override if override else name, kind="table")
        if table_name in targets:
            raise ValidationError(
                f"sheets '{targets[table_name]}' and '{name}' both target table '{table_name}'"
            )
        targets[table_name] = name
        spec = TableSpec.from_sheet(sheet, table_name)
        jobs.append(ImportJob(sheet_name=name, table_spec=spec, rows=sheet.rows))
    return jobs


def _run_job(backend: Backend, job: ImportJob, batch_size: int, progress: ImportProgress) -> None:
    job.advance(JobStatus.PROVISIONING)
    provision_table(backend, job.table_spec)
    job.advance(JobStatus.LOADING)

    def on_batch(metrics: BatchMetrics) -> None:
        job.rows_loaded = metrics.rows_loaded
        progress.advance(metrics.batch_size)

    result = load_rows(backend, job.table_spec, job.rows, batch_size=batch_size, on_batch=on_batch)
    job.rows_loaded = result.rows_loaded
    job.advance(JobStatus.COMPLETED)


def import_workbook(
    backend: Backend,
    workbook: Workbook,
    selections: Selections,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    error_log: ErrorLogBuffer | None = None,
    file_name: str = "",
    on_refresh: Callable[[], object] | None = None,
) -> ImportSummary:
    """Provision and load every selected sheet, sequentially.

    Args:
        backend: remote store
        workbook: parsed upload
        selections: sheet name -> table name override (None keeps the sheet name)
        batch_size: rows per generated INSERT
        error_log: failures are appended here (flushed by the caller)
        file_name: upload name recorded in error log entries
        on_refresh: called once after all sheets were attempted

    Returns:
        ImportSummary with per-sheet failures; partial loads are reported
        with their committed row count.

    Raises:
        ValidationError: invalid selection (nothing is sent to the backend)
    """
    jobs = plan_jobs(workbook, selections)
    start = time.perf_counter()
    failures: list[SheetFailure] = []
    tables_created = 0
    rows_imported = 0

    with ImportProgress(sum(len(j.rows) for j in jobs)) as progress:
        for job in jobs:
            progress.start_sheet(job.sheet_name)
            logger.info(
                f"importing sheet '{job.sheet_name}' -> {job.table_spec.name} ({len(job.rows)} rows)"
            )
            try:
                _run_job(backend, job, batch_size, progress)
            except Exception as e:
                error_type = e.error_type if isinstance(e, ImportToolError) else "UNEXPECTED_ERROR"
                job.fail(str(e), rows_loaded=job.rows_loaded)
                failures.append(
                    SheetFailure(
                        sheet_name=job.sheet_name,
                        error=str(e),
                        error_type=error_type,
                        rows_loaded=job.rows_loaded,
                    )
                )
                if error_log is not None:
                    batch_index = getattr(e, "batch_index", None)
                    error_log.append(
                        ErrorRecord.create(
                            file=file_name,
                            sheet=job.sheet_name,
                            table=job.table_spec.name,
                            error_type=error_type,
                            message=str(e),
                            batch=batch_index if batch_index is not None else -1,
                            rows_loaded=job.rows_loaded,
                        )
                    )
                if job.status is JobStatus.PARTIALLY_LOADED:
                    logger.warning(
                        f"sheet '{job.sheet_name}' partially imported ({job.rows_loaded} rows): {e}"
                    )
                else:
                    logger.error(f"sheet '{job.sheet_name}' failed: {e}")
            else:
                logger.info(f"sheet '{job.sheet_name}' imported: {job.rows_loaded} rows")
            finally:
                progress.finish_sheet(success=job.status is JobStatus.COMPLETED)

            # LOADING に到達 = CREATE TABLE 成功
            if JobStatus.LOADING in job.history:
                tables_created += 1
            rows_imported += job.rows_loaded

    if on_refresh is not None:
        on_refresh()

    return ImportSummary(
        tables_created=tables_created,
        rows_imported=rows_imported,
        failures=failures,
        jobs=jobs,
        elapsed_seconds=time.perf_counter() - start,
    )


@dataclass
class ImportSession:
    """Explicit context for one user session (replaces global UI state).

    Holds the backend, the settings, the currently opened workbook and the
    last known table listing. Handlers receive the session instead of
    reaching for module level state.
    """
    backend: Backend
    settings: Settings = field(default_factory=Settings)
    workbook: Workbook | None = None
    file_name: str = ""
    tables: list[str] = field(default_factory=list)
    error_log: ErrorLogBuffer = field(init=False)

    def __post_init__(self) -> None:
        self.error_log = ErrorLogBuffer(Path(self.settings.error_log_dir))

    def open_file(self, source: Path | bytes, filename: str | None = None) -> Workbook:
        """Parse an upload (path on disk or raw bytes) and keep it as current workbook."""
        if isinstance(source, Path):
            wb = read_workbook_file(
                source,
                max_bytes=self.settings.max_upload_bytes,
                na_strings=self.settings.na_strings,
            )
            self.file_name = source.name
        else:
            wb = read_workbook(
                source,
                filename,
                max_bytes=self.settings.max_upload_bytes,
                na_strings=self.settings.na_strings,
            )
            self.file_name = filename or ""
        self.workbook = wb
        logger.info(
            f"opened {self.file_name or '<upload>'}: {len(wb)} sheet(s), {wb.total_rows} data rows"
        )
        return wb

    def refresh_tables(self) -> list[str]:
        """Reload the table listing; on failure keep the previous listing."""
        try:
            self.tables = list_tables(self.backend)
        except ImportToolError as e:
            logger.warning(f"could not refresh table list: {e}")
        return self.tables

    def run_import(self, selections: Selections | None = None) -> ImportSummary:
        """Import the current workbook (all sheets when ``selections`` is None)."""
        if self.workbook is None:
            raise ValidationError("no file opened")
        if selections is None:
            selections = select_all(self.workbook)
        summary = import_workbook(
            self.backend,
            self.workbook,
            selections,
            error_log=self.error_log,
            file_name=self.file_name,
            on_refresh=self.refresh_tables,
        )
        self.flush_errors()
        return summary

    def flush_errors(self) -> Path | None:
        if not len(self.error_log):
            return None
        try:
            path = self.error_log.flush()
        except OSError as e:
            logger.warning(f"could not write error log: {e}")
            return None
        logger.info(f"error details: {path}")
        return path
