"""Domain models for the spreadsheet -> Supabase import tool.

This package contains the transient, in-memory entities of one import
operation (workbook, table specs, import jobs, summaries) plus the error log
record written for failures.
"""

from .error_record import ErrorRecord
from .import_job import ImportJob, JobStatus
from .import_summary import ImportSummary, SheetFailure
from .table_spec import ColumnSpec, TableSpec
from .workbook import Sheet, Workbook

__all__ = [
    # Parsed input
    "Sheet",
    "Workbook",
    # Schema
    "ColumnSpec",
    "TableSpec",
    # Processing
    "ImportJob",
    "JobStatus",
    "ImportSummary",
    "SheetFailure",
    "ErrorRecord",
]
