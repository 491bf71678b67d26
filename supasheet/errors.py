from __future__ import annotations

"""Exception taxonomy for the spreadsheet import / table admin tool.

Every error raised by the library derives from ``ImportToolError`` and carries an
``error_type`` in UPPER_SNAKE_CASE. The CLI catches ``ImportToolError`` at the
command boundary and turns it into an ``ERROR`` log line plus an exit code;
the orchestrator records it per sheet in the error log buffer.
"""

__all__ = [
    "ImportToolError",
    "ConfigError",
    "DecodeError",
    "EmptyWorkbookError",
    "ValidationError",
    "FileTooLargeError",
    "CapabilityMissingError",
    "SchemaError",
    "LoadError",
    "RowError",
    "BackendConnectionError",
    "InvalidTransitionError",
]


class ImportToolError(Exception):
    error_type = "IMPORT_ERROR"


class ConfigError(ImportToolError):
    error_type = "CONFIG_ERROR"


class DecodeError(ImportToolError):
    """Raised when the uploaded bytes are not a readable CSV / XLS / XLSX file."""
    error_type = "DECODE_ERROR"


class EmptyWorkbookError(ImportToolError):
    """Raised when no sheet has a header row plus at least one data row."""
    error_type = "EMPTY_WORKBOOK"


class ValidationError(ImportToolError):
    error_type = "VALIDATION_ERROR"


class FileTooLargeError(ValidationError):
    error_type = "FILE_TOO_LARGE"

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"file is too large ({size / (1024 * 1024):.1f} MB); "
            f"maximum allowed size is {limit / (1024 * 1024):.0f} MB"
        )


class CapabilityMissingError(ImportToolError):
    """The backend lacks the remote SQL function; it must be created out-of-band.

    ``setup_sql`` holds the statements the user has to run once in the
    backend's SQL editor.
    """
    error_type = "CAPABILITY_MISSING"

    def __init__(self, message: str, setup_sql: str = "") -> None:
        super().__init__(message)
        self.setup_sql = setup_sql


class SchemaError(ImportToolError):
    error_type = "SCHEMA_ERROR"


class LoadError(ImportToolError):
    """A batch insert was rejected.

    Batches committed before the failing one are not rolled back;
    ``rows_loaded`` reports how many rows already reached the table.
    """
    error_type = "LOAD_ERROR"

    def __init__(self, message: str, rows_loaded: int = 0, batch_index: int | None = None) -> None:
        super().__init__(message)
        self.rows_loaded = rows_loaded
        self.batch_index = batch_index

    @property
    def partial(self) -> bool:
        return self.rows_loaded > 0


class RowError(ImportToolError):
    """A single row insert / update / delete was rejected or matched nothing."""
    error_type = "ROW_ERROR"


class BackendConnectionError(ImportToolError, ConnectionError):
    error_type = "CONNECTION_ERROR"


class InvalidTransitionError(ImportToolError):
    error_type = "INVALID_TRANSITION"
