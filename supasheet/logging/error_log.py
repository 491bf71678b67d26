from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from supasheet.models.error_record import ErrorRecord

"""JSON Lines error log for failed import jobs.

Records are kept in memory during a run and appended to
``<directory>/errors-YYYYMMDD-HHMMSS.log`` (UTC, one file per buffer) when
flushed. A run without failures never creates the directory or the file.
"""

__all__ = [
    "DEFAULT_LOG_DIR",
    "ErrorLogBuffer",
]

DEFAULT_LOG_DIR = Path("./logs")
_FILE_STAMP = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Collects ErrorRecords; ``flush()`` appends them to the run's log file.

    Single threaded: import jobs never run concurrently.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory if directory is not None else DEFAULT_LOG_DIR
        self._pending: list[ErrorRecord] = []
        self._path: Path | None = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def records(self) -> list[ErrorRecord]:
        """Records not yet flushed (copy)."""
        return list(self._pending)

    @property
    def path(self) -> Path | None:
        """Log file of this buffer, None until the first non-empty flush."""
        return self._path

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)

    def _open_target(self) -> Path:
        if self._path is None:
            self.directory.mkdir(parents=True, exist_ok=True)
            name = f"errors-{datetime.now(UTC).strftime(_FILE_STAMP)}.log"
            self._path = self.directory / name
        return self._path

    def flush(self) -> Path | None:
        """Write pending records; returns the log file (None if nothing was ever written)."""
        if not self._pending:
            return self._path
        target = self._open_target()
        lines = "".join(r.to_json_line() + "\n" for r in self._pending)
        with target.open("a", encoding="utf-8") as fh:
            fh.write(lines)
        self._pending.clear()
        return target
