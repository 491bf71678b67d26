from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record is written per failed import job. ``batch`` is -1 when the
failure did not happen while loading a batch (provisioning errors).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """One failed sheet as written to the error log.

    Attributes:
        timestamp: UTC time of the failure, ISO 8601 ending in 'Z'
        file: Uploaded file name
        sheet: Sheet name within the file
        table: Target table identifier
        batch: 0-based batch index, -1 when unknown / not applicable
        rows_loaded: Rows committed before the failure
        error_type: ImportToolError.error_type (UPPER_SNAKE)
        message: backend message or error description
    """
    timestamp: str
    file: str
    sheet: str
    table: str
    batch: int
    rows_loaded: int
    error_type: str
    message: str

    @staticmethod
    def create(
        file: str,
        sheet: str,
        table: str,
        error_type: str,
        message: str,
        *,
        batch: int = -1,
        rows_loaded: int = 0,
    ) -> ErrorRecord:
        now = datetime.now(UTC)
        return ErrorRecord(
            timestamp=now.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            file=file,
            sheet=sheet,
            table=table,
            batch=batch,
            rows_loaded=rows_loaded,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # キー集合はフィールド定義で固定
        return json.dumps(asdict(self), ensure_ascii=False)
