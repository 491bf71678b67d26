from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..errors import DecodeError, EmptyWorkbookError, FileTooLargeError, ValidationError
from ..models.workbook import Sheet, Workbook

"""Workbook reader (CSV / XLS / XLSX -> Workbook).

- The first non-empty row of a sheet is the header row (cells -> trimmed text)
- Following rows become records keyed by header; all-empty rows are dropped
- A sheet without at least one data row is left out of the Workbook
- Cell values keep their decoded types (dtype=object); CSV cells stay text
"""

__all__ = [
    "DEFAULT_MAX_BYTES",
    "detect_format",
    "read_workbook",
    "read_workbook_file",
    "normalize_sheet",
]

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 10 * 1024 * 1024

_XLSX_MAGIC = b"PK\x03\x04"
_XLS_MAGIC = b"\xd0\xcf\x11\xe0"
_ENGINES = {"xlsx": "openpyxl", "xls": "xlrd"}


def detect_format(data: bytes, filename: str | None = None) -> str:
    """Return ``csv``, ``xlsx`` or ``xls``.

    The file extension wins when it is recognized; otherwise the leading
    magic bytes decide and anything unrecognized is treated as CSV.
    """
    suffix = Path(filename).suffix.lower() if filename else ""
    if suffix in (".xlsx", ".xlsm"):
        return "xlsx"
    if suffix == ".xls":
        return "xls"
    if suffix in (".csv", ".txt"):
        return "csv"
    if data.startswith(_XLSX_MAGIC):
        return "xlsx"
    if data.startswith(_XLS_MAGIC):
        return "xls"
    return "csv"


def _na_options(na_strings: list[str] | None) -> dict[str, Any]:
    # 空セルのみ欠損扱い。na_strings は明示指定時だけ追加
    return {"keep_default_na": False, "na_values": [""] + list(na_strings or [])}


def _csv_width(text: str) -> int:
    # 列数の多い行があっても読めるよう最大フィールド数を先に求める
    return max((len(row) for row in csv.reader(io.StringIO(text))), default=0)


def _decode_frames(data: bytes, fmt: str, na_strings: list[str] | None) -> dict[str, pd.DataFrame]:
    na_opts = _na_options(na_strings)
    if fmt == "csv":
        text = data.decode("utf-8-sig")
        width = _csv_width(text)
        if width == 0:
            raise pd.errors.EmptyDataError("no columns to parse")
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            names=range(width),
            dtype=object,
            skip_blank_lines=False,
            **na_opts,
        )
        return {"Sheet1": df}

    dfs: dict[str, pd.DataFrame] = {}
    with pd.ExcelFile(io.BytesIO(data), engine=_ENGINES[fmt]) as xls:
        for name in xls.sheet_names:
            # ヘッダなしで生読み (ヘッダ行は normalize_sheet で決定)
            dfs[str(name)] = xls.parse(name, header=None, dtype=object, **na_opts)
    return dfs


def _to_python(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        return value.item()
    return value


def _header_text(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    value = _to_python(value)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _dedupe_headers(headers: list[str], sheet_name: str) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for h in headers:
        candidate = h
        n = 2
        while candidate in seen:
            candidate = f"{h}_{n}"
            n += 1
        if candidate != h:
            logger.warning(f"sheet '{sheet_name}': duplicate header '{h}' renamed to '{candidate}'")
        seen.add(candidate)
        result.append(candidate)
    return result


def normalize_sheet(df: pd.DataFrame, sheet_name: str) -> Sheet | None:
    """Reduce a raw (header-less) DataFrame to a Sheet.

    Steps:
    1. Drop columns that are empty in every row
    2. The first row with any value becomes the header
    3. Remaining non-empty rows become records keyed by header

    Returns None when the sheet has no header row or no data row.
    """
    df = df.dropna(axis=1, how="all")
    if df.empty:
        return None
    non_empty = ~df.isna().all(axis=1)
    if not non_empty.any():
        return None
    header_pos = int(np.argmax(non_empty.to_numpy()))
    headers = _dedupe_headers([_header_text(v) for v in df.iloc[header_pos].tolist()], sheet_name)

    rows: list[dict[str, Any]] = []
    for _, raw in df.iloc[header_pos + 1 :].iterrows():
        if raw.isna().all():
            continue
        record: dict[str, Any] = {}
        for col, val in zip(headers, raw.tolist(), strict=False):
            record[col] = None if pd.isna(val) else _to_python(val)
        rows.append(record)

    if not rows:
        return None
    return Sheet(name=sheet_name, headers=headers, rows=rows)


def read_workbook(
    data: bytes,
    filename: str | None = None,
    *,
    max_bytes: int = DEFAULT_MAX_BYTES,
    na_strings: list[str] | None = None,
) -> Workbook:
    """Parse uploaded file bytes into a Workbook.

    Parameters
    ----------
    data: raw file content
    filename: original file name (used for format inference only)
    max_bytes: upload size limit; larger input is rejected before decoding
    na_strings: extra cell texts (e.g. ['N/A']) to read as empty cells;
        by default only truly empty cells are missing

    Raises
    ------
    FileTooLargeError: the input exceeds ``max_bytes``
    DecodeError: the bytes are not a readable CSV / XLS / XLSX file
    EmptyWorkbookError: no sheet has a header plus at least one data row
    """
    if len(data) > max_bytes:
        raise FileTooLargeError(len(data), max_bytes)

    fmt = detect_format(data, filename)
    label = filename or "<upload>"
    logger.debug(f"decoding {label} as {fmt} ({len(data)} bytes)")
    try:
        frames = _decode_frames(data, fmt, na_strings)
    except pd.errors.EmptyDataError as e:
        raise EmptyWorkbookError(f"{label}: file contains no data") from e
    except ImportError:
        raise
    except Exception as e:
        raise DecodeError(f"{label}: cannot read as {fmt}: {e}") from e

    sheets: list[Sheet] = []
    for name, df in frames.items():
        sheet = normalize_sheet(df, name)
        if sheet is None:
            logger.info(f"sheet '{name}' skipped: needs a header row and at least one data row")
            continue
        sheets.append(sheet)

    if not sheets:
        raise EmptyWorkbookError(f"{label}: no sheet with a header row and data rows")
    return Workbook.from_sheets(sheets)


def read_workbook_file(
    path: Path,
    *,
    max_bytes: int = DEFAULT_MAX_BYTES,
    na_strings: list[str] | None = None,
) -> Workbook:
    """Read a workbook from disk (size is checked before the file is loaded)."""
    if not path.is_file():
        raise ValidationError(f"file not found: {path}")
    size = path.stat().st_size
    if size > max_bytes:
        raise FileTooLargeError(size, max_bytes)
    return read_workbook(
        path.read_bytes(), path.name, max_bytes=max_bytes, na_strings=na_strings
    )
