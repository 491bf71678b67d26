from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

"""Row progress bar for an orchestrated import.

A single tqdm bar counts rows across all selected sheets and names the sheet
being loaded. Nothing is drawn when stdout is not a terminal (CI, pipes).
"""

__all__ = [
    "ImportProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ImportProgress:
    def __init__(self, total_rows: int, *, description: str = "Importing") -> None:
        self.total_rows = total_rows
        self.description = description
        self.current_sheet: str | None = None
        self.sheets_done = 0
        self.enabled = is_tty_enabled()
        self.pbar: Any | None = None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=True,
                ncols=80,
                ascii=True,
            )

    def start_sheet(self, sheet_name: str) -> None:
        self.current_sheet = sheet_name
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({sheet_name})")

    def advance(self, rows: int) -> None:
        if self.pbar is not None:
            self.pbar.update(rows)

    def finish_sheet(self, success: bool = True) -> None:
        """Count the sheet as done; the bar postfix shows the last outcome."""
        self.current_sheet = None
        self.sheets_done += 1
        if self.pbar is None:
            return
        self.pbar.set_description(self.description)
        self.pbar.set_postfix(sheets=self.sheets_done, last="ok" if success else "failed")

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
        self.pbar = None

    def __enter__(self) -> ImportProgress:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
