from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any

"""Workbook / Sheet domain models.

A Workbook is the full parsed result of one uploaded file; each Sheet is a tab
reduced to a header list plus data records keyed by header.
"""

__all__ = [
    "Sheet",
    "Workbook",
]


@dataclass(frozen=True)
class Sheet:
    """One tab of a workbook after header extraction.

    Invariant: ``headers`` come from the first non-empty row and ``rows`` holds
    at least one record (sheets without data are never constructed by the reader).
    """
    name: str
    headers: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


class Workbook(OrderedDict[str, Sheet]):
    """Ordered mapping sheet name -> Sheet (file order preserved)."""

    @classmethod
    def from_sheets(cls, sheets: list[Sheet]) -> Workbook:
        wb = cls()
        for sheet in sheets:
            wb[sheet.name] = sheet
        return wb

    @property
    def total_rows(self) -> int:
        return sum(s.row_count for s in self.values())
