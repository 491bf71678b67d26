from __future__ import annotations

from ..models.import_summary import ImportSummary

"""SUMMARY line rendering for an orchestrated import."""

__all__ = [
    "render_summary_line",
    "render_failure_lines",
]


def _format_number(value: float) -> str:
    # 整数値は小数点なし、極小値は指数表記を避ける
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(summary: ImportSummary) -> str:
    """Render the SUMMARY line.

    Format:
    SUMMARY sheets={attempted} tables={created} failed={failed} partial={partial}
    rows={rows} elapsed_sec={elapsed}

    Examples:
        >>> render_summary_line(ImportSummary(tables_created=2, rows_imported=120, elapsed_seconds=1.5))
        'SUMMARY sheets=0 tables=2 failed=0 partial=0 rows=120 elapsed_sec=1.5'
    """
    partial = sum(1 for f in summary.failures if f.partial)
    return (
        f"SUMMARY sheets={summary.sheets_attempted} "
        f"tables={summary.tables_created} "
        f"failed={len(summary.failures)} "
        f"partial={partial} "
        f"rows={summary.rows_imported} "
        f"elapsed_sec={_format_number(summary.elapsed_seconds)}"
    )


def render_failure_lines(summary: ImportSummary) -> list[str]:
    """One human readable line per failed sheet."""
    lines = []
    for f in summary.failures:
        state = f"partially imported ({f.rows_loaded} rows)" if f.partial else "failed"
        lines.append(f"sheet '{f.sheet_name}' {state}: [{f.error_type}] {f.error}")
    return lines
