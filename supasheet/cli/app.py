from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
from dotenv import load_dotenv

from supasheet.config.loader import Settings, load_config
from supasheet.db.backend import Backend, BackendError, create_backend, setup_sql
from supasheet.db.sql import create_table_sql
from supasheet.errors import BackendConnectionError, CapabilityMissingError, ImportToolError, ValidationError
from supasheet.excel.reader import read_workbook_file
from supasheet.logging.init import log_summary, set_debug, setup_logging
from supasheet.services import tables
from supasheet.services.loader import partition
from supasheet.services.orchestrator import ImportSession, plan_jobs, select_all
from supasheet.services.summary import render_failure_lines, render_summary_line

"""CLI entrypoint.

Every sub command runs inside one error boundary: ImportToolError is logged
as an ``ERROR`` line and mapped to an exit code, never re-raised.

Exit codes:
    0  success
    1  fatal (bad config / file / arguments, backend rejected the command)
    2  import finished with at least one failed or partially imported sheet
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

CommandHandler = Callable[[argparse.Namespace, Settings], int]


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env (values override the process environment)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _open_backend(settings: Settings) -> Backend:
    try:
        return create_backend(settings)
    except BackendError as e:
        raise BackendConnectionError(str(e)) from e


def _parse_assignments(pairs: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for pair in pairs:
        column, sep, value = pair.partition("=")
        if not sep or not column.strip():
            raise ValidationError(f"expected column=value, got {pair!r}")
        values[column.strip()] = value
    return values


def _parse_selections(items: list[str] | None) -> dict[str, str | None] | None:
    if not items:
        return None
    selections: dict[str, str | None] = {}
    for item in items:
        sheet, sep, table = item.partition("=")
        selections[sheet] = table if sep and table else None
    return selections


def _print_rows(rows: list[dict[str, Any]]) -> None:
    if not rows:
        print("(no rows)")
        return
    print(pd.DataFrame(rows).to_string(index=False))


# ---------------------------------------------------------------- commands


def _cmd_inspect(args: argparse.Namespace, settings: Settings) -> int:
    wb = read_workbook_file(
        args.file, max_bytes=settings.max_upload_bytes, na_strings=settings.na_strings
    )
    print(f"FILE: {args.file.name}")
    for name, sheet in wb.items():
        print(f"  SHEET: {name} rows={sheet.row_count} cols={sheet.headers}")
        # datetime 含む場合 JSON 化失敗するため isoformat で fallback
        sample = [
            {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in r.items()}
            for r in sheet.rows[: args.sample]
        ]
        print("    sample_rows=", json.dumps(sample, ensure_ascii=False))
    return EXIT_SUCCESS


def _cmd_import(args: argparse.Namespace, settings: Settings) -> int:
    logger = setup_logging()
    selections = _parse_selections(args.sheet)

    # ファイル検証と選択チェックは接続前に済ませる
    wb = read_workbook_file(
        args.file, max_bytes=settings.max_upload_bytes, na_strings=settings.na_strings
    )
    jobs = plan_jobs(wb, selections if selections is not None else select_all(wb))

    if args.dry_run:
        for job in jobs:
            batches = sum(1 for _ in partition(job.rows))
            print(f"-- sheet '{job.sheet_name}': {len(job.rows)} rows in {batches} batch(es)")
            print(create_table_sql(job.table_spec))
        return EXIT_SUCCESS

    with _open_backend(settings) as backend:
        session = ImportSession(backend=backend, settings=settings, workbook=wb, file_name=args.file.name)
        summary = session.run_import(selections)

    for line in render_failure_lines(summary):
        logger.error(line)
    if any(f.error_type == CapabilityMissingError.error_type for f in summary.failures):
        logger.info("the SQL function is missing: run `supasheet setup-sql` and execute its output once")
    logger.info(f"tables: {', '.join(session.tables) if session.tables else '(unknown)'}")
    log_summary(render_summary_line(summary)[len("SUMMARY ") :])
    return EXIT_SUCCESS if summary.ok else EXIT_PARTIAL_FAILURE


def _cmd_tables(args: argparse.Namespace, settings: Settings) -> int:
    with _open_backend(settings) as backend:
        names = tables.list_tables(backend)
    if not names:
        print("(no tables)")
    for name in names:
        print(name)
    return EXIT_SUCCESS


def _cmd_create_table(args: argparse.Namespace, settings: Settings) -> int:
    with _open_backend(settings) as backend:
        spec = tables.create_table(backend, args.name, args.columns)
    print(f"created {spec.name} ({', '.join(spec.column_names)})")
    return EXIT_SUCCESS


def _cmd_drop_table(args: argparse.Namespace, settings: Settings) -> int:
    if not args.yes:
        raise ValidationError("dropping a table deletes all of its rows; pass --yes to confirm")
    with _open_backend(settings) as backend:
        name = tables.drop_table(backend, args.name)
    print(f"dropped {name}")
    return EXIT_SUCCESS


def _cmd_add_column(args: argparse.Namespace, settings: Settings) -> int:
    with _open_backend(settings) as backend:
        col = tables.add_column(backend, args.table, args.column)
    print(f"added column {col}")
    return EXIT_SUCCESS


def _cmd_drop_column(args: argparse.Namespace, settings: Settings) -> int:
    with _open_backend(settings) as backend:
        col = tables.drop_column(backend, args.table, args.column)
    print(f"dropped column {col}")
    return EXIT_SUCCESS


def _cmd_rows(args: argparse.Namespace, settings: Settings) -> int:
    with _open_backend(settings) as backend:
        rows = tables.list_rows(backend, args.table, limit=args.limit, offset=args.offset)
        total = tables.count_rows(backend, args.table)
    _print_rows(rows)
    print(f"({len(rows)} of {total} rows)")
    return EXIT_SUCCESS


def _cmd_add_row(args: argparse.Namespace, settings: Settings) -> int:
    values = _parse_assignments(args.values)
    with _open_backend(settings) as backend:
        row = tables.add_row(backend, args.table, values)
    _print_rows([row])
    return EXIT_SUCCESS


def _cmd_update_row(args: argparse.Namespace, settings: Settings) -> int:
    values = _parse_assignments(args.values)
    with _open_backend(settings) as backend:
        row = tables.update_row(backend, args.table, args.id, values)
    _print_rows([row])
    return EXIT_SUCCESS


def _cmd_delete_row(args: argparse.Namespace, settings: Settings) -> int:
    with _open_backend(settings) as backend:
        tables.delete_row(backend, args.table, args.id)
    print(f"deleted id={args.id}")
    return EXIT_SUCCESS


def _cmd_setup_sql(args: argparse.Namespace, settings: Settings) -> int:
    print(setup_sql(settings.sql_function, settings.schema))
    return EXIT_SUCCESS


# ---------------------------------------------------------------- parser


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="supasheet", description="Spreadsheet -> Supabase table importer")
    p.add_argument("--config", type=Path, default=None, help="YAML config (default: config/supasheet.yml)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("inspect", help="Print sheet headers & first rows then exit")
    s.add_argument("file", type=Path)
    s.add_argument("--sample", type=int, default=3)
    s.set_defaults(handler=_cmd_inspect)

    s = sub.add_parser("import", help="Create one table per sheet and load its rows")
    s.add_argument("file", type=Path)
    s.add_argument(
        "--sheet",
        action="append",
        metavar="NAME[=TABLE]",
        help="Sheet to import, optionally with a table name (repeatable; default: all sheets)",
    )
    s.add_argument("--dry-run", action="store_true", help="Print generated CREATE TABLE statements only")
    s.set_defaults(handler=_cmd_import)

    s = sub.add_parser("tables", help="List tables")
    s.set_defaults(handler=_cmd_tables)

    s = sub.add_parser("create-table", help="Create an empty table with TEXT columns")
    s.add_argument("name")
    s.add_argument("columns", nargs="+")
    s.set_defaults(handler=_cmd_create_table)

    s = sub.add_parser("drop-table", help="Drop a table and all its rows")
    s.add_argument("name")
    s.add_argument("--yes", action="store_true", help="Confirm the drop")
    s.set_defaults(handler=_cmd_drop_table)

    s = sub.add_parser("add-column", help="Add a TEXT column")
    s.add_argument("table")
    s.add_argument("column")
    s.set_defaults(handler=_cmd_add_column)

    s = sub.add_parser("drop-column", help="Drop a column")
    s.add_argument("table")
    s.add_argument("column")
    s.set_defaults(handler=_cmd_drop_column)

    s = sub.add_parser("rows", help="Show rows ordered by id")
    s.add_argument("table")
    s.add_argument("--limit", type=int, default=100)
    s.add_argument("--offset", type=int, default=0)
    s.set_defaults(handler=_cmd_rows)

    s = sub.add_parser("add-row", help="Insert a row")
    s.add_argument("table")
    s.add_argument("values", nargs="+", metavar="COLUMN=VALUE")
    s.set_defaults(handler=_cmd_add_row)

    s = sub.add_parser("update-row", help="Update a row by id")
    s.add_argument("table")
    s.add_argument("id", type=int)
    s.add_argument("values", nargs="+", metavar="COLUMN=VALUE")
    s.set_defaults(handler=_cmd_update_row)

    s = sub.add_parser("delete-row", help="Delete a row by id")
    s.add_argument("table")
    s.add_argument("id", type=int)
    s.set_defaults(handler=_cmd_delete_row)

    s = sub.add_parser("setup-sql", help="Print the SQL that installs the required remote functions")
    s.set_defaults(handler=_cmd_setup_sql)

    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # NOTE: 空リスト [] が与えられた場合に sys.argv[1:] が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    # .env を最優先で読み込む (接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)

    handler: CommandHandler = args.handler
    try:
        settings = load_config(args.config, required=args.config is not None)
        return handler(args, settings)
    except CapabilityMissingError as e:
        logger.error(f"{args.command}: {e}")
        logger.info("run `supasheet setup-sql` and execute the printed SQL once in your project")
        return EXIT_FATAL
    except ImportToolError as e:
        logger.error(f"{args.command}: {e}")
        logger.debug("details", exc_info=True)
        return EXIT_FATAL


