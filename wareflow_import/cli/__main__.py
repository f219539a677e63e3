from __future__ import annotations

import argparse
import json
import sqlite3
import sys
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from wareflow_import.config.loader import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, default_config, load_config
from wareflow_import.db.connection import DatabaseConfigError
from wareflow_import.excel.reader import ParseError, UnsupportedFormatError, read_input_document
from wareflow_import.logging.init import log_summary, set_level, setup_logging
from wareflow_import.models.import_result import ImportResult
from wareflow_import.plugins.registry import create_default_registry
from wareflow_import.services.import_service import MOCK_PLUGIN_ID, ImportService
from wareflow_import.services.progress import ImportProgressBar
from wareflow_import.services.summary import render_summary_line

"""CLI entrypoint: the host shell for the import pipeline.

    wareflow-import plugins
    wareflow-import validate FILE [--plugin ID]
    wareflow-import import FILE --warehouse WH [--plugin ID]
    wareflow-import mock --warehouse WH [--plugin ID]
    wareflow-import inspect FILE
    wareflow-import history --warehouse WH [--limit N]

Exit codes: 0 success, 2 import failed / file invalid, 1 fatal (config, storage).
"""

EXIT_SUCCESS = 0
EXIT_FAILED = 2
EXIT_FATAL = 1

DEFAULT_PLUGIN_ID = "generic-excel"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so DATABASE_URL / WAREFLOW_DB_PATH take precedence over the config file."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="wareflow-import", description="WMS spreadsheet -> warehouse database importer")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("plugins", help="List available import plugins")

    v = sub.add_parser("validate", help="Validate a file against a plugin without importing")
    v.add_argument("file", type=Path)
    v.add_argument("--plugin", default=DEFAULT_PLUGIN_ID)
    v.add_argument("--json", action="store_true", help="Print the raw validation report")

    i = sub.add_parser("import", help="Import a file into a warehouse")
    i.add_argument("file", type=Path)
    i.add_argument("--warehouse", required=True)
    i.add_argument("--plugin", default=DEFAULT_PLUGIN_ID)
    i.add_argument("--json", action="store_true", help="Print the raw import result")

    m = sub.add_parser("mock", help="Generate mock data for a warehouse")
    m.add_argument("--warehouse", required=True)
    m.add_argument("--plugin", default=MOCK_PLUGIN_ID)
    m.add_argument("--json", action="store_true", help="Print the raw import result")

    s = sub.add_parser("inspect", help="Print sheet headers and first rows of a file")
    s.add_argument("file", type=Path)
    s.add_argument("--rows", type=int, default=3)

    h = sub.add_parser("history", help="Show import history of a warehouse")
    h.add_argument("--warehouse", required=True)
    h.add_argument("--limit", type=int, default=20)
    return p.parse_args(argv)


def _load_app_config(path: Path | None) -> AppConfig:
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return default_config()


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _print_diagnostics(diagnostics: list[dict[str, Any]]) -> None:
    for d in diagnostics:
        where = "/".join(str(d[k]) for k in ("sheet", "row", "column") if k in d)
        line = f"  [{d['severity']}] {d['message']}"
        if where:
            line += f" ({where})"
        print(line)
        if "suggestion" in d:
            print(f"      -> {d['suggestion']}")


def _cmd_plugins(cfg: AppConfig) -> int:
    registry = create_default_registry(cfg.mock_data)
    for plugin in registry.list():
        meta = plugin.metadata
        formats = ",".join(meta.supported_formats) or "-"
        print(f"{meta.id:<22} {meta.version:<8} {meta.wms_system:<10} {formats:<14} {meta.name}")
    return EXIT_SUCCESS


def _cmd_inspect(file: Path, rows: int) -> int:
    try:
        document = read_input_document(file)
    except (FileNotFoundError, UnsupportedFormatError, ParseError) as e:
        print(f"inspect: {e}")
        return EXIT_FAILED
    print(f"FILE: {document.metadata.filename} ({document.metadata.file_size} bytes)")
    for name, sheet in document.sheets.items():
        print(f"  SHEET: {name} rows={sheet.row_count} cols={list(sheet.headers)}")
        for row in sheet.rows[:rows]:
            print(f"    {dict(zip(sheet.headers, row, strict=False))}")
    return EXIT_SUCCESS


def _report_result(result: ImportResult, as_json: bool) -> int:
    if as_json:
        _print_json(result.to_dict())
    else:
        data = result.to_dict()
        _print_diagnostics(data["errors"])
        _print_diagnostics(data["warnings"])
    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(result).removeprefix("SUMMARY "))
    return EXIT_SUCCESS if result.succeeded else EXIT_FAILED


def _cmd_with_service(args: argparse.Namespace, cfg: AppConfig) -> int:
    with ImportService.from_config(cfg) as service:
        if args.command == "validate":
            report = service.validate_file(args.file, args.plugin)
            if args.json:
                _print_json(report)
            else:
                print(f"{args.file}: {'valid' if report['valid'] else 'INVALID'}")
                _print_diagnostics(report["errors"])
            return EXIT_SUCCESS if report["valid"] else EXIT_FAILED

        if args.command == "history":
            _print_json(service.import_history(args.warehouse, args.limit))
            return EXIT_SUCCESS

        with ImportProgressBar(f"{args.command} {args.warehouse}") as bar:
            if args.command == "import":
                result = service.run_import(args.file, args.warehouse, args.plugin, on_progress=bar)
            else:
                result = service.run_mock(args.warehouse, args.plugin, on_progress=bar)
        return _report_result(result, args.json)


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an empty list must not fall back to sys.argv (pytest args)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = _load_app_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    set_level("DEBUG" if args.debug else cfg.log_level)
    logger.debug("debug mode enabled")

    if args.command == "plugins":
        return _cmd_plugins(cfg)
    if args.command == "inspect":
        return _cmd_inspect(args.file, args.rows)

    try:
        return _cmd_with_service(args, cfg)
    except (DatabaseConfigError, sqlite3.Error, psycopg2.Error) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
