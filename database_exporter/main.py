#!/usr/bin/env python3
# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

import argparse
import signal
import sys
from typing import Dict, List, Optional

from pydantic import ValidationError

from database_exporter import __version__
from database_exporter.configuration.config_loader import load_export_configs, write_config_template
from database_exporter.configuration.export_config import ExportDatabaseConfig, ExportOptions
from database_exporter.tools.db_tools.session import ConnectionSession
from database_exporter.tools.export_tools.orchestrator import ExportRunner, RunReport
from database_exporter.utils.constants import DEFAULT_CATALOG_FILE_NAME, DEFAULT_EXPORT_DIRECTORY
from database_exporter.utils.exceptions import ErrorCode, ExporterException, setup_exception_handler
from database_exporter.utils.loggings import configure_logging, get_logger

logger = get_logger(__name__)

ACTIONS = ("export", "list-tables", "preview", "init")
HELP_OPTIONS = ("-h", "--help", "-v", "--version")


def create_parser() -> argparse.ArgumentParser:
    # Global options are shared by every subcommand; SUPPRESS keeps a subcommand from resetting them
    global_parser = argparse.ArgumentParser(add_help=False)
    global_parser.add_argument(
        "--debug", action="store_true", default=argparse.SUPPRESS, help="Enable debug level logging"
    )
    global_parser.add_argument(
        "--config",
        type=str,
        default=argparse.SUPPRESS,
        help="Path to configuration file (default: ~/.config/database_exporter/config.toml)",
    )

    parser = argparse.ArgumentParser(
        prog="database-exporter",
        description="Export SQL Server, PostgreSQL, MySQL and SQLite tables to Parquet and a DuckDB catalog",
        parents=[global_parser],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--version", action="version", version=f"Database Exporter {__version__}")

    subparsers = parser.add_subparsers(dest="action", help="Action to perform (default: export)")

    # export command
    export_parser = subparsers.add_parser(
        "export",
        help="Export every configured database",
        parents=[global_parser],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    export_parser.add_argument(
        "-e",
        "--export-directory",
        type=str,
        default=DEFAULT_EXPORT_DIRECTORY,
        help=f"Directory for the Parquet files and the catalog (default: {DEFAULT_EXPORT_DIRECTORY})",
    )
    export_parser.add_argument(
        "--no-catalog", action="store_true", help="Only write Parquet files, do not build the DuckDB catalog"
    )
    export_parser.add_argument(
        "--catalog-file",
        type=str,
        default=DEFAULT_CATALOG_FILE_NAME,
        help=f"File name of the catalog inside the export directory (default: {DEFAULT_CATALOG_FILE_NAME})",
    )
    export_parser.add_argument(
        "--separator",
        type=str,
        default=None,
        help="Separator between schema and table in catalog names (default: '.', one schema per database)",
    )
    export_parser.add_argument(
        "-l", "--limit", type=int, default=None, help="Row limit for tables without an override limit"
    )
    export_parser.add_argument(
        "--delay", type=int, default=None, help="Repeat the export forever, waiting this many seconds between runs"
    )
    export_parser.add_argument(
        "--workers", type=int, default=None, help="Tables exported in parallel (default: number of CPUs)"
    )
    export_parser.add_argument(
        "--timeout", type=int, default=None, help="Cancel the export of a database after this many seconds"
    )
    export_parser.add_argument("--only", type=str, nargs="+", help="Only export the named configuration entries")

    # list-tables command
    list_parser = subparsers.add_parser(
        "list-tables",
        help="Print the tables discovered in one configured database",
        parents=[global_parser],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    list_parser.add_argument("--name", type=str, required=True, help="Configuration entry name")

    # preview command
    preview_parser = subparsers.add_parser(
        "preview",
        help="Print the first rows of one table",
        parents=[global_parser],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    preview_parser.add_argument("--name", type=str, required=True, help="Configuration entry name")
    preview_parser.add_argument("--table", type=str, required=True, help="Table to preview")
    preview_parser.add_argument("--limit", type=int, default=10, help="Number of rows to print (default: 10)")

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Write a configuration template",
        parents=[global_parser],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    init_parser.add_argument("--path", type=str, default="", help="Where to write the template")

    return parser


def with_default_action(argv: List[str]) -> List[str]:
    """Insert ``export`` when the command line names no action.

    Only global options may precede an action, so the first token that is neither a global
    option nor the value of ``--config`` decides.
    """
    skip_value = False
    for arg in argv:
        if skip_value:
            skip_value = False
            continue
        if arg in HELP_OPTIONS or arg in ACTIONS:
            return argv
        if arg == "--config":
            skip_value = True
        elif arg != "--debug" and not arg.startswith("--config="):
            break
    return ["export"] + argv


def build_export_options(args: argparse.Namespace) -> ExportOptions:
    try:
        return ExportOptions(
            export_directory=args.export_directory,
            include_catalog=not args.no_catalog,
            catalog_file_name=args.catalog_file,
            separator=args.separator,
            row_limit=args.limit,
            delay_seconds=args.delay,
            max_workers=args.workers,
            timeout_seconds=args.timeout,
        )
    except ValidationError as e:
        raise ExporterException(
            ErrorCode.COMMON_CONFIG_ERROR, message_args={"config_error": f"Invalid command line option: {e}"}
        ) from e


def select_configs(
    configs: Dict[str, ExportDatabaseConfig], only: Optional[List[str]]
) -> Dict[str, ExportDatabaseConfig]:
    if not only:
        return configs
    unknown = [name for name in only if name not in configs]
    if unknown:
        logger.warning(f"Unknown or invalid configuration entries ignored: {', '.join(unknown)}")
    return {name: config for name, config in configs.items() if name in only}


def print_report(report: RunReport):
    for name, db_report in report.databases.items():
        if db_report.aborted:
            print(f"[FAILED] {name}: {db_report.error}")
            continue
        print(f"[OK] {name}: {len(db_report.succeeded)} exported, {len(db_report.failed)} failed")
        for result in db_report.failed:
            print(f"    {result.kind} {result.name}: {result.error}")
        if db_report.catalog_error:
            print(f"    catalog: {db_report.catalog_error}")
        for load in db_report.failed_catalog_loads:
            print(f"    catalog table {load.qualified_name}: {load.error}")


def run_export(args: argparse.Namespace) -> int:
    options = build_export_options(args)
    loaded = load_export_configs(getattr(args, "config", ""))
    configs = select_configs(loaded.configs, args.only)
    if not configs:
        logger.error("No valid configuration entry to export")
        return 1

    runner = ExportRunner(options)
    previous_handler = signal.getsignal(signal.SIGINT)

    def handle_interrupt(signum, frame):
        logger.warning("Interrupt received, cancelling the export")
        runner.cancel()
        # a second Ctrl-C falls back to the default behaviour
        signal.signal(signal.SIGINT, previous_handler)

    signal.signal(signal.SIGINT, handle_interrupt)
    try:
        while True:
            report = runner.run(configs)
            print_report(report)
            if options.delay_seconds is None or runner.cancelled:
                break
            logger.info(f"Waiting {options.delay_seconds} seconds before the next export")
            if runner.wait(options.delay_seconds):
                break
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    invalid = [name for name in loaded.errors if not args.only or name in args.only]
    return 1 if report.failed_databases or invalid else 0


def open_session(args: argparse.Namespace) -> ConnectionSession:
    loaded = load_export_configs(getattr(args, "config", ""))
    if args.name not in loaded.configs:
        reason = loaded.errors.get(args.name, "no such entry")
        raise ExporterException(
            ErrorCode.COMMON_CONFIG_ERROR,
            message_args={"config_error": f"Configuration `{args.name}` is not usable: {reason}"},
        )
    return ConnectionSession.from_config(args.name, loaded.configs[args.name], pool_size=1)


def list_tables(args: argparse.Namespace) -> int:
    with open_session(args) as session:
        for table in session.list_tables():
            print(table)
    return 0


def preview_table(args: argparse.Namespace) -> int:
    with open_session(args) as session:
        print(session.fetch_table(args.table, args.limit).to_pandas().to_string())
    return 0


def init_config(args: argparse.Namespace) -> int:
    path = write_config_template(args.path)
    print(f"Configuration template written to {path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(with_default_action(sys.argv[1:] if argv is None else argv))

    configure_logging(getattr(args, "debug", False))
    setup_exception_handler()

    try:
        if args.action == "init":
            return init_config(args)
        if args.action == "list-tables":
            return list_tables(args)
        if args.action == "preview":
            return preview_table(args)
        return run_export(args)
    except ExporterException as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
