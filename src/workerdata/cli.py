"""
Command-line interface for workerdata.

Provides commands for inspecting data files, planning worker partitions and
querying records.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

import structlog
from dotenv import load_dotenv

from workerdata import __version__
from workerdata.loaders.base import (
    DataSourceError,
    LoaderOptions,
    SourceType,
    detect_source_type,
    load_records,
)
from workerdata.loaders.excel_reader import get_all_sheets
from workerdata.partition.config import load_partition_config
from workerdata.partition.manager import DataPartitionManager
from workerdata.partition.workers import (
    build_partition_plan,
    recommended_worker_count,
    required_records,
)

logger = structlog.get_logger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for CLI."""
    load_dotenv()
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except (DataSourceError, ValueError) as e:
        logger.error("Command failed", error=str(e))
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="workerdata",
        description="Worker-partitioned test data for parallel pytest runs",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"workerdata {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    inspect_parser = subparsers.add_parser("inspect", help="Show records, headers and sheets of a data file")
    _add_source_arguments(inspect_parser)
    inspect_parser.set_defaults(func=cmd_inspect)

    plan_parser = subparsers.add_parser("plan", help="Show which records each worker owns")
    plan_parser.add_argument(
        "path",
        nargs="?",
        help="Data file to size the plan from (alternative to --records)",
    )
    plan_parser.add_argument(
        "--records",
        type=int,
        help="Total number of records available",
    )
    plan_parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Number of parallel workers (default: 75%% of CPU cores)",
    )
    plan_parser.add_argument(
        "--slice-size", "-s",
        type=int,
        help="Records reserved per worker (default: config or 10)",
    )
    plan_parser.add_argument("--sheet", help="Sheet name for Excel files")
    plan_parser.add_argument("--delimiter", help="Column delimiter for CSV files")
    plan_parser.add_argument(
        "--config",
        help="YAML file with partition settings",
    )
    plan_parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the plan as JSON",
    )
    plan_parser.set_defaults(func=cmd_plan)

    filter_parser = subparsers.add_parser("filter", help="Print records matching field values as JSON")
    _add_source_arguments(filter_parser)
    filter_parser.add_argument(
        "--where",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Required field value (can be repeated)",
    )
    filter_parser.set_defaults(func=cmd_filter)

    return parser


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", help="Path to a CSV, TSV or Excel file")
    parser.add_argument("--sheet", help="Sheet name for Excel files")
    parser.add_argument("--delimiter", help="Column delimiter for CSV files")


def configure_logging(verbose: bool) -> None:
    """Configure structured logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if verbose else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, stream=sys.stderr, format="%(message)s")


def _loader_options(args: argparse.Namespace) -> LoaderOptions:
    return LoaderOptions(sheet_name=args.sheet, delimiter=args.delimiter)


def parse_criteria(pairs: list[str]) -> dict[str, str]:
    """Parse KEY=VALUE arguments."""
    criteria = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid filter '{pair}', expected KEY=VALUE")
        criteria[key.strip()] = value.strip()
    return criteria


def cmd_inspect(args: argparse.Namespace) -> int:
    """Show a summary of a data file."""
    options = _loader_options(args)
    records = load_records(args.path, options)
    headers = list(records[0]) if records else []

    print(f"File:    {args.path}")
    if detect_source_type(args.path) == SourceType.EXCEL:
        print(f"Sheets:  {', '.join(get_all_sheets(args.path))}")
    print(f"Records: {len(records)}")
    print(f"Headers: {', '.join(headers) if headers else '(none)'}")
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Print the per-worker partition plan."""
    config = load_partition_config(args.config)
    if args.slice_size is not None:
        config = config.with_overrides(slice_size=args.slice_size)

    if args.records is not None:
        total = args.records
    elif args.path:
        total = len(load_records(args.path, _loader_options(args)))
    else:
        raise ValueError("Either a data file or --records is required")

    workers = args.workers if args.workers is not None else recommended_worker_count()
    if workers < 1:
        raise ValueError("--workers must be at least 1")

    plan = build_partition_plan(total, workers, config.slice_size)
    needed = required_records(workers, config.slice_size)

    if args.as_json:
        print(json.dumps({
            "total_records": total,
            "workers": workers,
            "slice_size": config.slice_size,
            "required_records": needed,
            "slices": [
                {
                    "worker": s.worker_index,
                    "start": s.start,
                    "stop": s.stop,
                    "available": s.available,
                    "shortfall": s.shortfall,
                }
                for s in plan
            ],
        }, indent=2))
        return 0

    print(f"Records: {total}  Workers: {workers}  Slice size: {config.slice_size}")
    print("-" * 60)
    for s in plan:
        marker = "" if s.is_complete else f"  (short by {s.shortfall})"
        print(f"Worker {s.worker_index:>3}: indices {s.start}-{s.stop - 1}, {s.available} available{marker}")
    print("-" * 60)
    if total < needed:
        print(f"Warning: {needed} records needed for full slices, {total} available")
    return 0


def cmd_filter(args: argparse.Namespace) -> int:
    """Print matching records as JSON."""
    criteria = parse_criteria(args.where)
    config = load_partition_config()
    overrides = {
        key: value
        for key, value in (("sheet_name", args.sheet), ("delimiter", args.delimiter))
        if value is not None
    }
    if overrides:
        config = config.with_overrides(**overrides)
    manager = DataPartitionManager(args.path, config)
    manager.load()
    print(json.dumps(manager.filter(criteria), indent=2))
    return 0
