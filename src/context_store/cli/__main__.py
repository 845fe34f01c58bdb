"""
Maintenance CLI for the context store backend.

Usage:
    python -m context_store.cli <command> [options]

Available commands:
    cap                 - Keep only the newest rows of a table
    purge-errors        - Trim a destination's error log
    create-error-table  - Create a destination's error-log table

Connection settings come from CTX_SQL_* environment variables or .env.

Examples:
    python -m context_store.cli cap --destination sensors --table temp_readings --max-records 1000
    python -m context_store.cli purge-errors --destination sensors
    python -m context_store.cli create-error-table --destination sensors
"""

import argparse
import sys
from typing import List, Optional

from context_store.config.settings import get_settings
from context_store.io.backend import ContextStoreError, SQLBackend
from context_store.utils.logging import get_logger

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="context_store.cli",
        description="context-store CLI - backend maintenance operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
        help="Command to execute",
    )

    cap_parser = subparsers.add_parser(
        "cap", help="Keep only the newest rows of a table"
    )
    cap_parser.add_argument("--destination", required=True, help="Destination name")
    cap_parser.add_argument("--table", required=True, help="Table name")
    cap_parser.add_argument(
        "--max-records", type=int, required=True, help="Number of rows to keep"
    )

    purge_parser = subparsers.add_parser(
        "purge-errors", help="Trim a destination's error log"
    )
    purge_parser.add_argument("--destination", required=True, help="Destination name")

    create_parser = subparsers.add_parser(
        "create-error-table", help="Create a destination's error-log table"
    )
    create_parser.add_argument("--destination", required=True, help="Destination name")

    return parser


def _run(backend: SQLBackend, args: argparse.Namespace) -> str:
    if args.command == "cap":
        deleted = backend.cap_records(args.destination, args.table, args.max_records)
        return f"Deleted {deleted} rows from {args.destination}.{args.table}"
    if args.command == "purge-errors":
        deleted = backend.purge_error_table(args.destination)
        return f"Purged {deleted} error rows from {args.destination}"
    backend.create_error_table(args.destination)
    return f"Error table ready for {args.destination}"


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point with subcommand routing.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "max_records", 0) < 0:
        parser.error("--max-records must be >= 0")

    backend = SQLBackend(get_settings())
    try:
        print(_run(backend, args))
    except ContextStoreError as e:
        logger.error("cli.command_failed", command=args.command, **e.to_dict())
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        backend.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
