"""
weblog-data - command line entry point.

Subcommands:
    start-up                      Create missing tables, collections and indexes
    backup <web-log-id> <file>    Write a web log to an archive
    restore <file> [--new-url-base URL]
                                  Load an archive
    list                          Show the web logs in the store

Usage:
    WEBLOG_DATABASE_URI=postgresql://... weblog-data start-up

Configuration is entirely via environment variables; see config.py.

Invariants:
    - Every subcommand runs start_up first, so a fresh store works
    - The store is closed before the process exits
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import json_log_formatter

from .config import DataConfig
from .data import WebLogData, create_data
from .errors import WebLogDataError
from .tools import backup_web_log, read_archive, restore_backup

logger = logging.getLogger(__name__)


def setup_logging(config: DataConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Data layer configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("motor").setLevel(logging.WARNING)


async def _start_up(data: WebLogData, args: argparse.Namespace) -> int:
    print("Data store is ready")
    return 0


async def _backup(data: WebLogData, args: argparse.Namespace) -> int:
    result = await backup_web_log(data, args.web_log_id, args.file)
    if not result.success:
        print(f"Backup failed: {result.error}")
        return 1
    print("Backup completed successfully")
    print(f"  Web log: {result.web_log_id}")
    print(f"  File: {result.path}")
    for kind, count in result.counts.items():
        print(f"  {kind}: {count}")
    print(f"  Duration: {result.duration_ms}ms")
    return 0


async def _restore(data: WebLogData, args: argparse.Namespace) -> int:
    archive = read_archive(args.file)
    result = await restore_backup(data, archive, new_url_base=args.new_url_base)
    if not result.success:
        print(f"Restore failed: {result.error}")
        return 1
    print("Restore completed successfully")
    print(f"  Web log: {result.web_log_id} ({result.url_base})")
    for kind, count in result.counts.items():
        print(f"  {kind}: {count}")
    print(f"  Duration: {result.duration_ms}ms")
    return 0


async def _list(data: WebLogData, args: argparse.Namespace) -> int:
    web_logs = await data.web_log.all()
    if not web_logs:
        print("No web logs found")
    for web_log in web_logs:
        print(f"{web_log.id}  {web_log.url_base}  {web_log.name}")
    return 0


_COMMANDS = {
    "start-up": _start_up,
    "backup": _backup,
    "restore": _restore,
    "list": _list,
}


async def run(config: DataConfig, args: argparse.Namespace) -> int:
    """Run one subcommand against the configured store."""
    async with create_data(config) as data:
        await data.start_up()
        return await _COMMANDS[args.command](data, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="weblog-data", description="Web log data store administration"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("start-up", help="Create missing tables, collections and indexes")

    backup = commands.add_parser("backup", help="Back up a web log to an archive file")
    backup.add_argument("web_log_id", help="ID of the web log to back up")
    backup.add_argument("file", help="Archive file to write")

    restore = commands.add_parser("restore", help="Restore a web log from an archive file")
    restore.add_argument("file", help="Archive file to read")
    restore.add_argument(
        "--new-url-base", help="Restore as a new web log at this URL base (all ids regenerated)"
    )

    commands.add_parser("list", help="List the web logs in the store")
    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    # Load configuration
    try:
        config = DataConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    config.log_config()

    try:
        exit_code = asyncio.run(run(config, args))
    except WebLogDataError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
