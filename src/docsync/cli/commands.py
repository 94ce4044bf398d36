"""
CLI command implementations.

This module contains the implementation of the three CLI commands:
- run: One-time sync
- schedule: Periodic scheduled sync
- report: Rendering of a saved report

Each command returns the process exit code.
"""

import argparse
import json
import logging
import sys
import time

from docsync import __version__
from docsync.config import ConnectionConfig, SyncSettings
from docsync.errors import StoreUnavailable
from docsync.report import (
    STATUS_NO_DATA,
    STATUS_PASS,
    export_report_csv,
    export_report_json,
    format_report_console,
    generate_report,
    load_report_json,
)
from docsync.scheduler import SyncScheduler, sync_job_wrapper
from docsync.store import DocumentStore, PostgresDocumentStore
from docsync.sync import select_collections, sync_collections
from utils.metrics import ApplicationInfo, MetricsPublisher

from .console import RED, YELLOW, ProgressPrinter, colorize, confirm, format_elapsed
from .credentials import get_connections, get_settings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


class UsageError(Exception):
    """Invalid combination of command-line options."""


def create_store(config: ConnectionConfig, role: str, settings: SyncSettings) -> DocumentStore:
    """Open the store for one side of the sync."""
    return PostgresDocumentStore.from_config(config, role, settings)


def _check_distinct(
    source: ConnectionConfig, target: ConnectionConfig, args: argparse.Namespace
) -> None:
    if source.endpoint == target.endpoint and args.source_db == args.target_db:
        raise UsageError(
            f"Source and target are the same database ({args.source_db} on {source.endpoint})"
        )


def _start_metrics(port: int | None) -> None:
    if port is None:
        return
    MetricsPublisher(port=port).start()
    ApplicationInfo(version=__version__)


def _write_report(report: dict, fmt: str, output: str | None) -> None:
    if fmt == 'json':
        if output:
            export_report_json(report, output)
            print(f"Report saved to {output}")
        else:
            print(json.dumps(report, indent=2, default=str))
    elif fmt == 'csv':
        if not output:
            raise UsageError("--output is required for csv format")
        export_report_csv(report, output)
        print(f"Report saved to {output}")
    else:
        rendered = format_report_console(report)
        if output:
            with open(output, 'w') as f:
                f.write(rendered)
            print(f"Report saved to {output}")
        else:
            print(rendered)


def _confirmation_message(
    source: ConnectionConfig,
    target: ConnectionConfig,
    args: argparse.Namespace,
    names: list[str],
) -> str:
    return (
        f"Target collections will be made identical to the source:\n"
        f"  source: {args.source_db} on {source.endpoint}\n"
        f"  target: {args.target_db} on {target.endpoint}\n"
        f"  collections ({len(names)}): {', '.join(names) or '-'}\n"
        + colorize("Records missing from the source will be DELETED from the target.", YELLOW)
    )


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run a one-time sync

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code
    """
    if args.format == 'csv' and not args.output:
        raise UsageError("--output is required for csv format")

    logger.info("Starting sync run")
    started = time.monotonic()

    source_config, target_config = get_connections(args)
    settings = get_settings(args)
    _check_distinct(source_config, target_config, args)
    _start_metrics(args.metrics_port)

    printer = None if args.no_progress else ProgressPrinter()

    try:
        with create_store(source_config, "source", settings) as source, \
                create_store(target_config, "target", settings) as target:
            if not source.database_exists(args.source_db):
                print(colorize(f"Source database '{args.source_db}' does not exist", RED), file=sys.stderr)
                return EXIT_FAILURE

            try:
                names = select_collections(
                    source.list_collections(args.source_db),
                    pick=args.pick_collections,
                    omit=args.omit_collections,
                )
            except ValueError as e:
                print(colorize(str(e), RED), file=sys.stderr)
                return EXIT_FAILURE

            if not args.yes:
                message = _confirmation_message(source_config, target_config, args, names)
                if not confirm(message):
                    print("ABORT!", file=sys.stderr)
                    return EXIT_FAILURE

            try:
                summaries = sync_collections(
                    source,
                    target,
                    args.source_db,
                    args.target_db,
                    names,
                    progress_callback=printer,
                    settings=settings,
                )
            finally:
                if printer is not None:
                    printer.finish()

    except StoreUnavailable as e:
        logger.error(f"Sync aborted: {e}")
        print(colorize(f"Sync aborted: {e}", RED), file=sys.stderr)
        return EXIT_FAILURE

    elapsed = time.monotonic() - started
    report = generate_report(
        summaries,
        source_db=args.source_db,
        target_db=args.target_db,
        elapsed=elapsed,
    )
    _write_report(report, args.format, args.output)

    print(f"DONE! Completed in {format_elapsed(elapsed)}")

    return EXIT_OK if report["status"] in (STATUS_PASS, STATUS_NO_DATA) else EXIT_FAILURE


def cmd_schedule(args: argparse.Namespace) -> int:
    """
    Schedule periodic syncs

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code once the scheduler stops
    """
    source_config, target_config = get_connections(args)
    settings = get_settings(args)
    _check_distinct(source_config, target_config, args)
    _start_metrics(args.metrics_port)

    scheduler = SyncScheduler()
    job_kwargs = {
        "source_config": source_config,
        "target_config": target_config,
        "source_db": args.source_db,
        "target_db": args.target_db,
        "output_dir": args.output_dir,
        "pick_collections": args.pick_collections,
        "omit_collections": args.omit_collections,
        "settings": settings,
        "store_factory": create_store,
    }

    if args.cron:
        scheduler.add_cron_job(
            sync_job_wrapper,
            args.cron,
            job_id="docsync_cron",
            **job_kwargs,
        )
        logger.info(f"Scheduled cron sync: {args.cron}")
    else:
        scheduler.add_interval_job(
            sync_job_wrapper,
            args.interval,
            job_id="docsync_interval",
            **job_kwargs,
        )
        logger.info(f"Scheduled interval sync: every {args.interval} seconds")

    print(f"Scheduler started. Reports will be saved to {args.output_dir}")
    print("Press Ctrl+C to stop")

    scheduler.start()
    return EXIT_OK


def cmd_report(args: argparse.Namespace) -> int:
    """
    Render a saved report

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code
    """
    try:
        report = load_report_json(args.input)
    except FileNotFoundError:
        print(colorize(f"Report file not found: {args.input}", RED), file=sys.stderr)
        return EXIT_FAILURE
    except ValueError as e:
        print(colorize(f"Cannot read report: {e}", RED), file=sys.stderr)
        return EXIT_FAILURE

    _write_report(report, args.format, args.output)
    return EXIT_OK
