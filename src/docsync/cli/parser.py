"""
Command-line argument parser configuration.

Defines the `docsync` commands and their options.
"""

import argparse

from docsync import __version__


def _comma_list(value: str) -> list[str]:
    names = [name.strip() for name in value.split(',') if name.strip()]
    if not names:
        raise argparse.ArgumentTypeError("expected a comma separated list of names")
    return names


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from e
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {number}")
    return number


def _add_sync_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by `run` and `schedule`."""
    parser.add_argument(
        '--source-db', '--sd',
        dest='source_db',
        required=True,
        help='Source database'
    )
    parser.add_argument(
        '--target-db', '--td',
        dest='target_db',
        required=True,
        help='Target database (created when missing)'
    )
    parser.add_argument(
        '--source-host', '--sh',
        dest='source_host',
        help="Source host[:port] (default: $DOCSYNC_SOURCE_HOST or 'localhost:5432')"
    )
    parser.add_argument(
        '--target-host', '--th',
        dest='target_host',
        help="Target host[:port] (default: $DOCSYNC_TARGET_HOST or 'localhost:5432')"
    )

    selection = parser.add_mutually_exclusive_group()
    selection.add_argument(
        '--pick-collections', '--pc',
        dest='pick_collections',
        type=_comma_list,
        help='Comma separated list of collections to sync (whitelist)'
    )
    selection.add_argument(
        '--omit-collections', '--oc',
        dest='omit_collections',
        type=_comma_list,
        help='Comma separated list of collections to ignore (blacklist)'
    )

    parser.add_argument('--user', help='Source and target username')
    parser.add_argument('--password', help='Source and target password')
    parser.add_argument('--source-user', '--su', dest='source_user', help='Source username, overrides --user')
    parser.add_argument('--source-password', '--sp', dest='source_password', help='Source password, overrides --password')
    parser.add_argument('--target-user', '--tu', dest='target_user', help='Target username, overrides --user')
    parser.add_argument('--target-password', '--tp', dest='target_password', help='Target password, overrides --password')

    parser.add_argument(
        '--batch-size',
        type=_positive_int,
        help='Keys per bulk request (default: $DOCSYNC_BATCH_SIZE or 200)'
    )
    parser.add_argument(
        '--write-concurrency',
        type=_positive_int,
        help='Concurrent bulk writes per collection (default: $DOCSYNC_WRITE_CONCURRENCY or 2)'
    )
    parser.add_argument(
        '--metrics-port',
        type=int,
        help='Expose Prometheus metrics on this port'
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog='docsync',
        description="Synchronize collections of a document database into another database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync every collection of 'shop' into 'shop_copy' on another server
  docsync run --source-db shop --target-db shop_copy --target-host replica:5432

  # Only sync two collections, without the confirmation prompt
  docsync run --sd shop --td shop_copy --th replica --pc users,orders --yes

  # Different credentials per side
  docsync run --sd shop --td shop --th replica --su reader --tu writer --tp secret

  # Sync every 6 hours, saving a JSON report per run
  docsync schedule --sd shop --td shop --th replica --cron "0 */6 * * *" --output-dir reports

  # Render a saved report
  docsync report --input reports/sync_20240101_000000.json --format console
        """
    )

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: $LOG_LEVEL or INFO)'
    )
    parser.add_argument('--log-file', help='Also write logs to this rotating file')
    parser.add_argument(
        '--log-json',
        action='store_true',
        default=None,
        help='Emit JSON logs'
    )
    parser.add_argument(
        '--otlp-endpoint',
        help='Export traces to this OTLP collector (default: $OTLP_ENDPOINT)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========== Run command ==========
    run_parser = subparsers.add_parser('run', help='Run a one-time sync')
    _add_sync_arguments(run_parser)
    run_parser.add_argument(
        '--yes', '-y',
        action='store_true',
        help='Do not ask for confirmation'
    )
    run_parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Do not print live progress'
    )
    run_parser.add_argument(
        '--output',
        help='Output file path for the report'
    )
    run_parser.add_argument(
        '--format',
        choices=['console', 'json', 'csv'],
        default='console',
        help='Report format (default: console)'
    )

    # ========== Schedule command ==========
    schedule_parser = subparsers.add_parser('schedule', help='Schedule periodic syncs')
    _add_sync_arguments(schedule_parser)
    when = schedule_parser.add_mutually_exclusive_group()
    when.add_argument(
        '--cron',
        help='Cron expression (e.g., "0 */6 * * *" for every 6 hours)'
    )
    when.add_argument(
        '--interval',
        type=_positive_int,
        default=3600,
        help='Interval in seconds (default: 3600 = 1 hour)'
    )
    schedule_parser.add_argument(
        '--output-dir',
        default='./sync_reports',
        help='Directory to save sync reports (default: ./sync_reports)'
    )

    # ========== Report command ==========
    report_parser = subparsers.add_parser('report', help='Render a saved sync report')
    report_parser.add_argument(
        '--input',
        required=True,
        help='Input JSON report file'
    )
    report_parser.add_argument(
        '--format',
        choices=['console', 'json', 'csv'],
        default='console',
        help='Output format (default: console)'
    )
    report_parser.add_argument(
        '--output',
        help='Output file path (required for csv; json is printed to stdout without it)'
    )

    return parser
