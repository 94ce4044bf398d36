"""
Command-line interface for docsync.

Available commands:
- run: Sync collections once
- schedule: Sync collections periodically
- report: Render a saved sync report
"""

import os
import sys

from utils.logging import configure_from_env
from utils.tracing import initialize_tracing, shutdown_tracing

from .commands import (
    EXIT_INTERRUPTED,
    EXIT_USAGE,
    UsageError,
    cmd_report,
    cmd_run,
    cmd_schedule,
    create_store,
)
from .credentials import get_connections, get_settings, resolve_connection
from .parser import create_parser

COMMANDS = {
    'run': cmd_run,
    'schedule': cmd_schedule,
    'report': cmd_report,
}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the docsync CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_from_env(
        level=args.log_level,
        log_file=args.log_file,
        json_format=args.log_json,
    )

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(EXIT_USAGE)

    tracing = bool(
        args.otlp_endpoint
        or os.getenv("OTLP_ENDPOINT")
        or os.getenv("TRACE_CONSOLE", "false").lower() == "true"
    )
    if tracing:
        initialize_tracing(otlp_endpoint=args.otlp_endpoint)

    try:
        code = command(args)
    except UsageError as e:
        parser.error(str(e))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        code = EXIT_INTERRUPTED
    finally:
        if tracing:
            shutdown_tracing()

    sys.exit(code)


__all__ = [
    'main',
    'create_parser',
    'create_store',
    'get_connections',
    'get_settings',
    'resolve_connection',
    'cmd_run',
    'cmd_schedule',
    'cmd_report',
]


if __name__ == '__main__':
    main()
