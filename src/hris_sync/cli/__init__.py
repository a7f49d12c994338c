"""
Command-line interface for HRIS to directory sync.

Available commands:
- test: dry-run full sync
- apply: full sync
- selected: sync for a list of employee ids
- export: HR vs directory comparison CSV
- query: list directory users
- schedule: periodic full syncs
"""

import atexit
import os
import sys

from sync_utils.logging import configure_from_env, shutdown_logging
from sync_utils.tracing import initialize_tracing, shutdown_tracing

from .commands import (
    cmd_apply,
    cmd_export,
    cmd_query,
    cmd_schedule,
    cmd_selected,
    cmd_test,
)
from .parser import create_parser

COMMANDS = {
    'test': cmd_test,
    'apply': cmd_apply,
    'selected': cmd_selected,
    'export': cmd_export,
    'query': cmd_query,
    'schedule': cmd_schedule,
}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the hris-sync CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Unset flags fall back to LOG_LEVEL, LOG_FILE and LOG_JSON
    configure_from_env(level=args.log_level, log_file=args.log_file, json_format=args.log_json or None)
    atexit.register(shutdown_logging)

    if os.getenv('OTLP_ENDPOINT') or os.getenv('TRACE_CONSOLE', '').lower() == 'true':
        initialize_tracing()
        atexit.register(shutdown_tracing)

    if args.command == 'selected' and not args.ids and not args.ids_file:
        parser.error("Either --ids or --ids-file is required")

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)
    command(args)


__all__ = [
    'main',
    'create_parser',
    'cmd_test',
    'cmd_apply',
    'cmd_selected',
    'cmd_export',
    'cmd_query',
    'cmd_schedule',
]


if __name__ == '__main__':
    main()
