"""
Command-line argument parser configuration.
"""

import argparse
import os

from ..scheduler import FREQUENCIES

DEFAULT_SETTINGS_PATH = "settings.json"


def _add_output_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--format',
        choices=['console', 'json', 'csv'],
        default='console',
        help='Output format (default: console)'
    )
    parser.add_argument(
        '--output',
        help='Write to this file instead of stdout'
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog='hris-sync',
        description="Synchronize directory user attributes from the HRIS employee database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Dry run: show what would change
  hris-sync test

  # Apply changes for the whole staff population
  hris-sync apply --format csv --output changes.csv

  # Apply changes for a few employees
  hris-sync selected --ids MTI000123,MTI000456

  # Side-by-side HR vs directory comparison for audit
  hris-sync export --output comparison.csv

  # List directory users
  hris-sync query --format json --output users.json

  # Weekly scheduled sync (Sunday midnight) that applies changes
  hris-sync schedule --frequency weekly --apply
        """
    )

    parser.add_argument(
        '--settings',
        default=os.getenv('HRIS_SYNC_SETTINGS', DEFAULT_SETTINGS_PATH),
        help='Settings JSON file (default: $HRIS_SYNC_SETTINGS or settings.json)'
    )
    parser.add_argument(
        '--use-vault',
        action='store_true',
        help='Fetch HRIS and directory credentials from HashiCorp Vault'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: $LOG_LEVEL or INFO)'
    )
    parser.add_argument(
        '--log-file',
        help='Also write logs to this file, rotated (default: $LOG_FILE)'
    )
    parser.add_argument(
        '--log-json',
        action='store_true',
        help='Emit JSON log lines (default: $LOG_JSON)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    test_parser = subparsers.add_parser('test', help='Dry run: compute diffs without writing')
    _add_output_options(test_parser)

    apply_parser = subparsers.add_parser('apply', help='Full sync: apply every diff')
    _add_output_options(apply_parser)

    selected_parser = subparsers.add_parser('selected', help='Apply diffs for selected employees')
    selected_parser.add_argument(
        '--ids',
        help='Comma-separated list of employee ids'
    )
    selected_parser.add_argument(
        '--ids-file',
        help='File containing employee ids (one per line)'
    )
    _add_output_options(selected_parser)

    export_parser = subparsers.add_parser('export', help='Write the HR vs directory comparison CSV')
    export_parser.add_argument(
        '--output',
        required=True,
        help='Output CSV path'
    )

    query_parser = subparsers.add_parser('query', help='List directory users')
    _add_output_options(query_parser)

    schedule_parser = subparsers.add_parser('schedule', help='Run full syncs on a schedule')
    when = schedule_parser.add_mutually_exclusive_group()
    when.add_argument(
        '--frequency',
        choices=sorted(FREQUENCIES),
        help='Named frequency, all at midnight (daily, weekly on Sunday, monthly on the 1st)'
    )
    when.add_argument(
        '--cron',
        help='Cron expression (e.g., "0 2 * * *" for 02:00 daily)'
    )
    when.add_argument(
        '--interval',
        type=int,
        help='Interval in seconds'
    )
    schedule_parser.add_argument(
        '--apply',
        action='store_true',
        help='Apply changes (default is a dry run)'
    )
    schedule_parser.add_argument(
        '--output-dir',
        default='./hris_sync_reports',
        help='Directory to save JSON reports (default: ./hris_sync_reports)'
    )

    return parser
