"""
CLI command implementations.
"""

import argparse
import csv
import io
import json
import logging
import sys
from pathlib import Path

from ..config import FileSettingsProvider
from ..errors import SyncError
from ..models import SyncReport
from ..orchestrator import ReconciliationOrchestrator
from ..report import export_report_csv, export_report_json, format_report_console, results_to_csv
from ..scheduler import SyncScheduler, sync_job

logger = logging.getLogger(__name__)


def build_orchestrator(args: argparse.Namespace) -> ReconciliationOrchestrator:
    return ReconciliationOrchestrator(FileSettingsProvider(args.settings, use_vault=args.use_vault))


def parse_ids(args: argparse.Namespace) -> list[str]:
    """Employee ids from --ids and/or --ids-file, blanks dropped."""
    ids = []
    if args.ids:
        ids.extend(part.strip() for part in args.ids.split(','))
    if args.ids_file:
        with open(args.ids_file) as f:
            ids.extend(line.strip() for line in f)
    return [i for i in ids if i]


def emit_report(report: SyncReport, args: argparse.Namespace) -> None:
    if args.format == "json":
        if args.output:
            export_report_json(report, args.output)
            logger.info(f"Report saved to {args.output}")
        else:
            print(json.dumps(report.to_dict(), indent=2))
    elif args.format == "csv":
        if args.output:
            export_report_csv(report, args.output)
            logger.info(f"Report saved to {args.output}")
        else:
            print(results_to_csv(report), end="")
    else:
        print(format_report_console(report))


def _run_pass(args: argparse.Namespace, run) -> None:
    try:
        report = run(build_orchestrator(args))
    except SyncError as e:
        logger.error(f"Sync failed: {e}")
        sys.exit(1)
    emit_report(report, args)


def cmd_test(args: argparse.Namespace) -> None:
    logger.info("Starting dry-run sync")
    _run_pass(args, lambda orchestrator: orchestrator.run_full_sync(test_only=True))


def cmd_apply(args: argparse.Namespace) -> None:
    logger.info("Starting full sync")
    _run_pass(args, lambda orchestrator: orchestrator.run_full_sync(test_only=False))


def cmd_selected(args: argparse.Namespace) -> None:
    ids = parse_ids(args)
    if not ids:
        logger.error("No employee ids given")
        sys.exit(1)
    logger.info(f"Starting selected sync for {len(ids)} employee(s)")
    _run_pass(args, lambda orchestrator: orchestrator.run_selected_sync(ids))


def cmd_export(args: argparse.Namespace) -> None:
    try:
        path = build_orchestrator(args).export_comparison_report(args.output)
    except SyncError as e:
        logger.error(f"Export failed: {e}")
        sys.exit(1)
    logger.info(f"Comparison report exported to {path}")


def cmd_query(args: argparse.Namespace) -> None:
    try:
        entries = build_orchestrator(args).query_directory_users()
    except SyncError as e:
        logger.error(f"Directory query failed: {e}")
        sys.exit(1)

    rows = [
        {
            "path": e.unique_path,
            "accountName": e.account_name,
            "displayName": e.display_name,
            "employeeID": e.employee_id,
            "department": e.department,
            "title": e.title,
            "mobile": e.mobile,
        }
        for e in entries
    ]

    if args.format == "json":
        text = json.dumps(rows, indent=2)
    elif args.format == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(rows[0]) if rows else ["path"], lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        text = buffer.getvalue()
    else:
        text = "\n".join(
            f"{r['employeeID'] or '-':<12} {r['displayName'] or '-':<30} {r['department'] or '-'}"
            for r in rows
        )
        text = f"{len(rows)} directory user(s)\n{text}"

    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        logger.info(f"Directory listing saved to {args.output}")
    else:
        print(text)


def cmd_schedule(args: argparse.Namespace) -> None:
    scheduler = SyncScheduler()
    job_kwargs = {
        "settings_path": args.settings,
        "test_only": not args.apply,
        "output_dir": args.output_dir,
        "use_vault": args.use_vault,
    }

    if args.cron:
        scheduler.add_cron_job(sync_job, args.cron, "hris_sync_job", **job_kwargs)
    elif args.interval:
        scheduler.add_interval_job(sync_job, args.interval, "hris_sync_job", **job_kwargs)
    else:
        scheduler.add_frequency_job(sync_job, args.frequency or "daily", "hris_sync_job", **job_kwargs)

    logger.info(f"Starting scheduler ({'apply' if args.apply else 'dry run'}), press Ctrl+C to stop")
    scheduler.start()
