"""
Job functions run by the scheduler.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)


def sync_job(
    settings_path: str,
    test_only: bool = True,
    output_dir: str = "./reports",
    use_vault: bool = False,
) -> Path:
    """
    Run one full sync pass and save its JSON report.

    Settings are re-read from ``settings_path`` on every run.

    Args:
        settings_path: JSON settings document
        test_only: Compute diffs without writing
        output_dir: Directory the report is written to
        use_vault: Fetch credentials from Vault on every run

    Returns:
        Path of the written report
    """
    from ..config import FileSettingsProvider
    from ..orchestrator import ReconciliationOrchestrator
    from ..report import export_report_json

    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    output_path = Path(output_dir) / f"hris_sync_{'test' if test_only else 'apply'}_{timestamp}.json"

    logger.info(f"Starting scheduled sync at {timestamp} (test_only={test_only})")

    try:
        orchestrator = ReconciliationOrchestrator(FileSettingsProvider(settings_path, use_vault=use_vault))
        report = orchestrator.run_full_sync(test_only=test_only)
        export_report_json(report, output_path)
    except Exception as e:
        logger.error(f"Scheduled sync failed: {e}")
        raise

    logger.info(
        f"Scheduled sync complete: {len(report.results)} results, "
        f"{len(report.errors)} errors. Report saved to {output_path}"
    )
    return output_path
