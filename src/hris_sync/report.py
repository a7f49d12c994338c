"""
Report formatting and export utilities.

Exports a SyncReport as JSON, as the audit CSV (current and new value per
synced attribute, unchanged columns left blank) or as console text, and
writes the flattened HR vs directory comparison CSV.
"""

import csv
import io
import json
from pathlib import Path

from .matching import index_by_employee_id
from .models import DEPARTMENT, MANAGER, MOBILE, TITLE, DirectoryEntry, SourceRecord, SyncReport

AUDIT_COLUMNS = [
    (DEPARTMENT, "Department"),
    (TITLE, "Title"),
    (MANAGER, "Manager"),
    (MOBILE, "Mobile"),
]

COMPARISON_HEADER = [
    "employee_id",
    "employee_name",
    "department_db",
    "department_ad",
    "title_db",
    "title_ad",
    "phone_db",
    "mobile_ad",
]


def results_to_csv(report: SyncReport) -> str:
    """
    Render report results as the audit CSV.

    Current and new values are only filled in for attributes the result
    actually changes.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    header = ["EmployeeID", "DisplayName"]
    for _, label in AUDIT_COLUMNS:
        header.extend([f"{label} (Current)", f"{label} (New)"])
    header.extend(["MatchMethod", "Action"])
    writer.writerow(header)

    for result in report.results:
        row = [result.employee_id or "", result.display_name]
        for attribute, _ in AUDIT_COLUMNS:
            if attribute in result.diffs:
                row.extend([result.current.get(attribute, ""), result.diffs[attribute]])
            else:
                row.extend(["", ""])
        row.extend([result.match_method.value, result.action.value])
        writer.writerow(row)

    return buffer.getvalue()


def export_report_csv(report: SyncReport, output_path: str | Path) -> None:
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        f.write(results_to_csv(report))


def export_report_json(report: SyncReport, output_path: str | Path) -> None:
    """
    Export report to JSON file

    Args:
        report: Report to export
        output_path: Path to output file
    """
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2)


def format_report_console(report: SyncReport) -> str:
    """Format a report for terminal output."""
    lines = []

    lines.append("=" * 80)
    lines.append(f"HRIS SYNC REPORT ({'DRY RUN' if report.test else 'APPLIED'})")
    lines.append("=" * 80)
    if report.started_at:
        lines.append(f"Started: {report.started_at.isoformat()}")
    lines.append(f"Duration: {report.duration_seconds}s")
    lines.append(f"Results: {len(report.results)}")
    lines.append(f"Errors: {len(report.errors)}")
    lines.append(f"Unmatched: {len(report.unmatched)}")
    lines.append("")

    if report.results:
        lines.append("CHANGES")
        lines.append("-" * 80)
        for result in report.results:
            lines.append(
                f"{result.employee_id} {result.display_name} "
                f"[{result.action.value}, {result.match_method.value}]"
            )
            lines.append(f"  Path: {result.unique_path}")
            for attribute, value in sorted(result.diffs.items()):
                lines.append(f"  {attribute}: {result.current.get(attribute, '')!r} -> {value!r}")
        lines.append("")

    if report.errors:
        lines.append("ERRORS")
        lines.append("-" * 80)
        for failure in report.errors:
            lines.append(f"{failure.employee_id}: {failure.type}: {failure.error}")
        lines.append("")

    if report.unmatched:
        lines.append("UNMATCHED")
        lines.append("-" * 80)
        lines.append(", ".join(report.unmatched))
        lines.append("")

    lines.append("=" * 80)

    return "\n".join(lines)


def write_comparison_csv(
    records: list[SourceRecord],
    entries: list[DirectoryEntry],
    output_path: str | Path,
) -> Path:
    """
    Write one row per HR record next to its directory entry's values.

    Records are joined on employee id; a record with no directory entry
    gets blank directory columns. The header is written even when there
    are no records.
    """
    index = index_by_employee_id(entries)
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(COMPARISON_HEADER)
        for record in records:
            entry = index.get(record.employee_id or "")
            writer.writerow([
                record.employee_id or "",
                record.full_name or "",
                record.department or "",
                (entry.department if entry else None) or "",
                record.position_title or "",
                (entry.title if entry else None) or "",
                record.phone_number or "",
                (entry.mobile if entry else None) or "",
            ])

    return path
