"""
Report formatting and export utilities.

Exports sync reports as JSON, CSV or a console rendering.
"""

import csv
import json
from typing import Any


def export_report_json(report: dict[str, Any], output_path: str) -> None:
    """
    Export report to JSON file

    Args:
        report: Report dictionary
        output_path: Path to output file
    """
    with open(output_path, 'w') as f:
        json.dump(report, f, indent=2, default=str)


def load_report_json(input_path: str) -> dict[str, Any]:
    """Load a report previously written by export_report_json."""
    with open(input_path) as f:
        report = json.load(f)

    if not isinstance(report, dict) or "status" not in report:
        raise ValueError(f"{input_path} is not a docsync report")
    return report


def export_report_csv(report: dict[str, Any], output_path: str) -> None:
    """
    Export report to CSV file, one row per collection

    Args:
        report: Report dictionary
        output_path: Path to output file
    """
    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)

        writer.writerow([
            "Collection",
            "Status",
            "Created",
            "Updated",
            "Deleted",
            "Elapsed Seconds",
            "Failed Phase",
            "Error",
        ])

        for collection in report.get("collections", []):
            writer.writerow([
                collection.get("collection", ""),
                "COMPLETE" if collection.get("complete") else "INCOMPLETE",
                collection.get("created", 0),
                collection.get("updated", 0),
                collection.get("deleted", 0),
                f"{collection.get('elapsed', 0.0):.3f}",
                collection.get("phase") or "",
                collection.get("error") or "",
            ])


def format_report_console(report: dict[str, Any]) -> str:
    """
    Format report for console output

    Args:
        report: Report dictionary

    Returns:
        Formatted string for console display
    """
    lines = []
    totals = report.get("totals", {})

    lines.append("=" * 80)
    lines.append("SYNC REPORT")
    lines.append("=" * 80)
    lines.append(f"Status: {report['status']}")
    lines.append(f"Timestamp: {report['timestamp']}")
    if report.get("source_db") or report.get("target_db"):
        lines.append(f"Source -> Target: {report.get('source_db')} -> {report.get('target_db')}")
    lines.append(f"Total Collections: {report['total_collections']}")
    lines.append(f"Completed: {report['completed']}")
    lines.append(f"Incomplete: {report['incomplete']}")
    lines.append(f"Created: {totals.get('created', 0):,}")
    lines.append(f"Updated: {totals.get('updated', 0):,}")
    lines.append(f"Deleted: {totals.get('deleted', 0):,}")
    lines.append("")

    lines.append("SUMMARY")
    lines.append("-" * 80)
    lines.append(report.get('summary', ''))
    lines.append("")

    if report.get('collections'):
        lines.append("COLLECTIONS")
        lines.append("-" * 80)
        for coll in report['collections']:
            state = "ok" if coll.get("complete") else f"INCOMPLETE ({coll.get('phase')})"
            lines.append(
                f"{coll['collection']:<30} {state:<20} "
                f"+{coll.get('created', 0)} ~{coll.get('updated', 0)} -{coll.get('deleted', 0)} "
                f"in {coll.get('elapsed', 0.0):.1f}s"
            )
        lines.append("")

    if report.get('failures'):
        lines.append("FAILURES")
        lines.append("-" * 80)
        for failure in report['failures']:
            applied = failure.get("applied", {})
            lines.append(f"Collection: {failure['collection']}")
            lines.append(f"  Phase: {failure.get('phase')}")
            lines.append(f"  Severity: {failure.get('severity')}")
            lines.append(f"  Error: {failure.get('error')}")
            lines.append(
                f"  Applied before failure: created {applied.get('created', 0)}, "
                f"updated {applied.get('updated', 0)}, deleted {applied.get('deleted', 0)}"
            )
            lines.append("")

    if report.get('recommendations'):
        lines.append("RECOMMENDATIONS")
        lines.append("-" * 80)
        for i, rec in enumerate(report['recommendations'], 1):
            lines.append(f"{i}. {rec}")
        lines.append("")

    lines.append("=" * 80)

    return "\n".join(lines)
