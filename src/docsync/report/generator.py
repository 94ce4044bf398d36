"""
Sync report generation.

Turns per-collection summaries into a report dictionary with an overall
status, totals, failure details and follow-up recommendations.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

STATUS_PASS = "PASS"
STATUS_PARTIAL = "PARTIAL"
STATUS_FAIL = "FAIL"
STATUS_NO_DATA = "NO_DATA"


def _as_dict(summary: Any) -> dict[str, Any]:
    if isinstance(summary, dict):
        return summary
    return summary.to_dict()


def _failure_severity(summary: dict[str, Any]) -> str:
    """
    Severity of an incomplete collection

    A failure during apply after writes went through leaves the target
    partially synchronized, which is worse than a failure before any
    write.
    """
    applied = summary.get("created", 0) + summary.get("updated", 0) + summary.get("deleted", 0)
    if summary.get("phase") == "apply" and applied > 0:
        return "HIGH"
    if summary.get("phase") == "apply":
        return "MEDIUM"
    return "LOW"


def _create_failure(summary: dict[str, Any]) -> dict[str, Any]:
    return {
        "collection": summary["collection"],
        "phase": summary.get("phase"),
        "error": summary.get("error"),
        "severity": _failure_severity(summary),
        "applied": {
            "created": summary.get("created", 0),
            "updated": summary.get("updated", 0),
            "deleted": summary.get("deleted", 0),
        },
    }


def generate_report(
    summaries: Iterable[Any],
    source_db: str | None = None,
    target_db: str | None = None,
    elapsed: float | None = None,
) -> dict[str, Any]:
    """
    Generate a sync report

    Args:
        summaries: CollectionSummary objects (or their dict form)
        source_db: Source database name, for the report header
        target_db: Target database name, for the report header
        elapsed: Wall-clock duration of the whole run in seconds

    Returns:
        Dictionary containing:
        - status: PASS, PARTIAL, FAIL or NO_DATA
        - total_collections / completed / incomplete
        - totals: created, updated and deleted record counts
        - collections: per-collection summaries
        - failures: details for every incomplete collection
        - summary: Human-readable summary
        - recommendations: List of recommended actions
        - timestamp: Report generation timestamp
    """
    collections = [_as_dict(s) for s in summaries]

    totals = {"created": 0, "updated": 0, "deleted": 0}
    for summary in collections:
        for key in totals:
            totals[key] += summary.get(key, 0)

    completed = sum(1 for s in collections if s.get("complete"))
    incomplete = len(collections) - completed
    failures = [_create_failure(s) for s in collections if not s.get("complete")]

    if not collections:
        status = STATUS_NO_DATA
    elif incomplete == 0:
        status = STATUS_PASS
    elif completed == 0:
        status = STATUS_FAIL
    else:
        status = STATUS_PARTIAL

    return {
        "status": status,
        "source_db": source_db,
        "target_db": target_db,
        "total_collections": len(collections),
        "completed": completed,
        "incomplete": incomplete,
        "totals": totals,
        "elapsed_seconds": elapsed,
        "collections": collections,
        "failures": failures,
        "summary": _generate_summary(status, len(collections), completed, totals),
        "recommendations": _generate_recommendations(failures),
        "timestamp": datetime.now(UTC).isoformat(),
    }


def _generate_summary(status: str, total: int, completed: int, totals: dict[str, int]) -> str:
    if status == STATUS_NO_DATA:
        return "No collections were synchronized"

    changes = (
        f"created {totals['created']}, updated {totals['updated']}, "
        f"deleted {totals['deleted']}"
    )
    if status == STATUS_PASS:
        return f"All {total} collections synchronized ({changes})."
    return f"{completed} of {total} collections synchronized ({changes})."


def _generate_recommendations(failures: list[dict[str, Any]]) -> list[str]:
    """
    Generate actionable recommendations for incomplete collections

    Args:
        failures: Failure details from generate_report

    Returns:
        List of recommendation strings
    """
    if not failures:
        return ["Target is an exact replica of the source. No action needed."]

    recommendations = []

    by_phase: dict[str, list[str]] = {}
    for failure in failures:
        by_phase.setdefault(failure["phase"] or "unknown", []).append(failure["collection"])

    if "schema" in by_phase:
        recommendations.append(
            f"Collection or index creation failed for {', '.join(by_phase['schema'])}. "
            "Check target permissions and conflicting index definitions; "
            "no records were written to these collections."
        )

    if "diff" in by_phase:
        recommendations.append(
            f"Change detection failed for {', '.join(by_phase['diff'])}. "
            "Check that record keys share one type and that both sides sort keys "
            "identically; the target was not modified."
        )

    if "apply" in by_phase:
        recommendations.append(
            f"Writes failed for {', '.join(by_phase['apply'])}. "
            "These targets are partially synchronized; re-run the sync to converge."
        )

    return recommendations
