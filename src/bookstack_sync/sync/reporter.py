"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_report`` -- full post-sync summary.
- ``format_conflict`` -- one conflict, for the interactive terminal prompt.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ConflictInfo, SyncReport, SyncResult

# Lines of local content shown with a conflict.
PREVIEW_LINES = 15


def _describe(result: SyncResult) -> str:
    label = f"{result.kind.value} '{result.name}'" if result.name else result.kind.value
    if result.remote_id is not None:
        label += f" ({result.remote_id})"
    if result.local_path:
        label += f" <-> {result.local_path}"
    return label


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped pages are summarised by count only to avoid excessive output.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    lines.append(f"Sync report ({report.mode.value})")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    counts = report.counts
    lines.append(
        f"{counts.pulled} pulled, {counts.pushed} pushed, "
        f"{counts.created} created, {counts.skipped} skipped, "
        f"{counts.errors} errors"
    )
    lines.append("")

    sections = (
        ("Pulled from BookStack:", report.pulled),
        ("Pushed to BookStack:", report.pushed),
        ("Created in BookStack:", report.created),
    )
    for title, results in sections:
        if results:
            lines.append(title)
            for r in results:
                lines.append(f"  {_describe(r)}")
            lines.append("")

    if report.conflicts:
        lines.append("Conflicts:")
        for r in report.conflicts:
            outcome = r.error or f"resolved by {r.action.value}"
            lines.append(f"  {_describe(r)}: {outcome}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {_describe(r)}: {r.error}")
        lines.append("")

    if counts.skipped:
        lines.append(f"Skipped: {counts.skipped} unchanged")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Conflict prompt
# ------------------------------------------------------------------


def format_conflict(conflict: ConflictInfo) -> str:
    """Format a single conflict for interactive review."""
    lines: list[str] = []
    if conflict.collision:
        lines.append(
            f"Untracked file in the way of page '{conflict.page_name}' "
            f"({conflict.page_id}): {conflict.local_path}"
        )
    else:
        lines.append(
            f"Conflict: '{conflict.page_name}' ({conflict.page_id}) "
            f"<-> {conflict.local_path}"
        )
    lines.append(f"  Last synced:     {conflict.last_synced or 'never'}")
    lines.append(f"  Local modified:  {conflict.local_modified or 'unknown'}")
    lines.append(f"  Remote updated:  {conflict.remote_updated or 'unknown'}")
    lines.append("")

    content_lines = conflict.local_content.splitlines()
    if content_lines:
        lines.append("--- Local content ---")
        for line in content_lines[:PREVIEW_LINES]:
            lines.append(f"  {line}")
        if len(content_lines) > PREVIEW_LINES:
            lines.append(
                f"  ... ({len(content_lines) - PREVIEW_LINES} more lines)"
            )
    else:
        lines.append("(local file is empty)")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        report: The sync report.

    Returns:
        Dict with mode, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "kind": r.kind.value,
            "remote_id": r.remote_id,
            "name": r.name,
            "local_path": r.local_path,
            "action": r.action.value,
            "success": r.success,
        }
        if r.conflict:
            entry["conflict"] = True
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "mode": report.mode.value,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": report.counts.model_dump(),
        "conflicts": len(report.conflicts),
        "summary": report.summary(),
        "results": results_list,
    }
