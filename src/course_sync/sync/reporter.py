"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_report`` -- full post-run summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by record kind.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ChangeSet, SyncReport

_ACTION_LABELS = {
    "add": "ADD",
    "edit": "EDIT",
    "rename": "RENAME",
    "delete": "DELETE",
}

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _mode(report: SyncReport) -> str:
    if report.up_to_date:
        return "up to date"
    if report.full_import:
        return "full import"
    return "incremental"


def format_sync_report(report: SyncReport) -> str:
    """Format a completed run as human-readable text.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report ({_mode(report)})"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append(f"Previous revision: {report.previous_revision or 'none'}")
    lines.append(f"Latest revision: {report.latest_revision}")
    lines.append("")

    if report.up_to_date:
        lines.append("No changes since the last run.")
        return "\n".join(lines)

    lines.append("Records:")
    lines.append(report.summary())
    lines.append("")

    if report.checkpoint_advanced:
        lines.append(f"Checkpoint advanced to {report.latest_revision}")
    else:
        lines.append("Checkpoint unchanged")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def _record_lines(change_set: ChangeSet) -> list[tuple[str, str, str]]:
    rows: list[tuple[str, str, str]] = []
    for kind, records in (
        ("course", change_set.courses),
        ("module", change_set.modules),
        ("section", change_set.sections),
        ("attachment", change_set.attachments),
    ):
        for record in records:
            rows.append((kind, record.action.value, record.path))
    return rows


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview, one line per record.

    Each record is shown as ``[ACTION] kind path`` in apply order.

    Args:
        report: A dry-run sync report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(
        f"Revisions: {report.previous_revision or 'none'} -> "
        f"{report.latest_revision} ({_mode(report)})"
    )
    lines.append("")

    rows = _record_lines(report.change_set)
    if not rows:
        lines.append("No changes needed.")
        return "\n".join(lines)

    for kind, action, path in rows:
        lines.append(f"  [{_ACTION_LABELS[action]}] {kind:<10} {path}")
    lines.append("")
    lines.append(f"Total: {len(rows)} record(s)")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with revisions, flags, counts, and per-record details.
    """
    records = [
        {"kind": kind, "action": action, "path": path}
        for kind, action, path in _record_lines(report.change_set)
    ]
    return {
        "previous_revision": report.previous_revision,
        "latest_revision": report.latest_revision,
        "full_import": report.full_import,
        "dry_run": report.dry_run,
        "up_to_date": report.up_to_date,
        "checkpoint_advanced": report.checkpoint_advanced,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": report.change_set.counts(),
        "records": records,
    }
