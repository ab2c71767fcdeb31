# src/tracking/exporter.py - v1
"""Savings report and call ledger export to JSON, CSV, and summary text."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from contactcache.tracking.models import (
    CacheSavingsReport,
    ProviderCallRecord,
    TenantUsage,
)

logger = logging.getLogger(__name__)


def export_report_json(report: CacheSavingsReport, path: Path) -> None:
    """Export a savings report as formatted JSON.

    Args:
        report: Report to export.
        path: Output file path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")


def export_calls_csv(records: list[ProviderCallRecord], path: Path) -> None:
    """Export provider call records as CSV for billing reconciliation.

    Args:
        records: Provider call records.
        path: Output file path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = list(ProviderCallRecord.model_fields)

    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for record in records:
            row = record.model_dump()
            row["timestamp"] = str(row["timestamp"])
            writer.writerow(row)


def export_report_summary(
    report: CacheSavingsReport,
    tenants: dict[str, TenantUsage] | None = None,
) -> str:
    """Generate a human-readable summary of a savings report.

    Args:
        report: Savings report.
        tenants: Optional per-organization usage to append.

    Returns:
        Formatted summary string.
    """
    top = report.top_reused_identity_hash[:12] if report.top_reused_identity_hash else "-"
    lines: list[str] = [
        "=== Contact Cache Savings ===",
        f"Contacts cached : {report.total_contacts_cached:,} "
        f"({report.verified_contacts:,} verified)",
        f"Credits saved   : {report.credits_saved:,}",
        f"Money saved     : ${report.estimated_money_saved:,.2f} "
        f"(@ ${report.cost_per_credit:.2f}/credit)",
        f"Searches        : {report.total_searches:,} "
        f"({report.total_provider_calls:,} provider calls, "
        f"{report.successful_finds:,} found, {report.failed_searches:,} failed)",
        f"Hit rate        : {report.cache_hit_rate:.1f}%",
        f"Top reuse       : {top} x{report.max_reuse_count}",
        f"Added today     : {report.contacts_added_today:,}",
        f"Active (7d)     : {report.active_cache_entries:,}",
        f"Stale           : {report.stale_cache_entries:,}",
    ]

    if tenants:
        lines.append("\n--- Provider usage by organization ---")
        for org, usage in sorted(tenants.items()):
            lines.append(
                f"  {org:25s} | {usage.provider_calls:5d} calls | "
                f"{usage.credits_charged:5d} credits | {usage.failures:4d} failed"
            )

    return "\n".join(lines)
