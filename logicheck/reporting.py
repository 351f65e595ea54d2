from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Any, Iterable

from logicheck.contracts import CONTRACT_VERSIONS, build_contract, current_time, utc_now_iso
from logicheck.cycles import derive_cycles, sort_by_urgency
from logicheck.health import branch_stats, completion_score, global_status
from logicheck.models import Manifest
from logicheck.shared import (
    AGING_BUCKETS,
    NOT_AVAILABLE,
    PRIORITY_HIGH,
    STATUS_DIVERGENT,
    STATUS_PENDING,
    STATUS_RECONCILED,
)


def is_open(manifest: Manifest) -> bool:
    return manifest.status != STATUS_RECONCILED


def manifest_kpis(manifests: Iterable[Manifest]) -> dict[str, int]:
    manifests = list(manifests)
    open_days = [manifest.days_open for manifest in manifests if is_open(manifest)]
    return {
        "total": len(manifests),
        "pending": sum(1 for manifest in manifests if manifest.status == STATUS_PENDING),
        "divergent": sum(1 for manifest in manifests if manifest.status == STATUS_DIVERGENT),
        "reconciled": sum(1 for manifest in manifests if manifest.status == STATUS_RECONCILED),
        "oldest_open_days": max(open_days) if open_days else 0,
    }


def _ranked(counter: Counter) -> list[dict[str, Any]]:
    return [
        {"name": name, "value": value}
        for name, value in sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    ]


def open_by_branch(manifests: Iterable[Manifest], limit: int = 10) -> list[dict[str, Any]]:
    counter = Counter(manifest.origin_branch or NOT_AVAILABLE for manifest in manifests if is_open(manifest))
    return _ranked(counter)[:limit]


def open_by_leg_type(manifests: Iterable[Manifest]) -> list[dict[str, Any]]:
    counter = Counter(manifest.leg_type_raw or NOT_AVAILABLE for manifest in manifests if is_open(manifest))
    return _ranked(counter)


def aging_buckets(manifests: Iterable[Manifest]) -> list[dict[str, Any]]:
    counts = {label: 0 for label, _, _ in AGING_BUCKETS}
    for manifest in manifests:
        if not is_open(manifest):
            continue
        for label, low, high in AGING_BUCKETS:
            if manifest.days_open >= low and (high is None or manifest.days_open <= high):
                counts[label] += 1
                break
        else:
            counts[AGING_BUCKETS[0][0]] += 1
    return [{"name": label, "value": value} for label, value in counts.items()]


def search_manifests(
    manifests: Iterable[Manifest],
    term: str = "",
    status: str | None = None,
) -> list[Manifest]:
    """Filter by status and free text, open legs first and oldest first within each group."""
    needle = term.strip().lower()
    matches = []
    for manifest in manifests:
        if status is not None and manifest.status != status:
            continue
        if needle:
            haystack = (
                manifest.shipment_id,
                manifest.driver,
                manifest.origin_branch,
                manifest.destination_branch,
                manifest.vehicle,
                manifest.cargo_label,
                manifest.leg_type_raw,
            )
            if not any(needle in (value or "").lower() for value in haystack):
                continue
        matches.append(manifest)
    return sorted(matches, key=lambda manifest: (not is_open(manifest), -manifest.days_open))


def build_network_report(
    manifests: Iterable[Manifest],
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    manifests = list(manifests)
    now = now or current_time()
    cycles = derive_cycles(manifests, now=now)
    contract = "logicheck.network_report"
    return {
        "contract": build_contract(contract),
        "schema_version": CONTRACT_VERSIONS[contract],
        "generated_at": utc_now_iso(),
        "evaluated_at": now.isoformat(),
        "status": global_status(cycles),
        "completion_score": completion_score(cycles),
        "manifests": manifest_kpis(manifests),
        "open_by_branch": open_by_branch(manifests),
        "open_by_leg_type": open_by_leg_type(manifests),
        "aging_buckets": aging_buckets(manifests),
        "branches": [stats.to_dict() for stats in branch_stats(cycles)],
        "cycles": [cycle.to_dict() for cycle in sort_by_urgency(cycles)],
    }


def render_network_report_text(report: dict[str, Any]) -> str:
    status = report.get("status", {})
    manifests = report.get("manifests", {})
    lines = [
        "logicheck network report",
        f"Status: {status.get('label', '[unknown]')}",
        f"Reason: {status.get('description', '[none]')}",
        f"Completion score: {report.get('completion_score', 0)}",
        f"Cycles: {status.get('total_cycles', 0)} ({status.get('pending_cycles', 0)} pending)",
        f"Manifests: {manifests.get('total', 0)} "
        f"({manifests.get('pending', 0)} pending, {manifests.get('divergent', 0)} divergent)",
    ]
    branches = report.get("branches", [])
    if branches:
        lines.append("Branches (worst first):")
        lines.extend(
            f"- {item['branch']}: {item['saude']} {item['tier']} "
            f"({item['pending']} pending, {item['divergence']} divergent)"
            for item in branches
        )
    urgent = [cycle for cycle in report.get("cycles", []) if cycle.get("priority") == PRIORITY_HIGH]
    if urgent:
        lines.append("High priority cycles:")
        lines.extend(
            f"- {cycle['originBranch']}/{cycle['shipmentId']}: {cycle['pendencyType']} "
            f"{cycle['agingHours']}h"
            for cycle in urgent
        )
    return "\n".join(lines) + "\n"
