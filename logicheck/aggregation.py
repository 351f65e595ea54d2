"""Manifest aggregation: one Manifest per (origin branch, shipment id, raw leg type)."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable

from logicheck.contracts import current_time
from logicheck.models import Manifest, NormalizedRow
from logicheck.normalization import classify_leg, is_divergent_status, is_incomplete
from logicheck.shared import (
    NOT_AVAILABLE,
    STATUS_DIVERGENT,
    STATUS_PENDING,
    STATUS_RECONCILED,
)


def group_rows(rows: Iterable[NormalizedRow]) -> dict[tuple[str, str, str], list[NormalizedRow]]:
    groups: dict[tuple[str, str, str], list[NormalizedRow]] = {}
    for row in rows:
        groups.setdefault(row.key, []).append(row)
    return groups


def manifest_status(rows: list[NormalizedRow]) -> str:
    if any(is_divergent_status(row.line_status) for row in rows):
        return STATUS_DIVERGENT
    if any(is_incomplete(row) for row in rows):
        return STATUS_PENDING
    return STATUS_RECONCILED


def days_between(start: datetime | None, end: datetime) -> int:
    if start is None:
        return 0
    return max(0, math.floor((end - start).total_seconds() / 86400))


def _first_known(rows: list[NormalizedRow], attribute: str) -> str:
    for row in rows:
        value = getattr(row, attribute)
        if value and value != NOT_AVAILABLE:
            return value
    return NOT_AVAILABLE


def _creation_date(rows: list[NormalizedRow], processed_at: datetime) -> datetime:
    for row in rows:
        if row.created_at is not None:
            return row.created_at
    for row in rows:
        if row.completion_date is not None:
            return row.completion_date
    return processed_at


def build_manifest(
    rows: list[NormalizedRow],
    *,
    now: datetime,
    updated_at: datetime,
) -> Manifest:
    first = rows[0]
    invoices = {row.invoice_id for row in rows if row.invoice_id}
    created_at = _creation_date(rows, now)
    return Manifest(
        shipment_id=first.shipment_id,
        origin_branch=first.origin_branch,
        leg_type_raw=first.leg_type_raw,
        leg_type=classify_leg(first.leg_type_raw),
        cargo_label=_first_known(rows, "cargo_label"),
        destination_branch=_first_known(rows, "destination_branch"),
        vehicle=_first_known(rows, "vehicle"),
        driver=_first_known(rows, "driver"),
        created_at=created_at,
        invoice_count=len(invoices),
        total_volume=round(sum(row.volume for row in rows), 3),
        total_weight=round(sum(row.weight for row in rows), 3),
        status=manifest_status(rows),
        days_open=days_between(created_at, now),
        last_updated_at=updated_at,
        import_id=first.import_id,
    )


def aggregate_manifests(
    rows: Iterable[NormalizedRow],
    *,
    now: datetime | None = None,
) -> list[Manifest]:
    """Aggregate one import batch. Output order follows first appearance of each key."""
    now = now or current_time()
    updated_at = current_time()
    return [
        build_manifest(group, now=now, updated_at=updated_at)
        for group in group_rows(rows).values()
    ]
