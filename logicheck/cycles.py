"""Transfer cycle derivation.

A cycle pairs the loading leg and the unloading leg reported for the same
(origin branch, shipment id). Cycles are recomputed from the manifest
collection on every read and never stored.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable

from logicheck.contracts import current_time
from logicheck.models import Manifest, TransferCycle
from logicheck.normalization import classify_leg
from logicheck.shared import (
    HIGH_PRIORITY_AGING_HOURS,
    LEG_LOADING,
    LEG_UNCLASSIFIED,
    LEG_UNLOADING,
    MEDIUM_PRIORITY_AGING_HOURS,
    NOT_AVAILABLE,
    PENDENCY_COMPLETE,
    PENDENCY_DIVERGENCE,
    PENDENCY_PENDING_DESTINATION,
    PENDENCY_PENDING_ORIGIN,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    STATUS_DIVERGENT,
    STATUS_RECONCILED,
)

PRIORITY_RANK = {PRIORITY_HIGH: 0, PRIORITY_MEDIUM: 1, PRIORITY_LOW: 2}


def leg_of(manifest: Manifest) -> str:
    if manifest.leg_type_raw:
        return classify_leg(manifest.leg_type_raw)
    return manifest.leg_type or LEG_UNCLASSIFIED


def _pick(candidates: list[Manifest]) -> Manifest | None:
    # Earliest leg wins; ties fall back to the raw label so input order never matters.
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda manifest: (manifest.created_at or datetime.min, manifest.leg_type_raw, manifest.id),
    )


def classify_pendency(loading: Manifest | None, unloading: Manifest | None) -> str:
    if (loading is not None and loading.status == STATUS_DIVERGENT) or (
        unloading is not None and unloading.status == STATUS_DIVERGENT
    ):
        return PENDENCY_DIVERGENCE
    if loading is None or loading.status != STATUS_RECONCILED:
        return PENDENCY_PENDING_ORIGIN
    if unloading is None or unloading.status != STATUS_RECONCILED:
        return PENDENCY_PENDING_DESTINATION
    return PENDENCY_COMPLETE


def priority_for(pendency_type: str, aging_hours: int) -> str:
    if pendency_type == PENDENCY_DIVERGENCE:
        return PRIORITY_HIGH
    if pendency_type != PENDENCY_COMPLETE and aging_hours >= HIGH_PRIORITY_AGING_HOURS:
        return PRIORITY_HIGH
    if pendency_type == PENDENCY_PENDING_DESTINATION and aging_hours >= MEDIUM_PRIORITY_AGING_HOURS:
        return PRIORITY_MEDIUM
    return PRIORITY_LOW


def hours_between(start: datetime | None, end: datetime) -> int:
    if start is None:
        return 0
    return max(0, math.floor((end - start).total_seconds() / 3600))


def build_cycle(
    origin_branch: str,
    shipment_id: str,
    loading: Manifest | None,
    unloading: Manifest | None,
    now: datetime,
) -> TransferCycle:
    anchor = loading if loading is not None else unloading
    created_at = anchor.created_at if anchor is not None else None
    aging_hours = hours_between(created_at, now)
    pendency_type = classify_pendency(loading, unloading)

    destination = NOT_AVAILABLE
    for leg in (loading, unloading):
        if leg is not None and leg.destination_branch != NOT_AVAILABLE:
            destination = leg.destination_branch
            break

    return TransferCycle(
        origin_branch=origin_branch,
        shipment_id=shipment_id,
        pendency_type=pendency_type,
        priority=priority_for(pendency_type, aging_hours),
        aging_hours=aging_hours,
        created_at=created_at,
        destination_branch=destination,
        loading=loading,
        unloading=unloading,
        total_invoices=loading.invoice_count if loading is not None else 0,
        total_volume=loading.total_volume if loading is not None else 0.0,
    )


def derive_cycles(
    manifests: Iterable[Manifest],
    *,
    now: datetime | None = None,
) -> list[TransferCycle]:
    """One TransferCycle per (origin branch, shipment id), in first-seen order.

    Explicit loading/unloading legs are assigned first. A leg whose label
    matches neither vocabulary only fills the loading slot when no explicit
    loading leg exists; it is never paired as an unloading leg.
    """
    now = now or current_time()
    groups: dict[tuple[str, str], dict[str, list[Manifest]]] = {}
    for manifest in manifests:
        legs = groups.setdefault(
            (manifest.origin_branch, manifest.shipment_id),
            {LEG_LOADING: [], LEG_UNLOADING: [], LEG_UNCLASSIFIED: []},
        )
        legs[leg_of(manifest)].append(manifest)

    cycles: list[TransferCycle] = []
    for (origin_branch, shipment_id), legs in groups.items():
        loading = _pick(legs[LEG_LOADING]) or _pick(legs[LEG_UNCLASSIFIED])
        unloading = _pick(legs[LEG_UNLOADING])
        cycles.append(build_cycle(origin_branch, shipment_id, loading, unloading, now))
    return cycles


def sort_by_urgency(cycles: Iterable[TransferCycle]) -> list[TransferCycle]:
    return sorted(
        cycles,
        key=lambda cycle: (
            not cycle.pending,
            PRIORITY_RANK.get(cycle.priority, len(PRIORITY_RANK)),
            -cycle.aging_hours,
            cycle.origin_branch,
            cycle.shipment_id,
        ),
    )
