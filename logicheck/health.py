from __future__ import annotations

import math
from typing import Any, Iterable

from logicheck.models import BranchStats, TransferCycle
from logicheck.shared import (
    HEALTH_AGING_WEIGHT,
    HEALTH_ATTENTION_BELOW,
    HEALTH_CRITICAL_BELOW,
    HEALTH_DIVERGENCE_WEIGHT,
    HEALTH_PENDING_WEIGHT,
    NETWORK_ATTENTION_RATE,
    NETWORK_CRITICAL_RATE,
    NETWORK_DIVERGENCE_AGING_HOURS,
    NO_DATA,
    PENDENCY_DIVERGENCE,
    PENDENCY_PENDING_DESTINATION,
    PENDENCY_PENDING_ORIGIN,
    TIER_ATTENTION,
    TIER_CRITICAL,
    TIER_STABLE,
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def health_score(pending: int, divergence: int, average_aging_hours: float) -> int:
    raw = (
        100
        - HEALTH_PENDING_WEIGHT * pending
        - HEALTH_DIVERGENCE_WEIGHT * divergence
        - HEALTH_AGING_WEIGHT * average_aging_hours
    )
    return round_half_up(min(100.0, max(0.0, raw)))


def stability_tier(score: int) -> str:
    if score < HEALTH_CRITICAL_BELOW:
        return TIER_CRITICAL
    if score < HEALTH_ATTENTION_BELOW:
        return TIER_ATTENTION
    return TIER_STABLE


def branch_stats(cycles: Iterable[TransferCycle]) -> list[BranchStats]:
    """Roll cycles up per origin branch, worst health first."""
    by_branch: dict[str, BranchStats] = {}
    pending_aging: dict[str, list[int]] = {}

    for cycle in cycles:
        stats = by_branch.setdefault(cycle.origin_branch, BranchStats(branch=cycle.origin_branch))
        stats.total_cycles += 1
        if not cycle.pending:
            stats.completed += 1
            continue
        stats.pending += 1
        if cycle.pendency_type == PENDENCY_PENDING_ORIGIN:
            stats.pending_origin += 1
        elif cycle.pendency_type == PENDENCY_PENDING_DESTINATION:
            stats.pending_destination += 1
        elif cycle.pendency_type == PENDENCY_DIVERGENCE:
            stats.divergence += 1
        pending_aging.setdefault(cycle.origin_branch, []).append(cycle.aging_hours)

    for branch, stats in by_branch.items():
        agings = pending_aging.get(branch, [])
        if agings:
            stats.average_aging_hours = round(sum(agings) / len(agings), 2)
            stats.max_aging_hours = max(agings)
        stats.health_score = health_score(stats.pending, stats.divergence, stats.average_aging_hours)
        stats.tier = stability_tier(stats.health_score)

    return sorted(by_branch.values(), key=lambda stats: (stats.health_score, stats.branch))


def pendency_rate(cycles: list[TransferCycle]) -> float | None:
    if not cycles:
        return None
    pending = sum(1 for cycle in cycles if cycle.pending)
    return pending * 100 / len(cycles)


def global_status(cycles: Iterable[TransferCycle]) -> dict[str, Any]:
    cycles = list(cycles)
    rate = pendency_rate(cycles)
    if rate is None:
        return {
            "label": NO_DATA,
            "description": "No transfer cycles available. Import manifest files to evaluate the network.",
            "pendency_rate": None,
            "total_cycles": 0,
            "pending_cycles": 0,
        }

    pending = sum(1 for cycle in cycles if cycle.pending)
    stale_divergences = [
        cycle
        for cycle in cycles
        if cycle.pendency_type == PENDENCY_DIVERGENCE
        and cycle.aging_hours > NETWORK_DIVERGENCE_AGING_HOURS
    ]

    if rate > NETWORK_CRITICAL_RATE or stale_divergences:
        label = TIER_CRITICAL
        if stale_divergences and rate <= NETWORK_CRITICAL_RATE:
            description = (
                f"{len(stale_divergences)} divergence(s) open for more than "
                f"{NETWORK_DIVERGENCE_AGING_HOURS}h; pendency rate {rate:.1f}%."
            )
        else:
            description = f"Pendency rate {rate:.1f}% is above {NETWORK_CRITICAL_RATE:.0f}%."
    elif rate > NETWORK_ATTENTION_RATE:
        label = TIER_ATTENTION
        description = f"Pendency rate {rate:.1f}% is above {NETWORK_ATTENTION_RATE:.0f}%."
    else:
        label = TIER_STABLE
        description = f"Pendency rate {rate:.1f}% is within the expected range."

    return {
        "label": label,
        "description": description,
        "pendency_rate": round(rate, 2),
        "total_cycles": len(cycles),
        "pending_cycles": pending,
    }


def completion_score(cycles: Iterable[TransferCycle]) -> int:
    """Share of complete cycles on a 0-100 scale; unrelated to branch health."""
    cycles = list(cycles)
    if not cycles:
        return 0
    concluded = sum(1 for cycle in cycles if not cycle.pending)
    return round_half_up(concluded / len(cycles) * 100)
