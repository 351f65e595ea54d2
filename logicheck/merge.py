from __future__ import annotations

import logging
from typing import Any, Iterable

from logicheck.errors import ImportModeError
from logicheck.models import Manifest
from logicheck.shared import IMPORT_ACCUMULATE, IMPORT_MODES, IMPORT_REPLACE

logger = logging.getLogger(__name__)

REQUIRED_MANIFEST_FIELDS = ("originBranch", "shipmentId")


def parse_import_mode(mode: str) -> str:
    normalized = (mode or "").strip().lower()
    aliases = {"append": IMPORT_ACCUMULATE, "somar": IMPORT_ACCUMULATE, "substituir": IMPORT_REPLACE}
    normalized = aliases.get(normalized, normalized)
    if normalized not in IMPORT_MODES:
        raise ImportModeError(
            f"Unknown import mode '{mode}'. Supported: {', '.join(IMPORT_MODES)}"
        )
    return normalized


def is_current_schema(records: Iterable[Any]) -> bool:
    return all(
        isinstance(record, dict) and all(field in record for field in REQUIRED_MANIFEST_FIELDS)
        for record in records
    )


def restore_manifests(records: list[Any] | None) -> list[Manifest]:
    """Rebuild stored manifests; an older-schema collection is treated as empty."""
    if not records:
        return []
    if not is_current_schema(records):
        logger.warning(
            "Stored manifest collection predates the current schema; discarding %d records",
            len(records),
        )
        return []
    return [Manifest.from_dict(record) for record in records]


def merge_manifests(
    existing: list[Manifest],
    incoming: list[Manifest],
    mode: str = IMPORT_ACCUMULATE,
) -> list[Manifest]:
    """Return the new collection; inputs are never mutated.

    Replace keeps only ``incoming``. Accumulate upserts by key: an incoming
    manifest overwrites the whole stored record in place and unseen keys are
    appended in incoming order.
    """
    mode = parse_import_mode(mode)
    if mode == IMPORT_REPLACE:
        return list(incoming)

    replacements = {manifest.key: manifest for manifest in incoming}
    merged: list[Manifest] = []
    seen: set[tuple[str, str, str]] = set()
    for manifest in existing:
        if manifest.key in seen:
            continue
        seen.add(manifest.key)
        merged.append(replacements.get(manifest.key, manifest))
    for manifest in incoming:
        if manifest.key not in seen:
            seen.add(manifest.key)
            merged.append(replacements[manifest.key])
    return merged
