"""Import orchestration and the read API consumed by the presentation layer.

One import action runs to completion before returning: every file is loaded
and normalized on its own (a failure only drops that file), rows from all
accepted files are aggregated together, merged into the stored collection
and the result is written back wholesale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from logicheck.aggregation import aggregate_manifests, days_between
from logicheck.contracts import build_run_summary, current_time, utc_now_iso
from logicheck.cycles import derive_cycles
from logicheck.errors import FileParseError
from logicheck.health import branch_stats, completion_score, global_status
from logicheck.loader import load_rows
from logicheck.merge import merge_manifests, parse_import_mode, restore_manifests
from logicheck.models import (
    BranchStats,
    FileFailure,
    ImportBatch,
    ImportResult,
    Manifest,
    NormalizedRow,
    TransferCycle,
)
from logicheck.normalization import (
    FILE_KIND_CONFERENCE,
    FILE_KIND_MANIFEST,
    detect_file_kind,
    normalize_rows,
)
from logicheck.shared import IMPORT_ACCUMULATE, IMPORT_REPLACE
from logicheck.store import WorkspaceStore, generate_id

logger = logging.getLogger(__name__)

NOTHING_IMPORTED = "Nothing imported: no valid manifest rows were found in the selected files."


@dataclass
class _AcceptedFile:
    batch: ImportBatch
    rows: list[NormalizedRow]


def _headers_of(rows: Sequence[Mapping[str, Any]]) -> list[str]:
    headers: dict[str, None] = {}
    for row in rows:
        for header in row.keys():
            headers.setdefault(str(header), None)
    return list(headers)


def get_manifests(
    store: WorkspaceStore,
    workspace_id: str,
    *,
    now: datetime | None = None,
) -> list[Manifest]:
    """Stored manifests with daysOpen recomputed against ``now``."""
    now = now or current_time()
    manifests = restore_manifests(store.load_manifest_records(workspace_id))
    for manifest in manifests:
        manifest.days_open = days_between(manifest.created_at, now)
    return manifests


class Workspace:
    def __init__(self, store: WorkspaceStore | None = None, workspace_id: str | None = None) -> None:
        self.store = store if store is not None else WorkspaceStore()
        self.workspace_id = workspace_id or self.store.current_workspace_id()

    # ── Reads ──────────────────────────────────────────────────────────────

    def get_manifests(self, now: datetime | None = None) -> list[Manifest]:
        return get_manifests(self.store, self.workspace_id, now=now)

    def history(self) -> list[ImportBatch]:
        return self.store.load_history(self.workspace_id)

    def cycles(self, now: datetime | None = None) -> list[TransferCycle]:
        return derive_cycles(self.get_manifests(now), now=now)

    def branch_stats(self, now: datetime | None = None) -> list[BranchStats]:
        return branch_stats(self.cycles(now))

    def global_status(self, now: datetime | None = None) -> dict[str, Any]:
        cycles = self.cycles(now)
        status = global_status(cycles)
        status["completion_score"] = completion_score(cycles)
        return status

    # ── Imports ────────────────────────────────────────────────────────────

    def import_files(
        self,
        paths: Iterable[str | Path],
        mode: str = IMPORT_ACCUMULATE,
        *,
        now: datetime | None = None,
    ) -> ImportResult:
        mode = parse_import_mode(mode)
        result = ImportResult(workspace_id=self.workspace_id, mode=mode)
        sources: list[tuple[str, list[dict[str, Any]]]] = []
        for path in paths:
            path = Path(path)
            try:
                loaded = load_rows(path)
            except (ValueError, ImportError, OSError) as exc:
                failure = FileParseError(path.name, str(exc))
                logger.warning("%s", failure)
                result.failures.append(FileFailure(path.name, failure.reason))
                continue
            sources.append((path.name, loaded["rows"]))
        return self._import_sources(sources, mode, result, now=now)

    def import_rows(
        self,
        sources: Iterable[tuple[str, Sequence[Mapping[str, Any]]]],
        mode: str = IMPORT_ACCUMULATE,
        *,
        now: datetime | None = None,
    ) -> ImportResult:
        """Import already-parsed files given as (file name, raw rows) pairs."""
        mode = parse_import_mode(mode)
        result = ImportResult(workspace_id=self.workspace_id, mode=mode)
        return self._import_sources(list(sources), mode, result, now=now)

    def _accept_file(
        self,
        file_name: str,
        rows: Sequence[Mapping[str, Any]],
        result: ImportResult,
    ) -> _AcceptedFile | None:
        kind = detect_file_kind(_headers_of(rows))
        if kind != FILE_KIND_MANIFEST:
            reason = "legacy conference export" if kind == FILE_KIND_CONFERENCE else "no manifest columns"
            logger.info("Skipping %s: %s", file_name, reason)
            result.skipped_files.append(file_name)
            return None

        import_id = generate_id()
        normalized = normalize_rows(rows, import_id=import_id)
        if not normalized:
            logger.info("Skipping %s: no rows with a shipment id", file_name)
            result.skipped_files.append(file_name)
            return None
        batch = ImportBatch(
            id=import_id,
            file_name=file_name,
            timestamp=utc_now_iso(),
            record_count=len(normalized),
        )
        return _AcceptedFile(batch=batch, rows=normalized)

    def _import_sources(
        self,
        sources: list[tuple[str, Sequence[Mapping[str, Any]]]],
        mode: str,
        result: ImportResult,
        *,
        now: datetime | None = None,
    ) -> ImportResult:
        now = now or current_time()
        accepted: list[_AcceptedFile] = []
        for file_name, rows in sources:
            try:
                entry = self._accept_file(file_name, list(rows), result)
            except (AttributeError, TypeError) as exc:
                logger.warning("Could not read %s: %s", file_name, exc)
                result.failures.append(FileFailure(file_name, f"rows are not records: {exc}"))
                continue
            if entry is not None:
                accepted.append(entry)

        all_rows = [row for entry in accepted for row in entry.rows]
        if not all_rows:
            result.notice = NOTHING_IMPORTED
            result.manifests_total = len(self.get_manifests())
            logger.info(NOTHING_IMPORTED)
            return result

        incoming = aggregate_manifests(all_rows, now=now)
        for entry in accepted:
            entry.batch.manifest_count = sum(
                1 for manifest in incoming if manifest.import_id == entry.batch.id
            )
        batches = [entry.batch for entry in accepted]

        merged = merge_manifests(self.get_manifests(now), incoming, mode)
        history = batches if mode == IMPORT_REPLACE else self.history() + batches
        self.store.save_manifests(self.workspace_id, merged)
        self.store.save_history(self.workspace_id, history)

        result.batches = batches
        result.manifests_imported = len(incoming)
        result.manifests_total = len(merged)
        logger.info(
            "Imported %d manifests from %d file(s) in %s mode; %d stored",
            len(incoming),
            len(batches),
            mode,
            len(merged),
        )
        return result

    # ── Housekeeping ───────────────────────────────────────────────────────

    def orphans(self) -> list[Manifest]:
        valid_ids = {batch.id for batch in self.history()}
        return [
            manifest
            for manifest in self.get_manifests()
            if not manifest.import_id or manifest.import_id not in valid_ids
        ]

    def orphan_count(self) -> int:
        return len(self.orphans())

    def delete_orphans(self) -> int:
        valid_ids = {batch.id for batch in self.history()}
        manifests = self.get_manifests()
        kept = [manifest for manifest in manifests if manifest.import_id in valid_ids]
        self.store.save_manifests(self.workspace_id, kept)
        return len(manifests) - len(kept)

    def delete_batch(self, batch_id: str) -> int:
        manifests = self.get_manifests()
        kept = [manifest for manifest in manifests if manifest.import_id != batch_id]
        history = [batch for batch in self.history() if batch.id != batch_id]
        self.store.save_manifests(self.workspace_id, kept)
        self.store.save_history(self.workspace_id, history)
        return len(manifests) - len(kept)

    def reset(self) -> str:
        self.workspace_id = self.store.reset_workspace()
        return self.workspace_id


def import_summary(result: ImportResult) -> dict[str, Any]:
    warnings = [f"{failure.file_name}: {failure.reason}" for failure in result.failures]
    warnings.extend(f"{name}: skipped (not a manifest export)" for name in result.skipped_files)
    if result.notice:
        warnings.append(result.notice)
    if result.imported:
        status = "partial" if result.failures else "ok"
    else:
        status = "failed" if result.failures else "empty"
    return build_run_summary(
        contract="logicheck.import_summary",
        workspace_id=result.workspace_id,
        mode=result.mode,
        status=status,
        files=[batch.file_name for batch in result.batches],
        metrics={
            "batches": len(result.batches),
            "rows_accepted": sum(batch.record_count for batch in result.batches),
            "manifests_imported": result.manifests_imported,
            "manifests_total": result.manifests_total,
            "failed_files": len(result.failures),
            "skipped_files": len(result.skipped_files),
        },
        warnings=warnings,
    )
