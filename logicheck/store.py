"""Workspace-scoped persistence over a key-value store of JSON blobs.

Every collection lives under ``<prefix>_<workspace id>`` and is written
wholesale. Nothing here knows how manifests are built or merged.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable

from logicheck.errors import StoreError
from logicheck.models import ImportBatch, Manifest

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "WORKSPACE_ID": "logicheck_current_workspace_id",
    "MANIFESTS_PREFIX": "logicheck_manifests",
    "HISTORY_PREFIX": "logicheck_history",
}
KEY_NAMESPACE = "logicheck_"
DEFAULT_DATA_DIR = Path("~/.logicheck")


def default_data_dir() -> Path:
    override = os.environ.get("LOGICHECK_DATA_DIR")
    return Path(override or DEFAULT_DATA_DIR).expanduser()


def generate_id() -> str:
    return str(uuid.uuid4())


class KeyValueStore(ABC):
    """String blobs by key; the only surface WorkspaceStore needs from a backend."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        ...


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class DirectoryKeyValueStore(KeyValueStore):
    """One ``<key>.json`` file per key; writes go through a temp file and rename."""

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root) if root is not None else default_data_dir()

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Could not read {path}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise StoreError(f"Could not write {path}: {exc}") from exc

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StoreError(f"Could not delete {path}: {exc}") from exc

    def keys(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(path.name[: -len(".json")] for path in self.root.glob("*.json"))


class WorkspaceStore:
    def __init__(self, backend: KeyValueStore | None = None) -> None:
        self.backend = backend if backend is not None else MemoryKeyValueStore()

    @staticmethod
    def scoped_key(prefix: str, workspace_id: str) -> str:
        return f"{STORAGE_KEYS[prefix]}_{workspace_id}"

    def _read_list(self, key: str) -> list[Any]:
        raw = self.backend.get(key)
        if not raw:
            return []
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Stored blob %s is not valid JSON; treating it as empty", key)
            return []
        if not isinstance(payload, list):
            logger.error("Stored blob %s is not a JSON array; treating it as empty", key)
            return []
        return payload

    def _write_list(self, key: str, records: Iterable[dict[str, Any]]) -> None:
        self.backend.set(key, json.dumps(list(records), ensure_ascii=False))

    # ── Workspace identity ─────────────────────────────────────────────────

    def current_workspace_id(self) -> str:
        workspace_id = self.backend.get(STORAGE_KEYS["WORKSPACE_ID"])
        if not workspace_id:
            workspace_id = generate_id()
            self.backend.set(STORAGE_KEYS["WORKSPACE_ID"], workspace_id)
        return workspace_id

    def reset_workspace(self) -> str:
        workspace_id = generate_id()
        self.backend.set(STORAGE_KEYS["WORKSPACE_ID"], workspace_id)
        self._write_list(self.scoped_key("MANIFESTS_PREFIX", workspace_id), [])
        self._write_list(self.scoped_key("HISTORY_PREFIX", workspace_id), [])
        logger.warning("Workspace rotated; new id %s", workspace_id)
        return workspace_id

    def clear_all(self) -> None:
        keys = [key for key in self.backend.keys() if key.startswith(KEY_NAMESPACE)]
        for key in keys:
            self.backend.delete(key)
        logger.warning("Cleared %d stored keys", len(keys))

    # ── Collections ────────────────────────────────────────────────────────

    def load_manifest_records(self, workspace_id: str) -> list[Any]:
        return self._read_list(self.scoped_key("MANIFESTS_PREFIX", workspace_id))

    def save_manifests(self, workspace_id: str, manifests: Iterable[Manifest]) -> None:
        self._write_list(
            self.scoped_key("MANIFESTS_PREFIX", workspace_id),
            (manifest.to_dict() for manifest in manifests),
        )

    def load_history(self, workspace_id: str) -> list[ImportBatch]:
        batches = []
        for record in self._read_list(self.scoped_key("HISTORY_PREFIX", workspace_id)):
            if isinstance(record, dict) and record.get("id"):
                batches.append(ImportBatch.from_dict(record))
        return batches

    def save_history(self, workspace_id: str, batches: Iterable[ImportBatch]) -> None:
        self._write_list(
            self.scoped_key("HISTORY_PREFIX", workspace_id),
            (batch.to_dict() for batch in batches),
        )

    def debug_info(self, workspace_id: str) -> dict[str, Any]:
        keys = [key for key in self.backend.keys() if key.startswith(KEY_NAMESPACE)]
        return {
            "workspace_id": workspace_id,
            "total_keys": len(keys),
            "keys": sorted(keys),
            "manifests_stored": len(self.load_manifest_records(workspace_id)),
            "batches_stored": len(self._read_list(self.scoped_key("HISTORY_PREFIX", workspace_id))),
            "manifests_key": self.scoped_key("MANIFESTS_PREFIX", workspace_id),
        }
