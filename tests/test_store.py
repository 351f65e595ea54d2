from __future__ import annotations

import json
import os
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest import mock

from logicheck.models import ImportBatch, Manifest
from logicheck.store import (
    STORAGE_KEYS,
    DirectoryKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    WorkspaceStore,
    default_data_dir,
)


def sample_manifest() -> Manifest:
    return Manifest(
        shipment_id="R1",
        origin_branch="SPO",
        leg_type_raw="CARREGAMENTO",
        leg_type="loading",
        created_at=datetime(2024, 1, 1, 12, 0),
        invoice_count=2,
        total_volume=4.5,
        import_id="batch-1",
    )


def sample_batch() -> ImportBatch:
    return ImportBatch(
        id="batch-1",
        file_name="romaneios.xlsx",
        timestamp="2024-01-01T12:00:00Z",
        record_count=3,
        manifest_count=1,
    )


class WorkspaceStoreTests(unittest.TestCase):
    def setUp(self):
        self.backend = MemoryKeyValueStore()
        self.store = WorkspaceStore(self.backend)

    def test_workspace_id_is_created_once_and_reused(self):
        first = self.store.current_workspace_id()
        self.assertEqual(self.store.current_workspace_id(), first)
        self.assertEqual(self.backend.get(STORAGE_KEYS["WORKSPACE_ID"]), first)

    def test_collections_are_scoped_by_workspace(self):
        self.store.save_manifests("ws-a", [sample_manifest()])
        self.store.save_history("ws-a", [sample_batch()])

        self.assertEqual(len(self.store.load_manifest_records("ws-a")), 1)
        self.assertEqual(self.store.load_manifest_records("ws-b"), [])
        self.assertEqual(self.store.load_history("ws-a"), [sample_batch()])
        self.assertIn("logicheck_manifests_ws-a", self.backend.keys())
        self.assertIn("logicheck_history_ws-a", self.backend.keys())

    def test_stored_manifest_uses_camel_case_fields(self):
        self.store.save_manifests("ws", [sample_manifest()])
        record = json.loads(self.backend.get("logicheck_manifests_ws"))[0]
        self.assertEqual(record["id"], "SPO|R1|CARREGAMENTO")
        self.assertEqual(record["shipmentId"], "R1")
        self.assertEqual(record["originBranch"], "SPO")
        self.assertEqual(record["aggregateInvoiceCount"], 2)
        self.assertEqual(record["createdAt"], "2024-01-01T12:00:00")

    def test_corrupt_blob_reads_as_empty(self):
        self.backend.set("logicheck_manifests_ws", "{not json")
        self.backend.set("logicheck_history_ws", json.dumps({"id": "x"}))
        with self.assertLogs("logicheck.store", level="ERROR"):
            self.assertEqual(self.store.load_manifest_records("ws"), [])
        with self.assertLogs("logicheck.store", level="ERROR"):
            self.assertEqual(self.store.load_history("ws"), [])

    def test_reset_rotates_the_workspace(self):
        old_id = self.store.current_workspace_id()
        self.store.save_manifests(old_id, [sample_manifest()])

        new_id = self.store.reset_workspace()

        self.assertNotEqual(new_id, old_id)
        self.assertEqual(self.store.current_workspace_id(), new_id)
        self.assertEqual(self.store.load_manifest_records(new_id), [])
        self.assertEqual(len(self.store.load_manifest_records(old_id)), 1)

    def test_clear_all_only_touches_own_keys(self):
        self.backend.set("other_app_setting", "keep")
        workspace_id = self.store.current_workspace_id()
        self.store.save_manifests(workspace_id, [sample_manifest()])

        self.store.clear_all()

        self.assertEqual(self.backend.keys(), ["other_app_setting"])

    def test_debug_info(self):
        self.store.save_manifests("ws", [sample_manifest()])
        self.store.save_history("ws", [sample_batch()])
        info = self.store.debug_info("ws")
        self.assertEqual(info["workspace_id"], "ws")
        self.assertEqual(info["manifests_stored"], 1)
        self.assertEqual(info["batches_stored"], 1)
        self.assertEqual(info["manifests_key"], "logicheck_manifests_ws")
        self.assertEqual(info["total_keys"], 2)


class KeyValueStoreInterfaceTests(unittest.TestCase):
    def test_backend_must_implement_every_operation(self):
        class GetOnly(KeyValueStore):
            def get(self, key):
                return None

        with self.assertRaises(TypeError):
            GetOnly()
        self.assertIsInstance(MemoryKeyValueStore(), KeyValueStore)


class DirectoryKeyValueStoreTests(unittest.TestCase):
    def test_round_trip_on_disk(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "data"
            store = WorkspaceStore(DirectoryKeyValueStore(root))
            store.save_manifests("ws", [sample_manifest()])

            self.assertTrue((root / "logicheck_manifests_ws.json").exists())
            self.assertFalse(list(root.glob("*.tmp")))

            reopened = WorkspaceStore(DirectoryKeyValueStore(root))
            self.assertEqual(
                reopened.load_manifest_records("ws")[0]["shipmentId"],
                "R1",
            )

    def test_missing_keys_and_deletes(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            backend = DirectoryKeyValueStore(tmpdir)
            self.assertIsNone(backend.get("logicheck_absent"))
            backend.set("logicheck_present", "[]")
            self.assertEqual(backend.keys(), ["logicheck_present"])
            backend.delete("logicheck_present")
            backend.delete("logicheck_present")
            self.assertEqual(backend.keys(), [])

    def test_data_dir_can_be_overridden(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with mock.patch.dict(os.environ, {"LOGICHECK_DATA_DIR": tmpdir}):
                self.assertEqual(default_data_dir(), Path(tmpdir))
                self.assertEqual(DirectoryKeyValueStore().root, Path(tmpdir))


if __name__ == "__main__":
    unittest.main()
