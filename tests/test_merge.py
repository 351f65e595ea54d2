from __future__ import annotations

import copy
import unittest
from datetime import datetime

from logicheck.errors import ImportModeError, LogicheckError
from logicheck.merge import merge_manifests, parse_import_mode, restore_manifests
from logicheck.models import Manifest
from logicheck.shared import IMPORT_ACCUMULATE, IMPORT_REPLACE, STATUS_PENDING, STATUS_RECONCILED


def make_manifest(shipment_id: str, leg: str = "CARREGAMENTO", **overrides) -> Manifest:
    values = {
        "shipment_id": shipment_id,
        "origin_branch": "SPO",
        "leg_type_raw": leg,
        "created_at": datetime(2024, 1, 1, 12, 0),
        "invoice_count": 1,
        "total_volume": 10.0,
        "status": STATUS_PENDING,
        "import_id": "batch-1",
    }
    values.update(overrides)
    return Manifest(**values)


class ImportModeTests(unittest.TestCase):
    def test_known_modes_and_aliases(self):
        self.assertEqual(parse_import_mode("accumulate"), IMPORT_ACCUMULATE)
        self.assertEqual(parse_import_mode(" Replace "), IMPORT_REPLACE)
        self.assertEqual(parse_import_mode("somar"), IMPORT_ACCUMULATE)
        self.assertEqual(parse_import_mode("substituir"), IMPORT_REPLACE)

    def test_unknown_mode_is_rejected(self):
        with self.assertRaises(ImportModeError):
            parse_import_mode("merge-ish")
        with self.assertRaises(ValueError):
            parse_import_mode("")
        self.assertTrue(issubclass(ImportModeError, LogicheckError))


class MergeManifestsTests(unittest.TestCase):
    def test_replace_discards_the_stored_collection(self):
        existing = [make_manifest("R1"), make_manifest("R2")]
        incoming = [make_manifest("R3")]
        merged = merge_manifests(existing, incoming, IMPORT_REPLACE)
        self.assertEqual([manifest.shipment_id for manifest in merged], ["R3"])

    def test_accumulate_overwrites_whole_record_in_place(self):
        existing = [
            make_manifest("R1"),
            make_manifest("R2", total_volume=10.0, vehicle="ABC1D23"),
            make_manifest("R3"),
        ]
        incoming = [
            make_manifest("R2", total_volume=0.0, status=STATUS_RECONCILED, import_id="batch-2"),
            make_manifest("R4", import_id="batch-2"),
        ]
        merged = merge_manifests(existing, incoming, IMPORT_ACCUMULATE)

        self.assertEqual([manifest.shipment_id for manifest in merged], ["R1", "R2", "R3", "R4"])
        replaced = merged[1]
        self.assertEqual(replaced.total_volume, 0.0)
        self.assertEqual(replaced.vehicle, "N/A")
        self.assertEqual(replaced.status, STATUS_RECONCILED)
        self.assertEqual(replaced.import_id, "batch-2")

    def test_same_shipment_with_another_leg_is_a_new_record(self):
        merged = merge_manifests([make_manifest("R1")], [make_manifest("R1", leg="DESCARGA")])
        self.assertEqual(
            [manifest.key for manifest in merged],
            [("SPO", "R1", "CARREGAMENTO"), ("SPO", "R1", "DESCARGA")],
        )

    def test_inputs_are_not_mutated(self):
        existing = [make_manifest("R1"), make_manifest("R2")]
        incoming = [make_manifest("R2", total_volume=99.0), make_manifest("R5")]
        existing_before = copy.deepcopy(existing)
        incoming_before = copy.deepcopy(incoming)

        merge_manifests(existing, incoming, IMPORT_ACCUMULATE)
        merge_manifests(existing, incoming, IMPORT_REPLACE)

        self.assertEqual(existing, existing_before)
        self.assertEqual(incoming, incoming_before)

    def test_accumulate_with_nothing_stored_keeps_incoming_order(self):
        incoming = [make_manifest("R9"), make_manifest("R1")]
        merged = merge_manifests([], incoming, IMPORT_ACCUMULATE)
        self.assertEqual([manifest.shipment_id for manifest in merged], ["R9", "R1"])


class RestoreManifestsTests(unittest.TestCase):
    def test_current_schema_round_trips(self):
        manifest = make_manifest("R1", destination_branch="RIO", last_updated_at=datetime(2024, 1, 2, 8, 0))
        restored = restore_manifests([manifest.to_dict()])
        self.assertEqual(restored, [manifest])

    def test_older_schema_is_treated_as_empty(self):
        records = [make_manifest("R1").to_dict(), {"romaneio": "R0", "filial": "SPO"}]
        with self.assertLogs("logicheck.merge", level="WARNING"):
            self.assertEqual(restore_manifests(records), [])

    def test_empty_or_missing_collection(self):
        self.assertEqual(restore_manifests(None), [])
        self.assertEqual(restore_manifests([]), [])


if __name__ == "__main__":
    unittest.main()
