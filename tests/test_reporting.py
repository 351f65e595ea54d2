from __future__ import annotations

import unittest
from datetime import datetime

from logicheck.models import Manifest
from logicheck.normalization import classify_leg
from logicheck.reporting import (
    aging_buckets,
    build_network_report,
    manifest_kpis,
    open_by_branch,
    open_by_leg_type,
    render_network_report_text,
    search_manifests,
)
from logicheck.shared import STATUS_DIVERGENT, STATUS_PENDING, STATUS_RECONCILED

NOW = datetime(2024, 1, 10, 12, 0)


def make_manifest(shipment_id, status, days_open=0, origin="SPO", leg="CARREGAMENTO", **overrides):
    values = {
        "shipment_id": shipment_id,
        "origin_branch": origin,
        "leg_type_raw": leg,
        "leg_type": classify_leg(leg),
        "status": status,
        "days_open": days_open,
        "created_at": datetime(2024, 1, 10 - days_open, 12, 0),
    }
    values.update(overrides)
    return Manifest(**values)


def sample_collection():
    return [
        make_manifest("R1", STATUS_RECONCILED, 9),
        make_manifest("R1", STATUS_PENDING, 2, leg="DESCARGA"),
        make_manifest("R2", STATUS_DIVERGENT, 5, origin="CWB", driver="Maria Souza"),
        make_manifest("R3", STATUS_PENDING, 0, origin="CWB"),
        make_manifest("R4", STATUS_PENDING, 8, origin="RIO", vehicle="XYZ9K88"),
    ]


class ManifestSummaryTests(unittest.TestCase):
    def test_kpis(self):
        self.assertEqual(
            manifest_kpis(sample_collection()),
            {"total": 5, "pending": 3, "divergent": 1, "reconciled": 1, "oldest_open_days": 8},
        )
        self.assertEqual(manifest_kpis([])["oldest_open_days"], 0)

    def test_open_legs_by_branch_and_leg_type(self):
        self.assertEqual(
            open_by_branch(sample_collection()),
            [{"name": "CWB", "value": 2}, {"name": "RIO", "value": 1}, {"name": "SPO", "value": 1}],
        )
        self.assertEqual(open_by_branch(sample_collection(), limit=1), [{"name": "CWB", "value": 2}])
        self.assertEqual(
            open_by_leg_type(sample_collection()),
            [{"name": "CARREGAMENTO", "value": 3}, {"name": "DESCARGA", "value": 1}],
        )

    def test_aging_buckets_count_open_legs_only(self):
        self.assertEqual(
            aging_buckets(sample_collection()),
            [
                {"name": "0-1 days", "value": 1},
                {"name": "2-3 days", "value": 1},
                {"name": "4-7 days", "value": 1},
                {"name": "8+ days", "value": 1},
            ],
        )


class SearchTests(unittest.TestCase):
    def test_open_first_then_oldest(self):
        ordered = search_manifests(sample_collection())
        self.assertEqual(
            [(manifest.shipment_id, manifest.days_open) for manifest in ordered],
            [("R4", 8), ("R2", 5), ("R1", 2), ("R3", 0), ("R1", 9)],
        )

    def test_free_text_and_status_filters(self):
        self.assertEqual([m.shipment_id for m in search_manifests(sample_collection(), "maria")], ["R2"])
        self.assertEqual([m.shipment_id for m in search_manifests(sample_collection(), "xyz9")], ["R4"])
        self.assertEqual(
            [m.shipment_id for m in search_manifests(sample_collection(), "cwb", STATUS_PENDING)],
            ["R3"],
        )
        self.assertEqual(search_manifests(sample_collection(), "nobody"), [])


class NetworkReportTests(unittest.TestCase):
    def test_report_contract_and_sections(self):
        report = build_network_report(sample_collection(), now=NOW)

        self.assertEqual(report["contract"]["name"], "logicheck.network_report")
        self.assertEqual(report["schema_version"], report["contract"]["version"])
        self.assertEqual(report["evaluated_at"], "2024-01-10T12:00:00")
        self.assertEqual(report["status"]["total_cycles"], 4)
        self.assertEqual(report["completion_score"], 0)
        self.assertEqual(report["manifests"]["total"], 5)
        self.assertEqual({item["branch"] for item in report["branches"]}, {"SPO", "CWB", "RIO"})
        self.assertEqual([cycle["priority"] for cycle in report["cycles"]], ["High", "High", "High", "Low"])
        self.assertEqual(report["cycles"][0]["shipmentId"], "R1")
        self.assertEqual(report["cycles"][0]["agingHours"], 216)

    def test_text_rendering(self):
        text = render_network_report_text(build_network_report(sample_collection(), now=NOW))
        self.assertIn("Status: Critical", text)
        self.assertIn("Branches (worst first):", text)
        self.assertIn("High priority cycles:", text)
        self.assertIn("- CWB/R2: Divergence", text)

    def test_empty_collection(self):
        report = build_network_report([], now=NOW)
        self.assertEqual(report["status"]["label"], "No Data")
        self.assertEqual(report["branches"], [])
        self.assertIn("Status: No Data", render_network_report_text(report))


if __name__ == "__main__":
    unittest.main()
