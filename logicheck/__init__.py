"""Shipment manifest reconciliation: manifests, transfer cycles and branch health."""

from logicheck.aggregation import aggregate_manifests
from logicheck.cycles import derive_cycles
from logicheck.health import branch_stats, completion_score, global_status
from logicheck.merge import merge_manifests
from logicheck.normalization import normalize_row, normalize_rows
from logicheck.workspace import Workspace, get_manifests

__version__ = "0.1.0"

__all__ = [
    "Workspace",
    "aggregate_manifests",
    "branch_stats",
    "completion_score",
    "derive_cycles",
    "get_manifests",
    "global_status",
    "merge_manifests",
    "normalize_row",
    "normalize_rows",
]
