"""Record types shared by the aggregation, cycle and health layers.

Manifests and import batches are persisted as flat JSON arrays, so both carry
``to_dict``/``from_dict`` with camelCase keys. Cycles and branch stats are
never stored; their ``to_dict`` exists for presentation only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from logicheck.contracts import from_iso, to_iso
from logicheck.shared import LEG_UNCLASSIFIED, NOT_AVAILABLE, PENDENCY_COMPLETE, STATUS_PENDING


@dataclass
class NormalizedRow:
    shipment_id: str
    origin_branch: str
    leg_type_raw: str
    destination_branch: str = NOT_AVAILABLE
    cargo_label: str = NOT_AVAILABLE
    vehicle: str = NOT_AVAILABLE
    driver: str = NOT_AVAILABLE
    invoice_id: str | None = None
    volume: float = 0.0
    weight: float = 0.0
    created_at: datetime | None = None
    completion_date: datetime | None = None
    completion_operator: str | None = None
    line_status: str = ""
    import_id: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.origin_branch, self.shipment_id, self.leg_type_raw)


@dataclass
class Manifest:
    shipment_id: str
    origin_branch: str
    leg_type_raw: str
    leg_type: str = LEG_UNCLASSIFIED
    cargo_label: str = NOT_AVAILABLE
    destination_branch: str = NOT_AVAILABLE
    vehicle: str = NOT_AVAILABLE
    driver: str = NOT_AVAILABLE
    created_at: datetime | None = None
    invoice_count: int = 0
    total_volume: float = 0.0
    total_weight: float = 0.0
    status: str = STATUS_PENDING
    days_open: int = 0
    last_updated_at: datetime | None = None
    import_id: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.origin_branch, self.shipment_id, self.leg_type_raw)

    @property
    def id(self) -> str:
        return "|".join(self.key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "shipmentId": self.shipment_id,
            "originBranch": self.origin_branch,
            "legTypeRaw": self.leg_type_raw,
            "legType": self.leg_type,
            "cargoLabel": self.cargo_label,
            "destinationBranch": self.destination_branch,
            "vehicle": self.vehicle,
            "driver": self.driver,
            "createdAt": to_iso(self.created_at),
            "aggregateInvoiceCount": self.invoice_count,
            "aggregateVolume": self.total_volume,
            "aggregateWeight": self.total_weight,
            "status": self.status,
            "daysOpen": self.days_open,
            "lastUpdatedAt": to_iso(self.last_updated_at),
            "importId": self.import_id,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Manifest":
        return cls(
            shipment_id=str(payload["shipmentId"]),
            origin_branch=str(payload["originBranch"]),
            leg_type_raw=str(payload.get("legTypeRaw") or ""),
            leg_type=str(payload.get("legType") or LEG_UNCLASSIFIED),
            cargo_label=str(payload.get("cargoLabel") or NOT_AVAILABLE),
            destination_branch=str(payload.get("destinationBranch") or NOT_AVAILABLE),
            vehicle=str(payload.get("vehicle") or NOT_AVAILABLE),
            driver=str(payload.get("driver") or NOT_AVAILABLE),
            created_at=from_iso(payload.get("createdAt")),
            invoice_count=int(payload.get("aggregateInvoiceCount") or 0),
            total_volume=float(payload.get("aggregateVolume") or 0.0),
            total_weight=float(payload.get("aggregateWeight") or 0.0),
            status=str(payload.get("status") or STATUS_PENDING),
            days_open=int(payload.get("daysOpen") or 0),
            last_updated_at=from_iso(payload.get("lastUpdatedAt")),
            import_id=payload.get("importId"),
        )


@dataclass
class TransferCycle:
    origin_branch: str
    shipment_id: str
    pendency_type: str
    priority: str
    aging_hours: int
    created_at: datetime | None = None
    destination_branch: str = NOT_AVAILABLE
    loading: Manifest | None = None
    unloading: Manifest | None = None
    total_invoices: int = 0
    total_volume: float = 0.0

    @property
    def key(self) -> tuple[str, str]:
        return (self.origin_branch, self.shipment_id)

    @property
    def pending(self) -> bool:
        return self.pendency_type != PENDENCY_COMPLETE

    def to_dict(self) -> dict[str, Any]:
        return {
            "originBranch": self.origin_branch,
            "shipmentId": self.shipment_id,
            "destinationBranch": self.destination_branch,
            "createdAt": to_iso(self.created_at),
            "agingHours": self.aging_hours,
            "totalInvoices": self.total_invoices,
            "totalVolume": self.total_volume,
            "pendencyType": self.pendency_type,
            "priority": self.priority,
            "pending": self.pending,
            "loading": self.loading.id if self.loading else None,
            "unloading": self.unloading.id if self.unloading else None,
        }


@dataclass
class BranchStats:
    branch: str
    total_cycles: int = 0
    completed: int = 0
    pending: int = 0
    pending_origin: int = 0
    pending_destination: int = 0
    divergence: int = 0
    average_aging_hours: float = 0.0
    max_aging_hours: int = 0
    health_score: int = 100
    tier: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch": self.branch,
            "totalCycles": self.total_cycles,
            "completed": self.completed,
            "pending": self.pending,
            "pendingOrigin": self.pending_origin,
            "pendingDestination": self.pending_destination,
            "divergence": self.divergence,
            "agingMedio": self.average_aging_hours,
            "maiorAging": self.max_aging_hours,
            "saude": self.health_score,
            "tier": self.tier,
        }


@dataclass
class ImportBatch:
    id: str
    file_name: str
    timestamp: str
    record_count: int
    manifest_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "timestamp": self.timestamp,
            "recordCount": self.record_count,
            "manifestCount": self.manifest_count,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ImportBatch":
        return cls(
            id=str(payload["id"]),
            file_name=str(payload.get("fileName") or ""),
            timestamp=str(payload.get("timestamp") or ""),
            record_count=int(payload.get("recordCount") or 0),
            manifest_count=int(payload.get("manifestCount") or 0),
        )


@dataclass
class FileFailure:
    file_name: str
    reason: str


@dataclass
class ImportResult:
    workspace_id: str
    mode: str
    batches: list[ImportBatch] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    manifests_imported: int = 0
    manifests_total: int = 0
    notice: str | None = None

    @property
    def imported(self) -> bool:
        return self.manifests_imported > 0
