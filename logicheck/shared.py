from __future__ import annotations

import re
import unicodedata

# Logical field -> accepted column headers. Headers are compared after
# canonical_header(), so accents, case, spacing and punctuation do not matter.
COLUMN_ALIASES = {
    "shipment_id": (
        "Romaneio", "Nº Romaneio", "Numero Romaneio", "Num Romaneio", "Romaneio ID",
        "Manifesto", "Shipment", "Shipment ID", "shipmentId",
    ),
    "origin_branch": (
        "Filial Origem", "Filial de Origem", "Origem", "Filial", "Origin",
        "Origin Branch", "originBranch",
    ),
    "destination_branch": (
        "Filial Destino", "Filial de Destino", "Destino", "Destination",
        "Destination Branch", "destinationBranch",
    ),
    "leg_type": (
        "Tipo", "Tipo Romaneio", "Tipo de Romaneio", "Operação", "Tipo Operação",
        "Leg Type", "legType", "Type",
    ),
    "cargo_label": ("Carga", "Tipo Carga", "Tipo de Carga", "Cargo", "cargoLabel"),
    "vehicle": ("Veículo", "Veiculo", "Placa", "Vehicle", "Plate"),
    "driver": ("Motorista", "Driver"),
    "invoice_id": (
        "NF", "Nota Fiscal", "Nº NF", "Numero NF", "Num NF", "Nota", "Invoice",
        "Invoice ID", "invoice", "invoiceId",
    ),
    "volume": ("Volume", "Volumes", "Qtd Volumes", "Qtde Volumes", "Volume Total"),
    "weight": ("Peso", "Peso Bruto", "Peso (kg)", "Peso Total", "Weight"),
    "created_at": (
        "Data Inc Romaneio", "Data Inclusão", "Data Inclusão Romaneio", "Data Criação",
        "Data Emissão", "Created At", "createdAt",
    ),
    "completion_date": (
        "Conferencia data", "Data Conferência", "Data da Conferência", "Conferido em",
        "Completion Date", "confDate",
    ),
    "completion_operator": (
        "Conferido por", "Conferente", "Operador Conferência", "Completed By", "confUser",
    ),
    "line_status": (
        "Status", "Situação", "Status Conferência", "Status da Conferência", "Line Status",
    ),
}

# Legacy e-track conference exports; recognised so they can be skipped cleanly.
CONFERENCE_SIGNATURE = ("NF Coletadas", "Motorista", "Conferido por")

NOT_AVAILABLE = "N/A"

STATUS_PENDING = "Pending"
STATUS_RECONCILED = "Reconciled"
STATUS_DIVERGENT = "Divergent"
MANIFEST_STATUSES = (STATUS_PENDING, STATUS_RECONCILED, STATUS_DIVERGENT)

# Line status tokens, compared upper-cased with accents removed.
COMPLETION_TOKENS = {
    "CONFERIDO", "CONFERIDA", "CONCLUIDO", "CONCLUIDA", "FINALIZADO", "FINALIZADA",
    "OK", "COMPLETED", "COMPLETE", "RECONCILED", "DONE",
}
DIVERGENCE_TOKENS = ("DIVERGEN", "DIVERGENT", "DIVERGENCE")
# Words that negate a following divergence marker ("CONFERIDO SEM DIVERGENCIA").
DIVERGENCE_NEGATIONS = ("SEM", "NAO", "NENHUMA", "NO", "NOT", "WITHOUT")

LEG_LOADING = "loading"
LEG_UNLOADING = "unloading"
LEG_UNCLASSIFIED = "unclassified"

# Unloading vocabulary is checked first: "DESCARREGAMENTO", "DESEMBARQUE"
# and "UNLOADING" all contain a loading keyword.
UNLOADING_KEYWORDS = ("DESEMBARQ", "DESCARG", "DESCARREG", "UNLOAD", "CHEGADA", "ARRIVAL", "ENTRADA", "ENTRY", "RECEB")
LOADING_KEYWORDS = ("CARREG", "LOADING", "SAIDA", "EXPEDI", "EMBARQUE", "DEPARTURE")

PENDENCY_DIVERGENCE = "Divergence"
PENDENCY_PENDING_ORIGIN = "PendingOrigin"
PENDENCY_PENDING_DESTINATION = "PendingDestination"
PENDENCY_COMPLETE = "Complete"
PENDENCY_TYPES = (
    PENDENCY_DIVERGENCE,
    PENDENCY_PENDING_ORIGIN,
    PENDENCY_PENDING_DESTINATION,
    PENDENCY_COMPLETE,
)

PRIORITY_HIGH = "High"
PRIORITY_MEDIUM = "Medium"
PRIORITY_LOW = "Low"

HIGH_PRIORITY_AGING_HOURS = 48
MEDIUM_PRIORITY_AGING_HOURS = 24

HEALTH_PENDING_WEIGHT = 2.0
HEALTH_DIVERGENCE_WEIGHT = 5.0
HEALTH_AGING_WEIGHT = 0.5
HEALTH_CRITICAL_BELOW = 60
HEALTH_ATTENTION_BELOW = 80

TIER_STABLE = "Stable"
TIER_ATTENTION = "Attention"
TIER_CRITICAL = "Critical"
NO_DATA = "No Data"

NETWORK_CRITICAL_RATE = 35.0
NETWORK_ATTENTION_RATE = 20.0
NETWORK_DIVERGENCE_AGING_HOURS = 48

IMPORT_ACCUMULATE = "accumulate"
IMPORT_REPLACE = "replace"
IMPORT_MODES = (IMPORT_ACCUMULATE, IMPORT_REPLACE)

AGING_BUCKETS = (
    ("0-1 days", 0, 1),
    ("2-3 days", 2, 3),
    ("4-7 days", 4, 7),
    ("8+ days", 8, None),
)

SENTINEL_NULLS = {"", "na", "n/a", "none", "null", "nil", "nan", "-"}


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def canonical_header(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", strip_accents(value).lower())


def canonical_token(value: str) -> str:
    return " ".join(strip_accents(value).upper().split())


CANONICAL_ALIASES = {
    field: tuple(canonical_header(alias) for alias in aliases)
    for field, aliases in COLUMN_ALIASES.items()
}
