from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Mapping

import pandas as pd

from logicheck.models import NormalizedRow
from logicheck.shared import (
    CANONICAL_ALIASES,
    COMPLETION_TOKENS,
    CONFERENCE_SIGNATURE,
    DIVERGENCE_NEGATIONS,
    DIVERGENCE_TOKENS,
    LEG_LOADING,
    LEG_UNCLASSIFIED,
    LEG_UNLOADING,
    LOADING_KEYWORDS,
    NOT_AVAILABLE,
    SENTINEL_NULLS,
    UNLOADING_KEYWORDS,
    canonical_header,
    canonical_token,
)

EXCEL_EPOCH = datetime(1899, 12, 30)
# 9999-12-31; longer digit runs such as "20240101" are parsed as text dates.
SERIAL_DATE_MAX = 2958465
SERIAL_TEXT_RE = re.compile(r"^\d+(?:[.,]\d+)?$")
DAY_FIRST_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4}|\d{2})")
LOCALE_NUMBER_RE = re.compile(r"^[+-]?[\d.]*,?\d*$")
NEGATED_DIVERGENCE_RE = re.compile(
    r"\b(?:" + "|".join(DIVERGENCE_NEGATIONS) + r")\s+DIVERGEN\w*"
)

FILE_KIND_MANIFEST = "manifest"
FILE_KIND_CONFERENCE = "conference"
FILE_KIND_UNKNOWN = "unknown"


def normalize_scalar(value: Any) -> Any:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, pd.Timestamp):
        if value.tzinfo is not None:
            value = value.tz_convert(None)
        return value.to_pydatetime()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value
    if isinstance(value, date):
        return value
    return str(value).replace("\x00", "")


def is_effective_null(value: Any) -> bool:
    normalized = normalize_scalar(value)
    if normalized is None:
        return True
    if isinstance(normalized, str):
        return normalized.strip().lower() in SENTINEL_NULLS
    return False


def resolve_columns(headers: Iterable[str]) -> dict[str, str]:
    """Map each logical field to the first header matching one of its aliases."""
    by_canonical: dict[str, str] = {}
    for header in headers:
        by_canonical.setdefault(canonical_header(str(header)), str(header))

    resolved: dict[str, str] = {}
    for field, aliases in CANONICAL_ALIASES.items():
        for alias in aliases:
            if alias in by_canonical:
                resolved[field] = by_canonical[alias]
                break
    return resolved


def detect_file_kind(headers: Iterable[str]) -> str:
    headers = list(headers)
    resolved = resolve_columns(headers)
    if "shipment_id" in resolved and "origin_branch" in resolved:
        return FILE_KIND_MANIFEST
    present = {canonical_header(str(header)) for header in headers}
    if all(canonical_header(column) in present for column in CONFERENCE_SIGNATURE):
        return FILE_KIND_CONFERENCE
    return FILE_KIND_UNKNOWN


def text_value(value: Any) -> str | None:
    if is_effective_null(value):
        return None
    normalized = normalize_scalar(value)
    if isinstance(normalized, float) and normalized.is_integer():
        return str(int(normalized))
    if isinstance(normalized, datetime):
        return normalized.isoformat(sep=" ")
    text = str(normalized).strip()
    return text or None


def text_or_default(value: Any, default: str = NOT_AVAILABLE) -> str:
    return text_value(value) or default


def parse_locale_number(value: Any) -> float:
    """Parse pt-BR formatted numbers: '.' groups thousands, ',' marks decimals."""
    normalized = normalize_scalar(value)
    if normalized is None or isinstance(normalized, (datetime, date)):
        return 0.0
    if isinstance(normalized, (int, float)):
        return float(normalized)
    text = "".join(normalized.split())
    if not text or not LOCALE_NUMBER_RE.match(text):
        return 0.0
    text = text.replace(".", "").replace(",", ".")
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _at_noon(value: date) -> datetime:
    return datetime(value.year, value.month, value.day, 12, 0, 0)


def _from_serial(serial: float) -> datetime | None:
    if not math.isfinite(serial) or serial <= 0:
        return None
    try:
        return _at_noon(EXCEL_EPOCH + timedelta(days=serial))
    except OverflowError:
        return None


def parse_sheet_date(value: Any) -> datetime | None:
    """Parse a spreadsheet date cell into a naive datetime pinned to noon.

    Numbers are spreadsheet serials on the 1899-12-30 epoch. Digit-only strings
    within the serial range are read the same way. Strings try
    DD/MM/YYYY (or DD-MM-YY) first, then generic parsing. Anything unreadable
    yields None; callers decide whether a fallback applies.
    """
    normalized = normalize_scalar(value)
    if normalized is None:
        return None
    if isinstance(normalized, datetime):
        return _at_noon(normalized)
    if isinstance(normalized, date):
        return _at_noon(normalized)
    if isinstance(normalized, (int, float)):
        return _from_serial(float(normalized))

    text = normalized.strip()
    if text.lower() in SENTINEL_NULLS:
        return None
    # Delimited text exports carry serials as digit strings.
    if SERIAL_TEXT_RE.match(text):
        serial = float(text.replace(",", "."))
        if serial <= SERIAL_DATE_MAX:
            return _from_serial(serial)
    match = DAY_FIRST_RE.match(text)
    if match:
        day, month, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
        if year < 100:
            year += 2000
        try:
            return datetime(year, month, day, 12, 0, 0)
        except ValueError:
            return None

    parsed = pd.to_datetime(text, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(None)
    return _at_noon(parsed.to_pydatetime())


def classify_leg(raw: str) -> str:
    token = canonical_token(raw or "")
    if any(keyword in token for keyword in UNLOADING_KEYWORDS):
        return LEG_UNLOADING
    if any(keyword in token for keyword in LOADING_KEYWORDS):
        return LEG_LOADING
    return LEG_UNCLASSIFIED


def status_token(status: str) -> str:
    """Canonical status with negated divergence phrases ("SEM DIVERGENCIA") removed."""
    token = canonical_token(status or "")
    stripped = NEGATED_DIVERGENCE_RE.sub(" ", token)
    if stripped == token:
        return token
    return " ".join(re.sub(r"[^A-Z0-9]+", " ", stripped).split())


def is_divergent_status(status: str) -> bool:
    token = status_token(status)
    return any(marker in token for marker in DIVERGENCE_TOKENS)


def is_completion_status(status: str) -> bool:
    return status_token(status) in COMPLETION_TOKENS


def is_incomplete(row: NormalizedRow) -> bool:
    if not is_completion_status(row.line_status):
        return True
    if row.completion_date is None:
        return True
    return not (row.completion_operator or "").strip()


def normalize_row(
    raw: Mapping[str, Any],
    column_map: Mapping[str, str] | None = None,
    *,
    import_id: str | None = None,
) -> NormalizedRow | None:
    """Convert one loosely typed spreadsheet row; rows without a shipment id yield None."""
    if column_map is None:
        column_map = resolve_columns(raw.keys())

    def cell(field: str) -> Any:
        header = column_map.get(field)
        return raw.get(header) if header is not None else None

    shipment_id = text_value(cell("shipment_id"))
    if shipment_id is None:
        return None

    return NormalizedRow(
        shipment_id=shipment_id,
        origin_branch=text_or_default(cell("origin_branch")),
        leg_type_raw=text_or_default(cell("leg_type"), ""),
        destination_branch=text_or_default(cell("destination_branch")),
        cargo_label=text_or_default(cell("cargo_label")),
        vehicle=text_or_default(cell("vehicle")),
        driver=text_or_default(cell("driver")),
        invoice_id=text_value(cell("invoice_id")),
        volume=parse_locale_number(cell("volume")),
        weight=parse_locale_number(cell("weight")),
        created_at=parse_sheet_date(cell("created_at")),
        completion_date=parse_sheet_date(cell("completion_date")),
        completion_operator=text_value(cell("completion_operator")),
        line_status=canonical_token(text_value(cell("line_status")) or ""),
        import_id=import_id,
    )


def normalize_rows(
    rows: Iterable[Mapping[str, Any]],
    *,
    import_id: str | None = None,
) -> list[NormalizedRow]:
    rows = list(rows)
    headers: dict[str, None] = {}
    for raw in rows:
        for header in raw.keys():
            headers.setdefault(str(header), None)
    column_map = resolve_columns(headers)

    normalized: list[NormalizedRow] = []
    for raw in rows:
        row = normalize_row(raw, column_map, import_id=import_id)
        if row is not None:
            normalized.append(row)
    return normalized
