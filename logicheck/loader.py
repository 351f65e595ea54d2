"""
loader.py - turns an uploaded export into raw row records for the engine

Supports: .csv .tsv .txt .xlsx .xlsm .xls

Public API:
    result = load_rows("path/to/export.xlsx")
    rows   = result["rows"]

Result dict keys:
    rows              - list of {column header: cell value} dicts
    columns           - header list in file order
    detected_format   - "csv", "xlsx", ...
    detected_encoding - encoding name for text files; None for workbooks
    delimiter         - delimiter char for text files; None otherwise
    sheet_name        - sheet that was read for workbooks; None otherwise
    sheet_names       - all sheet names for workbooks; None otherwise
    original_rows     - data row count before empty rows were dropped
    warnings          - list of warning strings

Workbooks are read from their first sheet, with cell types preserved so that
serial dates and numeric cells reach the normalizer untouched. Failures
surface as ValueError (unreadable content) or ImportError (missing engine).
"""

from __future__ import annotations

import csv
import io
from collections import Counter
from pathlib import Path
from typing import Any

import chardet
import pandas as pd

from logicheck.normalization import normalize_scalar

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS  = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm", ".xls"}
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS


# ══════════════════════════════════════════════════════════════════════════════
# TEXT DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw)
    detected = result.get("encoding") or "utf-8"
    return detected


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line: UTF-8, then the detected encoding, then
    latin-1, and finally CP1252 with replacement. Null bytes are stripped.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", "").replace("\ufeff", ""))
    return "\n".join(decoded_lines)


def _detect_delimiter(text: str) -> str:
    """Sniff the delimiter; fall back to the candidate with the most consistent width."""
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in (",", ";", "\t", "|"):
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            continue
        mode_width, mode_count = Counter(len(row) for row in rows).most_common(1)[0]
        score = mode_width * 2.0 + (mode_count / len(rows)) * mode_width
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _load_text(path: Path, suffix: str) -> dict:
    raw = path.read_bytes()
    encoding = _detect_encoding(raw)
    text = _read_text_safely(raw, encoding)
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)

    sep = r"\|" if delimiter == "|" else delimiter
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            on_bad_lines="skip",
            sep=sep,
            engine="python",
        )
    except Exception as exc:
        raise ValueError(f"Could not parse {suffix} file: {exc}") from exc

    return {
        "dataframe": df,
        "detected_format": suffix.lstrip("."),
        "detected_encoding": encoding,
        "delimiter": delimiter,
        "sheet_name": None,
        "sheet_names": None,
        "warnings": [],
    }


def _load_excel(path: Path, suffix: str) -> dict:
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd; run: pip install xlrd") from None

    warnings: list[str] = []
    try:
        with pd.ExcelFile(path) as workbook:
            sheet_names = list(workbook.sheet_names)
            if not sheet_names:
                raise ValueError("workbook has no sheets")
            df = workbook.parse(sheet_names[0])
    except ImportError:
        raise
    except Exception as exc:
        raise ValueError(f"Could not open workbook: {exc}") from exc

    if len(sheet_names) > 1:
        warnings.append(
            f"Workbook has {len(sheet_names)} sheets; only '{sheet_names[0]}' was imported."
        )

    return {
        "dataframe": df,
        "detected_format": suffix.lstrip("."),
        "detected_encoding": None,
        "delimiter": None,
        "sheet_name": sheet_names[0],
        "sheet_names": sheet_names,
        "warnings": warnings,
    }


def dataframe_to_rows(df: pd.DataFrame) -> list[dict[str, Any]]:
    columns = [str(column).strip() for column in df.columns]
    rows: list[dict[str, Any]] = []
    for values in df.itertuples(index=False, name=None):
        record = {column: normalize_scalar(value) for column, value in zip(columns, values)}
        if all(value is None or (isinstance(value, str) and not value.strip()) for value in record.values()):
            continue
        rows.append(record)
    return rows


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_rows(path: str | Path) -> dict:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix not in ALL_FORMATS:
        raise ValueError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(ALL_FORMATS))}"
        )

    if suffix in TEXT_FORMATS:
        result = _load_text(path, suffix)
    else:
        result = _load_excel(path, suffix)

    df = result.pop("dataframe")
    result["columns"] = [str(column).strip() for column in df.columns]
    result["original_rows"] = len(df)
    result["rows"] = dataframe_to_rows(df)
    return result
