"""Shared versioned contracts and clock helpers for logicheck outputs."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

CONTRACT_VERSIONS = {
    "logicheck.import_summary": "1.0.0",
    "logicheck.network_report": "1.0.0",
}


def current_time() -> datetime:
    """Naive UTC "now", overridable through LOGICHECK_NOW for reproducible runs."""
    override = os.environ.get("LOGICHECK_NOW")
    if override:
        parsed = datetime.fromisoformat(override.replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def utc_now_iso() -> str:
    return current_time().replace(microsecond=0).isoformat() + "Z"


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def from_iso(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    contract: str,
    workspace_id: str,
    mode: str,
    status: str = "ok",
    files: list[str] | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "contract": build_contract(contract),
        "schema_version": CONTRACT_VERSIONS[contract],
        "workspace_id": workspace_id,
        "mode": mode,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_files": list(files or []),
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }
