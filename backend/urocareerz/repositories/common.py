from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

_STORAGE_KEYS = ("pk", "sk", "gsi1pk", "gsi1sk", "entityType")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def iso_days_ago(days: int) -> str:
    dt = datetime.now(timezone.utc) - timedelta(days=int(days))
    return dt.isoformat().replace("+00:00", "Z")


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4()}"


def to_plain(value: Any) -> Any:
    """Convert boto3 Decimals (and nested containers) into JSON-friendly values."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, set):
        return sorted(to_plain(v) for v in value)
    return value


def strip_storage_keys(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if not item:
        return None
    out = to_plain(dict(item))
    for k in _STORAGE_KEYS:
        out.pop(k, None)
    return out


def is_deleted(item: dict[str, Any] | None) -> bool:
    return bool(item) and bool(str((item or {}).get("deletedAt") or "").strip())


def clean_str(v: Any, *, max_len: int = 5000) -> str | None:
    s = str(v or "").strip()
    return s[:max_len] if s else None
