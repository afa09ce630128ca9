from __future__ import annotations

import json
import math
from decimal import Decimal
from typing import Any, Sequence, TypeVar

from ...services.token_crypto import decrypt_string, encrypt_string
from .errors import DdbValidation

T = TypeVar("T")

_TOKEN_VERSION = 1


def _json_default(v: Any) -> Any:
    # LastEvaluatedKey values come back from boto3 as Decimal for numbers.
    if isinstance(v, Decimal):
        return int(v) if v == v.to_integral_value() else float(v)
    raise TypeError(f"Unsupported type in pagination key: {type(v).__name__}")


def encode_next_token(last_evaluated_key: dict[str, Any] | None) -> str | None:
    if not last_evaluated_key:
        return None
    payload = {"v": _TOKEN_VERSION, "lek": last_evaluated_key}
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=_json_default)
    return encrypt_string(raw, purpose="ddb-cursor")


def decode_next_token(next_token: str | None) -> dict[str, Any] | None:
    if not next_token:
        return None

    raw = decrypt_string(next_token, purpose="ddb-cursor")
    if not raw:
        raise DdbValidation(message="Invalid nextToken")
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise DdbValidation(message="Invalid nextToken") from e

    if not isinstance(payload, dict) or payload.get("v") != _TOKEN_VERSION:
        raise DdbValidation(message="Invalid nextToken")

    lek = payload.get("lek")
    if lek is None:
        return None
    if not isinstance(lek, dict):
        raise DdbValidation(message="Invalid nextToken")
    return lek


def clamp_page(page: Any, limit: Any, *, default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    try:
        p = int(page or 1)
    except (TypeError, ValueError):
        p = 1
    try:
        lim = int(limit or default_limit)
    except (TypeError, ValueError):
        lim = default_limit
    return max(1, p), max(1, min(max_limit, lim))


def slice_page(items: Sequence[T], *, page: int, limit: int) -> tuple[list[T], dict[str, Any]]:
    """
    Offset pagination over an already filtered + sorted list.

    Returns the page and the `{page, limit, total, pages, hasNext, hasPrev}` block
    the API responses carry.
    """
    total = len(items)
    start = (page - 1) * limit
    window = list(items[start : start + limit])
    pages = math.ceil(total / limit) if limit else 0
    return window, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "hasNext": page < pages,
        "hasPrev": page > 1,
    }
