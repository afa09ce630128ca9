from __future__ import annotations

import hmac
import secrets
from datetime import datetime, timedelta, timezone

from ..settings import settings


def generate_otp() -> str:
    """Six digits, never with a leading zero."""
    return str(100000 + secrets.randbelow(900000))


def otp_expiry(*, now: datetime | None = None) -> str:
    base = now or datetime.now(timezone.utc)
    exp = base + timedelta(minutes=int(settings.otp_ttl_minutes or 10))
    return exp.isoformat().replace("+00:00", "Z")


def _parse_iso(value: str) -> datetime | None:
    try:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def is_expired(expiry: str | None, *, now: datetime | None = None) -> bool:
    # Unparseable or missing expiry counts as expired.
    if not expiry:
        return True
    dt = _parse_iso(expiry)
    if dt is None:
        return True
    return (now or datetime.now(timezone.utc)) > dt


def otp_matches(stored: str | None, supplied: str | None) -> bool:
    a = str(stored or "").strip()
    b = str(supplied or "").strip()
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
