from __future__ import annotations

from typing import Any

from fastapi import Request

from ..auth.principal import client_ip
from ..observability.logging import get_logger
from ..repositories import audit_logs_repo

log = get_logger("audit")


def record_audit(
    request: Request | None,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    user_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Append an audit entry. Never raises; a failed write is only logged."""
    ip = None
    ua = None
    if request is not None:
        ip = client_ip(request)
        ua = str(request.headers.get("user-agent") or "")[:500] or None
    try:
        return audit_logs_repo.put_audit_log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            details=details,
            ip_address=ip,
            user_agent=ua,
        )
    except Exception as e:
        log.warning(
            "audit_log_write_failed",
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            error=str(e),
        )
        return None
