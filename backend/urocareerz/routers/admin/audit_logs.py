from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException

from ...db.dynamodb.pagination import clamp_page, slice_page
from ...repositories import audit_logs_repo, users_repo

router = APIRouter(tags=["admin"])


def _day(value: str | None, *, end: bool) -> str | None:
    """YYYY-MM-DD -> the first (or last) instant of that UTC day."""
    raw = str(value or "").strip()
    if not raw:
        return None
    try:
        d = datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD")
    return f"{d.isoformat()}T23:59:59.999999Z" if end else f"{d.isoformat()}T00:00:00"


@router.get("/audit-logs")
def list_audit_logs(
    page: int = 1,
    limit: int = 50,
    action: str | None = None,
    entityType: str | None = None,
    startDate: str | None = None,
    endDate: str | None = None,
):
    logs = audit_logs_repo.list_audit_logs(
        action=(action or "").strip() or None,
        entity_type=(entityType or "").strip() or None,
        start=_day(startDate, end=False),
        end=_day(endDate, end=True),
    )
    p, lim = clamp_page(page, limit, default_limit=50)
    window, pg = slice_page(logs, page=p, limit=lim)
    users = users_repo.get_user_summaries(str(entry.get("userId") or "") for entry in window)
    return {
        "auditLogs": [{**entry, "user": users.get(str(entry.get("userId") or ""))} for entry in window],
        "pagination": {
            "page": pg["page"],
            "limit": pg["limit"],
            "totalCount": pg["total"],
            "totalPages": pg["pages"],
            "hasNextPage": pg["hasNext"],
            "hasPrevPage": pg["hasPrev"],
        },
    }
