from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, HTTPException

from ...modules.identity.roles import ROLE_MENTEE
from ...modules.moderation import OpportunityStatus, UserStatus
from ...repositories import (
    applications_repo,
    audit_logs_repo,
    discussions_repo,
    opportunities_repo,
    opportunity_types_repo,
    users_repo,
)

router = APIRouter(tags=["admin"])

TREND_DAYS = 30


def _parse_day(value: str | None) -> date | None:
    raw = str(value or "").strip()
    if not raw:
        return None
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD")


def _day_of(item: dict[str, Any]) -> str:
    return str(item.get("createdAt") or "")[:10]


def build_trends(
    users: list[dict[str, Any]],
    opportunities: list[dict[str, Any]],
    *,
    start: date,
    end: date,
) -> list[dict[str, Any]]:
    regs = Counter(_day_of(u) for u in users)
    subs = Counter(_day_of(o) for o in opportunities)
    out: list[dict[str, Any]] = []
    d = start
    while d <= end:
        key = d.isoformat()
        out.append({"date": key, "registrations": regs.get(key, 0), "opportunitySubmissions": subs.get(key, 0)})
        d += timedelta(days=1)
    return out


@router.get("/analytics")
def analytics(startDate: str | None = None, endDate: str | None = None):
    end = _parse_day(endDate) or datetime.now(timezone.utc).date()
    start = _parse_day(startDate) or end - timedelta(days=TREND_DAYS - 1)
    if start > end:
        raise HTTPException(status_code=400, detail="startDate must be before endDate")

    users = users_repo.list_users()
    opportunities = opportunities_repo.list_opportunities()
    mentor_posts = [o for o in opportunities if o.get("creatorRole") != ROLE_MENTEE]
    submissions = [o for o in opportunities if o.get("creatorRole") == ROLE_MENTEE]
    pending = OpportunityStatus.PENDING.value

    types = opportunity_types_repo.type_map()
    by_type = Counter(str(o.get("opportunityTypeId") or "") for o in opportunities)

    return {
        "overview": {
            "totalUsers": len(users),
            "pendingUsers": sum(1 for u in users if u.get("status") == UserStatus.PENDING.value),
            "totalOpportunities": len(mentor_posts),
            "pendingOpportunities": sum(1 for o in mentor_posts if o.get("status") == pending),
            "totalMenteeOpportunities": len(submissions),
            "pendingMenteeOpportunities": sum(1 for o in submissions if o.get("status") == pending),
            "totalDiscussions": len(discussions_repo.list_threads()),
            "totalApplications": len(applications_repo.list_applications()),
        },
        "trends": build_trends(users, opportunities, start=start, end=end),
        "distributions": {
            "userRoles": dict(Counter(str(u.get("role") or "") for u in users)),
            "opportunityTypes": [
                {"typeId": tid, "name": (types.get(tid) or {}).get("name") or "Unknown", "count": n}
                for tid, n in by_type.most_common()
            ],
        },
        "recentActivity": audit_logs_repo.list_audit_logs()[:10],
    }
