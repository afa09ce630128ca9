from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ...auth.principal import current_user
from ...db.dynamodb.errors import DdbConflict
from ...modules.identity.roles import normalize_role
from ...modules.moderation import (
    InvalidTransition,
    OpportunityStatus,
    ensure_opportunity_transition,
    parse_opportunity_status,
)
from ...observability.logging import get_logger
from ...repositories import applications_repo, opportunities_repo, saved_opportunities_repo, users_repo
from ...repositories.common import clean_str
from ...services import notifications
from ...services.audit import record_audit
from ...services.opportunity_views import enrich_opportunities, enrich_opportunity

router = APIRouter(tags=["admin"])
log = get_logger("admin_opportunities")


class DecisionRequest(BaseModel):
    adminNotes: str | None = None


def opportunity_or_404(opportunity_id: str) -> dict[str, Any]:
    opp = opportunities_repo.get_opportunity(opportunity_id)
    if not opp:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    return opp


def require_pending(opp: dict[str, Any], target: OpportunityStatus) -> None:
    try:
        ensure_opportunity_transition(opp.get("status"), target)
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))


def status_filter(status: str | None) -> str | None:
    """Query-string status to stored value; "all" or blank means no filter, anything unknown is a 400."""
    raw = str(status or "").strip()
    if not raw or raw.lower() == "all":
        return None
    st = parse_opportunity_status(raw)
    if st is None:
        raise HTTPException(status_code=400, detail="Invalid status")
    return st.value


def notify_creator(opp: dict[str, Any], send: Any, event: str, **kwargs: Any) -> None:
    creator = users_repo.get_user(str(opp.get("creatorId") or ""), include_deleted=True)
    if not creator:
        return
    notifications.best_effort(
        event,
        send,
        to=str(creator.get("email") or ""),
        name=creator.get("firstName"),
        opportunity_title=str(opp.get("title") or ""),
        **kwargs,
    )


@router.get("/opportunities")
def list_opportunities(status: str | None = None, type: str | None = None, creatorRole: str | None = None):
    st = status_filter(status)
    role = normalize_role(creatorRole) if creatorRole else None
    if creatorRole and role is None:
        raise HTTPException(status_code=400, detail="Invalid role")
    items = opportunities_repo.list_opportunities(
        status=st,
        type_id=(type or "").strip() or None,
        creator_role=role,
    )
    app_counts = applications_repo.count_by_opportunity()
    out = []
    for o in enrich_opportunities(items, include_email=True):
        o["applicationCount"] = app_counts.get(o["id"], 0)
        o["savedCount"] = saved_opportunities_repo.count_savers(o["id"])
        out.append(o)
    return {"opportunities": out, "total": len(out)}


@router.get("/opportunities/{opportunity_id}")
def get_opportunity(opportunity_id: str):
    opp = opportunity_or_404(opportunity_id)
    return {"opportunity": enrich_opportunity(opp, include_email=True)}


def _decide(opportunity_id: str, body: DecisionRequest, request: Request, *, approve: bool) -> dict[str, Any]:
    admin = current_user(request)
    target = OpportunityStatus.APPROVED if approve else OpportunityStatus.REJECTED
    opp = opportunity_or_404(opportunity_id)
    require_pending(opp, target)

    notes = clean_str(body.adminNotes)
    try:
        updated = opportunities_repo.transition_status(opportunity_id, target=target, admin_feedback=notes)
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Opportunity is not in pending status")

    notify_creator(
        opp,
        notifications.send_opportunity_decision,
        "opportunity_decision_email_failed",
        approved=approve,
        admin_notes=notes,
    )
    record_audit(
        request,
        action="OPPORTUNITY_APPROVED" if approve else "OPPORTUNITY_REJECTED",
        entity_type="Opportunity",
        entity_id=opportunity_id,
        user_id=admin.user_id,
        details={"title": opp.get("title"), "adminNotes": notes},
    )
    log.info("opportunity_moderated", opportunity_id=opportunity_id, status=target.value)
    verb = "approved" if approve else "rejected"
    return {"message": f"Opportunity {verb} successfully", "opportunity": updated}


@router.post("/opportunities/{opportunity_id}/approve")
def approve_opportunity(opportunity_id: str, body: DecisionRequest, request: Request):
    return _decide(opportunity_id, body, request, approve=True)


@router.post("/opportunities/{opportunity_id}/reject")
def reject_opportunity(opportunity_id: str, body: DecisionRequest, request: Request):
    return _decide(opportunity_id, body, request, approve=False)


@router.delete("/opportunities/{opportunity_id}")
def delete_opportunity(opportunity_id: str, request: Request):
    admin = current_user(request)
    opp = opportunity_or_404(opportunity_id)
    try:
        opportunities_repo.soft_delete_opportunity(opportunity_id)
    except DdbConflict:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    record_audit(
        request,
        action="OPPORTUNITY_DELETED",
        entity_type="Opportunity",
        entity_id=opportunity_id,
        user_id=admin.user_id,
        details={"title": opp.get("title")},
    )
    return {"message": "Opportunity deleted successfully"}


@router.get("/opportunities/{opportunity_id}/applications")
def list_opportunity_applications(opportunity_id: str):
    opp = opportunity_or_404(opportunity_id)
    apps = applications_repo.list_applications(opportunity_ids={opportunity_id})
    mentees = users_repo.get_user_summaries(str(a.get("menteeId") or "") for a in apps)
    rows = [{**a, "mentee": mentees.get(str(a.get("menteeId") or ""))} for a in apps]
    return {"opportunity": {"id": opp["id"], "title": opp.get("title")}, "applications": rows}


@router.get("/opportunities/{opportunity_id}/saved")
def list_opportunity_savers(opportunity_id: str):
    opp = opportunity_or_404(opportunity_id)
    saves = saved_opportunities_repo.list_savers(opportunity_id)
    users = users_repo.get_user_summaries(str(s.get("userId") or "") for s in saves)
    rows = [{**s, "user": users.get(str(s.get("userId") or ""))} for s in saves]
    return {"opportunity": {"id": opp["id"], "title": opp.get("title")}, "savedBy": rows}
