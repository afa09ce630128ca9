from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ...auth.principal import current_user
from ...db.dynamodb.errors import DdbConflict
from ...db.dynamodb.pagination import clamp_page, slice_page
from ...modules.identity.roles import ROLE_MENTEE, ROLE_MENTOR
from ...modules.moderation import OpportunityStatus, approve_target
from ...observability.logging import get_logger
from ...repositories import opportunities_repo, opportunity_types_repo, users_repo
from ...repositories.common import clean_str
from ...services import notifications
from ...services.audit import record_audit
from ...services.opportunity_views import enrich_opportunities
from .opportunities import notify_creator, opportunity_or_404, require_pending, status_filter

router = APIRouter(tags=["admin"])
log = get_logger("admin_mentee_opportunities")


class ApproveSubmissionRequest(BaseModel):
    adminNotes: str | None = None
    convertToRegular: bool = False


class RejectSubmissionRequest(BaseModel):
    adminNotes: str | None = None


@router.get("/mentee-opportunities")
def list_submissions(status: str | None = None, type: str | None = None, page: int = 1, limit: int = 10):
    items = opportunities_repo.list_opportunities(
        creator_role=ROLE_MENTEE,
        status=status_filter(status),
        type_id=(type or "").strip() or None,
    )
    p, lim = clamp_page(page, limit)
    window, pagination = slice_page(items, page=p, limit=lim)
    return {
        "opportunities": enrich_opportunities(window, include_email=True),
        "pagination": pagination,
        "opportunityTypes": opportunity_types_repo.list_types(active_only=True),
    }


@router.post("/mentee-opportunities/{opportunity_id}/approve")
def approve_submission(opportunity_id: str, body: ApproveSubmissionRequest, request: Request):
    admin = current_user(request)
    target = approve_target(body.convertToRegular)
    opp = opportunity_or_404(opportunity_id)
    require_pending(opp, target)

    notes = clean_str(body.adminNotes)
    converted = None
    try:
        if target is OpportunityStatus.CONVERTED:
            owner = users_repo.find_fallback_admin()
            if not owner:
                raise HTTPException(status_code=500, detail="No admin user available for conversion")
            converted = opportunities_repo.convert_to_regular(
                opportunity_id,
                source=opp,
                owner_id=owner["id"],
                owner_role=ROLE_MENTOR,
                admin_feedback=notes,
            )
        else:
            opportunities_repo.transition_status(opportunity_id, target=target, admin_feedback=notes)
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Opportunity is not in pending status")

    notify_creator(
        opp,
        notifications.send_submission_decision,
        "submission_decision_email_failed",
        decision=target.value,
        admin_notes=notes,
    )
    action = (
        "MENTEE_OPPORTUNITY_CONVERTED" if target is OpportunityStatus.CONVERTED else "MENTEE_OPPORTUNITY_APPROVED"
    )
    details = {"title": opp.get("title"), "adminNotes": notes}
    if converted:
        details["convertedToId"] = converted["id"]
    record_audit(
        request,
        action=action,
        entity_type="Opportunity",
        entity_id=opportunity_id,
        user_id=admin.user_id,
        details=details,
    )
    log.info("mentee_opportunity_moderated", opportunity_id=opportunity_id, status=target.value)

    out = {
        "message": "Opportunity converted successfully" if converted else "Opportunity approved successfully",
        "opportunity": opportunities_repo.get_opportunity(opportunity_id),
    }
    if converted:
        out["convertedOpportunity"] = converted
    return out


@router.post("/mentee-opportunities/{opportunity_id}/reject")
def reject_submission(opportunity_id: str, body: RejectSubmissionRequest, request: Request):
    admin = current_user(request)
    notes = clean_str(body.adminNotes)
    if not notes:
        raise HTTPException(status_code=400, detail="Admin notes are required for rejection")
    opp = opportunity_or_404(opportunity_id)
    require_pending(opp, OpportunityStatus.REJECTED)

    try:
        updated = opportunities_repo.transition_status(
            opportunity_id, target=OpportunityStatus.REJECTED, admin_feedback=notes
        )
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Opportunity is not in pending status")

    notify_creator(
        opp,
        notifications.send_submission_decision,
        "submission_decision_email_failed",
        decision=OpportunityStatus.REJECTED.value,
        admin_notes=notes,
    )
    record_audit(
        request,
        action="MENTEE_OPPORTUNITY_REJECTED",
        entity_type="Opportunity",
        entity_id=opportunity_id,
        user_id=admin.user_id,
        details={"title": opp.get("title"), "adminNotes": notes},
    )
    return {"message": "Opportunity rejected successfully", "opportunity": updated}
