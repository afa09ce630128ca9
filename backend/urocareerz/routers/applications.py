from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..auth.principal import current_user, require_role
from ..db.dynamodb.errors import DdbConflict
from ..db.dynamodb.pagination import clamp_page, slice_page
from ..modules.identity.roles import ROLE_MENTEE, ROLE_MENTOR, is_mentee, is_mentor
from ..modules.moderation import (
    ApplicationStatus,
    InvalidTransition,
    OpportunityStatus,
    ensure_application_transition,
    parse_application_status,
)
from ..observability.logging import get_logger
from ..repositories import applications_repo, opportunities_repo, users_repo
from ..repositories.common import clean_str
from ..services import notifications
from ..services.opportunity_views import enrich_opportunities

router = APIRouter(tags=["applications"])
log = get_logger("applications")


class ApplyRequest(BaseModel):
    opportunityId: str | None = None
    coverLetter: str | None = None


class StatusRequest(BaseModel):
    status: str | None = None


def _embed(apps: list[dict[str, Any]]) -> list[dict[str, Any]]:
    opp_ids = {str(a.get("opportunityId") or "") for a in apps}
    opps = {
        o["id"]: o
        for o in enrich_opportunities(
            [o for o in (opportunities_repo.get_opportunity(i, include_deleted=True) for i in opp_ids) if o]
        )
    }
    mentees = users_repo.get_user_summaries(str(a.get("menteeId") or "") for a in apps)
    out: list[dict[str, Any]] = []
    for a in apps:
        row = dict(a)
        row["opportunity"] = opps.get(str(a.get("opportunityId") or ""))
        row["mentee"] = mentees.get(str(a.get("menteeId") or ""))
        out.append(row)
    return out


def _mentor_opportunity_ids(mentor_id: str) -> set[str]:
    return {str(o["id"]) for o in opportunities_repo.list_opportunities(creator_id=mentor_id, include_deleted=True)}


@router.get("/applications")
def list_applications(request: Request, status: str | None = None, page: int = 1, limit: int = 10):
    user = current_user(request)
    parsed = parse_application_status(status) if status else None
    st = parsed.value if parsed else None
    if is_mentee(user.role):
        apps = applications_repo.list_applications(mentee_id=user.user_id, status=st)
    elif is_mentor(user.role):
        apps = applications_repo.list_applications(opportunity_ids=_mentor_opportunity_ids(user.user_id), status=st)
    else:
        raise HTTPException(status_code=403, detail="Access denied")

    p, lim = clamp_page(page, limit)
    window, pagination = slice_page(apps, page=p, limit=lim)
    return {"applications": _embed(window), "pagination": pagination}


@router.get("/applications/mentor")
def list_mentor_applications(request: Request):
    user = require_role(request, ROLE_MENTOR, detail="Only mentors can view applications to their opportunities")
    apps = applications_repo.list_applications(opportunity_ids=_mentor_opportunity_ids(user.user_id))
    return {"applications": _embed(apps)}


@router.post("/applications", status_code=201)
def apply(body: ApplyRequest, request: Request):
    user = require_role(request, ROLE_MENTEE, detail="Only mentees can apply to opportunities")

    opportunity_id = str(body.opportunityId or "").strip()
    if not opportunity_id:
        raise HTTPException(status_code=400, detail="Opportunity ID is required")
    opp = opportunities_repo.get_opportunity(opportunity_id)
    if not opp:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    if opp.get("status") != OpportunityStatus.APPROVED.value:
        raise HTTPException(status_code=400, detail="Cannot apply to unapproved opportunity")

    try:
        app_ = applications_repo.create_application(
            opportunity_id=opportunity_id,
            mentee_id=user.user_id,
            mentor_id=str(opp.get("creatorId") or "") or None,
            cover_letter=clean_str(body.coverLetter),
        )
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Already applied to this opportunity")
    log.info("application_submitted", application_id=app_["id"], opportunity_id=opportunity_id)

    mentee = users_repo.get_user(user.user_id) or {}
    mentor = users_repo.get_user(str(opp.get("creatorId") or "")) or {}
    title = str(opp.get("title") or "")
    if mentor:
        notifications.best_effort(
            "application_mentor_email_failed",
            notifications.send_application_submitted_to_mentor,
            to=str(mentor.get("email") or ""),
            mentor_name=mentor.get("firstName"),
            mentee_name=users_repo.display_name(mentee),
            opportunity_title=title,
        )
    notifications.best_effort(
        "application_confirmation_failed",
        notifications.send_application_confirmation,
        to=str(mentee.get("email") or ""),
        mentee_name=mentee.get("firstName"),
        opportunity_title=title,
    )
    return {"message": "Application submitted successfully", "application": app_}


@router.patch("/applications/{application_id}/status")
def decide_application(application_id: str, body: StatusRequest, request: Request):
    user = require_role(request, ROLE_MENTOR, detail="Only mentors can update application status")

    target = parse_application_status(body.status)
    if target not in (ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED):
        raise HTTPException(status_code=400, detail="Invalid status. Must be ACCEPTED or REJECTED")

    app_ = applications_repo.get_application(application_id)
    if not app_:
        raise HTTPException(status_code=404, detail="Application not found")
    opp = opportunities_repo.get_opportunity(str(app_.get("opportunityId") or ""), include_deleted=True)
    if not opp or str(opp.get("creatorId") or "") != user.user_id:
        raise HTTPException(status_code=403, detail="You can only update applications to your own opportunities")

    try:
        ensure_application_transition(app_.get("status"), target)
        updated = applications_repo.set_application_status(application_id, target=target)
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Application has already been reviewed")

    mentee = users_repo.get_user(str(app_.get("menteeId") or "")) or {}
    notifications.best_effort(
        "application_status_email_failed",
        notifications.send_application_status,
        to=str(mentee.get("email") or ""),
        mentee_name=mentee.get("firstName"),
        opportunity_title=str(opp.get("title") or ""),
        status=target.value,
    )
    log.info("application_reviewed", application_id=application_id, status=target.value)
    return {"message": f"Application {target.value.lower()} successfully", "application": updated}


@router.post("/applications/{application_id}/withdraw")
def withdraw_application(application_id: str, request: Request):
    user = current_user(request)
    app_ = applications_repo.get_application(application_id)
    if not app_:
        raise HTTPException(status_code=404, detail="Application not found")
    if str(app_.get("menteeId") or "") != user.user_id:
        raise HTTPException(status_code=403, detail="You can only withdraw your own applications")

    try:
        ensure_application_transition(app_.get("status"), ApplicationStatus.WITHDRAWN)
        updated = applications_repo.set_application_status(application_id, target=ApplicationStatus.WITHDRAWN)
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Only pending applications can be withdrawn")
    log.info("application_withdrawn", application_id=application_id)
    return {"message": "Application withdrawn successfully", "application": updated}
