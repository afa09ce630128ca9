from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from ..auth.principal import require_role
from ..auth.session_tokens import SessionUser
from ..db.dynamodb.errors import DdbConflict
from ..modules.identity.roles import ROLE_MENTEE
from ..modules.moderation import InvalidTransition, OpportunityStatus, ensure_pending
from ..observability.logging import get_logger
from ..repositories import opportunities_repo, users_repo
from ..repositories.common import clean_str, now_iso
from ..services import notifications
from ..services.opportunity_views import enrich_opportunities, enrich_opportunity
from .opportunities import require_active_type

router = APIRouter(tags=["mentee-opportunities"])
log = get_logger("mentee_opportunities")


def _require_mentee(request: Request) -> SessionUser:
    return require_role(request, ROLE_MENTEE, detail="Only mentees can manage opportunity submissions")


def _require_pending_submission(opp: dict[str, Any], verb: str) -> None:
    try:
        ensure_pending(opp)
    except InvalidTransition:
        raise HTTPException(status_code=400, detail=f"Only pending submissions can be {verb}")


def _own_submission(opportunity_id: str, user: SessionUser) -> dict[str, Any]:
    opp = opportunities_repo.get_opportunity(opportunity_id)
    if (
        not opp
        or str(opp.get("creatorId") or "") != user.user_id
        or opp.get("creatorRole") != ROLE_MENTEE
    ):
        raise HTTPException(status_code=404, detail="Opportunity not found")
    return opp


@router.get("/mentee-opportunities")
def list_my_submissions(request: Request):
    user = _require_mentee(request)
    items = opportunities_repo.list_opportunities(creator_id=user.user_id, creator_role=ROLE_MENTEE)
    return {"opportunities": enrich_opportunities(items)}


@router.post("/mentee-opportunities", status_code=201)
def submit_opportunity(body: dict, request: Request):
    user = _require_mentee(request)
    title = clean_str(body.get("title"), max_len=200)
    description = clean_str(body.get("description"))
    type_id = clean_str(body.get("opportunityTypeId"), max_len=100)
    if not title or not description or not type_id:
        raise HTTPException(status_code=400, detail="Title, description, and opportunity type are required")
    require_active_type(type_id, active_only=False)

    opp = opportunities_repo.create_opportunity(
        title=title,
        description=description,
        opportunity_type_id=type_id,
        creator_id=user.user_id,
        creator_role=ROLE_MENTEE,
        status=OpportunityStatus.PENDING,
        extra=opportunities_repo.pick_optional_fields(body),
    )
    log.info("mentee_opportunity_submitted", opportunity_id=opp["id"], user_id=user.user_id)

    mentee = users_repo.get_user(user.user_id) or {}
    notifications.best_effort(
        "submission_receipt_failed",
        notifications.send_submission_received,
        to=str(mentee.get("email") or ""),
        name=mentee.get("firstName"),
        opportunity_title=title,
    )
    notifications.best_effort(
        "admin_notification_failed",
        notifications.send_new_submission_to_admin,
        opportunity_title=title,
        submitter_name=users_repo.display_name(mentee),
        creator_role=ROLE_MENTEE,
    )
    return {"message": "Opportunity submitted for review", "opportunity": enrich_opportunity(opp)}


@router.put("/mentee-opportunities/{opportunity_id}")
def edit_submission(opportunity_id: str, body: dict, request: Request):
    user = _require_mentee(request)
    opp = _own_submission(opportunity_id, user)
    _require_pending_submission(opp, "edited")

    title = clean_str(body.get("title"), max_len=200)
    description = clean_str(body.get("description"))
    if not title or not description:
        raise HTTPException(status_code=400, detail="Title and description are required")

    updates: dict[str, Any] = {"title": title, "description": description, **opportunities_repo.pick_optional_fields(body)}
    type_id = clean_str(body.get("opportunityTypeId"), max_len=100)
    if type_id:
        require_active_type(type_id, active_only=False)
        updates["opportunityTypeId"] = type_id

    try:
        updated = opportunities_repo.update_opportunity(
            opportunity_id, updates, expect_status=OpportunityStatus.PENDING
        )
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Only pending submissions can be edited")
    return {"message": "Opportunity updated successfully", "opportunity": enrich_opportunity(updated or opp)}


@router.delete("/mentee-opportunities/{opportunity_id}")
def delete_submission(opportunity_id: str, request: Request):
    user = _require_mentee(request)
    opp = _own_submission(opportunity_id, user)
    _require_pending_submission(opp, "deleted")
    try:
        opportunities_repo.update_opportunity(
            opportunity_id,
            {"deletedAt": now_iso()},
            expect_status=OpportunityStatus.PENDING,
        )
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Only pending submissions can be deleted")
    log.info("mentee_opportunity_deleted", opportunity_id=opportunity_id, user_id=user.user_id)
    return {"message": "Opportunity deleted successfully"}
