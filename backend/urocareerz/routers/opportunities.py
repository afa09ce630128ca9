from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from ..auth.principal import current_user, require_role
from ..modules.identity.roles import ROLE_MENTOR, is_admin, is_mentee, is_mentor
from ..modules.moderation import OpportunityStatus
from ..observability.logging import get_logger
from ..repositories import opportunities_repo, opportunity_types_repo, users_repo
from ..repositories.common import clean_str
from ..services import notifications
from ..services.opportunity_views import enrich_opportunities, enrich_opportunity

router = APIRouter(tags=["opportunities"])
log = get_logger("opportunities")


def require_active_type(type_id: str, *, active_only: bool = True) -> dict:
    t = opportunity_types_repo.get_type(type_id)
    if not t or (active_only and not bool(t.get("isActive", True))):
        raise HTTPException(status_code=400, detail="Invalid opportunity type")
    return t


@router.post("/opportunities", status_code=201)
def create_opportunity(body: dict, request: Request):
    user = require_role(request, ROLE_MENTOR, detail="Only mentors can post opportunities")

    title = clean_str(body.get("title"), max_len=200)
    description = clean_str(body.get("description"))
    type_id = clean_str(body.get("opportunityTypeId"), max_len=100)
    if not title or not description or not type_id:
        raise HTTPException(status_code=400, detail="Title, description, and opportunity type are required")
    require_active_type(type_id)

    extra = opportunities_repo.pick_optional_fields(body)
    extra.pop("sourceUrl", None)
    extra.pop("sourceName", None)
    opp = opportunities_repo.create_opportunity(
        title=title,
        description=description,
        opportunity_type_id=type_id,
        creator_id=user.user_id,
        creator_role=ROLE_MENTOR,
        status=OpportunityStatus.PENDING,
        extra=extra,
    )
    log.info("opportunity_created", opportunity_id=opp["id"], user_id=user.user_id)

    mentor = users_repo.get_user(user.user_id)
    notifications.best_effort(
        "admin_notification_failed",
        notifications.send_new_submission_to_admin,
        opportunity_title=title,
        submitter_name=users_repo.display_name(mentor),
        creator_role=ROLE_MENTOR,
    )
    return {"message": "Opportunity created successfully", "opportunity": enrich_opportunity(opp)}


@router.get("/opportunities")
def list_opportunities(request: Request):
    user = current_user(request)
    if is_admin(user.role):
        items = opportunities_repo.list_opportunities()
    elif is_mentor(user.role):
        items = opportunities_repo.list_opportunities(creator_id=user.user_id)
    else:
        items = opportunities_repo.list_opportunities(status=OpportunityStatus.APPROVED.value)
    return {"opportunities": enrich_opportunities(items)}


@router.get("/opportunities/{opportunity_id}")
def get_opportunity(opportunity_id: str, request: Request):
    user = current_user(request)
    opp = opportunities_repo.get_opportunity(opportunity_id)
    if not opp:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    if is_mentee(user.role) and opp.get("status") != OpportunityStatus.APPROVED.value:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    return {"opportunity": enrich_opportunity(opp)}
