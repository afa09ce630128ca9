from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..auth.principal import current_user, require_role
from ..db.dynamodb.errors import DdbConflict
from ..modules.identity.roles import ROLE_MENTEE
from ..modules.moderation import OpportunityStatus
from ..repositories import opportunities_repo, saved_opportunities_repo
from ..services.opportunity_views import enrich_opportunities

router = APIRouter(tags=["saved-opportunities"])


class SaveRequest(BaseModel):
    opportunityId: str | None = None


@router.get("/saved-opportunities")
def list_saved(request: Request):
    user = require_role(request, ROLE_MENTEE, detail="Access denied")

    saved = saved_opportunities_repo.list_saved_for_user(user.user_id)
    opps = [opportunities_repo.get_opportunity(str(s.get("opportunityId") or "")) for s in saved]
    by_id = {o["id"]: o for o in enrich_opportunities([o for o in opps if o])}
    out = []
    for s in saved:
        opp = by_id.get(str(s.get("opportunityId") or ""))
        # Opportunities deleted after saving drop out of the list.
        if opp is None:
            continue
        out.append({**s, "opportunity": opp})
    return {"savedOpportunities": out}


@router.post("/saved-opportunities", status_code=201)
def save(body: SaveRequest, request: Request):
    user = current_user(request)
    opportunity_id = str(body.opportunityId or "").strip()
    if not opportunity_id:
        raise HTTPException(status_code=400, detail="Opportunity ID is required")
    opp = opportunities_repo.get_opportunity(opportunity_id)
    if not opp:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    if opp.get("status") != OpportunityStatus.APPROVED.value:
        raise HTTPException(status_code=400, detail="Cannot save unapproved opportunity")

    try:
        saved = saved_opportunities_repo.save_opportunity(user_id=user.user_id, opportunity_id=opportunity_id)
    except DdbConflict:
        raise HTTPException(status_code=409, detail="Opportunity already saved")
    return {"message": "Opportunity saved successfully", "savedOpportunity": saved}


@router.delete("/saved-opportunities")
def unsave(request: Request, opportunityId: str | None = None):
    user = current_user(request)
    opportunity_id = str(opportunityId or "").strip()
    if not opportunity_id:
        raise HTTPException(status_code=400, detail="Opportunity ID is required")
    if not saved_opportunities_repo.get_saved(user_id=user.user_id, opportunity_id=opportunity_id):
        raise HTTPException(status_code=404, detail="Saved opportunity not found")
    saved_opportunities_repo.unsave_opportunity(user_id=user.user_id, opportunity_id=opportunity_id)
    return {"message": "Opportunity removed from saved list"}
