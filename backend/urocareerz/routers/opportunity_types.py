from __future__ import annotations

from fastapi import APIRouter

from ..repositories import opportunity_types_repo

router = APIRouter(tags=["opportunity-types"])


@router.get("/opportunity-types")
def list_active_types():
    types = sorted(opportunity_types_repo.list_types(active_only=True), key=lambda t: str(t.get("name") or "").lower())
    return {"opportunityTypes": types}
