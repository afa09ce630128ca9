from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request
from pydantic import BaseModel

from ...auth.principal import current_user
from ...db.dynamodb.errors import DdbConflict
from ...repositories import opportunities_repo, opportunity_types_repo
from ...repositories.common import clean_str
from ...services.audit import record_audit

router = APIRouter(tags=["admin"])


class TypeRequest(BaseModel):
    id: str | None = None
    name: str | None = None
    description: str | None = None
    color: str | None = None


@router.get("/opportunity-types")
def list_types():
    types = opportunity_types_repo.list_types(active_only=False)
    types.sort(key=lambda t: str(t.get("name") or "").lower())
    return {"opportunityTypes": types}


@router.post("/opportunity-types", status_code=201)
def create_type(body: TypeRequest, request: Request):
    admin = current_user(request)
    name = clean_str(body.name, max_len=100)
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    try:
        t = opportunity_types_repo.create_type(
            name=name,
            description=clean_str(body.description, max_len=500),
            color=clean_str(body.color, max_len=20),
        )
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Opportunity type already exists")
    record_audit(
        request,
        action="OPPORTUNITY_TYPE_CREATED",
        entity_type="OpportunityType",
        entity_id=t["id"],
        user_id=admin.user_id,
        details={"name": name},
    )
    return {"message": "Opportunity type created successfully", "opportunityType": t}


@router.put("/opportunity-types")
def update_type(body: TypeRequest, request: Request):
    admin = current_user(request)
    type_id = clean_str(body.id, max_len=100)
    name = clean_str(body.name, max_len=100)
    if not type_id or not name:
        raise HTTPException(status_code=400, detail="ID and name are required")
    if not opportunity_types_repo.get_type(type_id):
        raise HTTPException(status_code=404, detail="Opportunity type not found")
    try:
        t = opportunity_types_repo.update_type(
            type_id,
            name=name,
            description=clean_str(body.description, max_len=500),
            color=clean_str(body.color, max_len=20),
        )
    except DdbConflict:
        raise HTTPException(status_code=400, detail="Opportunity type with this name already exists")
    record_audit(
        request,
        action="OPPORTUNITY_TYPE_UPDATED",
        entity_type="OpportunityType",
        entity_id=type_id,
        user_id=admin.user_id,
        details={"name": name},
    )
    return {"message": "Opportunity type updated successfully", "opportunityType": t}


@router.delete("/opportunity-types")
def delete_type(request: Request, id: str | None = None, body: dict[str, Any] | None = Body(default=None)):
    admin = current_user(request)
    type_id = clean_str((body or {}).get("id") or id, max_len=100)
    if not type_id:
        raise HTTPException(status_code=400, detail="ID is required")
    if not opportunity_types_repo.get_type(type_id):
        raise HTTPException(status_code=404, detail="Opportunity type not found")
    if opportunities_repo.count_using_type(type_id) > 0:
        raise HTTPException(status_code=400, detail="Cannot delete opportunity type that is in use")

    opportunity_types_repo.deactivate_type(type_id)
    record_audit(
        request,
        action="OPPORTUNITY_TYPE_DELETED",
        entity_type="OpportunityType",
        entity_id=type_id,
        user_id=admin.user_id,
    )
    return {"message": "Opportunity type deleted successfully"}
