from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from ..auth.principal import current_user
from ..repositories import users_repo
from ..services.audit import record_audit

router = APIRouter(tags=["user"])


def current_user_view(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": user.get("id"),
        "email": user.get("email"),
        "firstName": user.get("firstName"),
        "lastName": user.get("lastName"),
        "role": user.get("role"),
        "status": user.get("status"),
        "termsAccepted": bool(user.get("termsAccepted")),
        "createdAt": user.get("createdAt"),
    }


@router.get("/user")
def get_current_user(request: Request):
    session = current_user(request)
    user = users_repo.get_user(session.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": current_user_view(user)}


@router.post("/user/accept-terms")
def accept_terms(request: Request):
    session = current_user(request)
    if not users_repo.get_user(session.user_id):
        raise HTTPException(status_code=404, detail="User not found")
    user = users_repo.update_user(session.user_id, {"termsAccepted": True}) or {}
    record_audit(
        request,
        action="TERMS_ACCEPTED",
        entity_type="User",
        entity_id=session.user_id,
        user_id=session.user_id,
    )
    return {"message": "Terms accepted successfully", "user": current_user_view(user)}
