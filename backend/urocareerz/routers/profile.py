from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from ..auth.principal import current_user
from ..db.dynamodb.errors import DdbConflict
from ..repositories import profiles_repo, users_repo
from ..repositories.common import clean_str
from .user import current_user_view

router = APIRouter(tags=["profile"])


def _load_user(request: Request) -> dict[str, Any]:
    session = current_user(request)
    user = users_repo.get_user(session.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _apply_name_updates(user: dict[str, Any], body: dict[str, Any]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    for k in ("firstName", "lastName"):
        if k in body:
            v = clean_str(body.get(k), max_len=100)
            if v:
                updates[k] = v
    if not updates:
        return user
    return users_repo.update_user(user["id"], updates) or user


@router.get("/profile")
def get_profile(request: Request):
    user = _load_user(request)
    return {"user": current_user_view(user), "profile": profiles_repo.get_profile(user["id"])}


@router.post("/profile", status_code=201)
def create_profile(body: dict, request: Request):
    user = _load_user(request)
    role = str(user.get("role") or "")
    fields = profiles_repo.profile_fields_for_role(role, body or {})
    try:
        profile = profiles_repo.create_profile(user["id"], role=role, fields=fields)
    except DdbConflict:
        raise HTTPException(status_code=409, detail="Profile already exists. Use PUT to update.")
    user = _apply_name_updates(user, body or {})
    return {"message": "Profile created successfully", "user": current_user_view(user), "profile": profile}


@router.put("/profile")
def update_profile(body: dict, request: Request):
    user = _load_user(request)
    role = str(user.get("role") or "")
    fields = profiles_repo.profile_fields_for_role(role, body or {})
    profile = profiles_repo.upsert_profile(user["id"], role=role, fields=fields)
    user = _apply_name_updates(user, body or {})
    return {"message": "Profile updated successfully", "user": current_user_view(user), "profile": profile}
