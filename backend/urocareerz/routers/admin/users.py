from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ...auth.principal import current_user
from ...modules.identity.roles import normalize_role
from ...modules.moderation import InvalidTransition, UserStatus, ensure_user_transition, parse_user_status
from ...observability.logging import get_logger
from ...repositories import profiles_repo, users_repo
from ...repositories.common import clean_str
from ...services import notifications
from ...services.audit import record_audit

router = APIRouter(tags=["admin"])
log = get_logger("admin_users")

_ADMIN_SETTABLE_STATUSES = {"active": UserStatus.ACTIVE, "inactive": UserStatus.INACTIVE}


class UpdateUserRequest(BaseModel):
    firstName: str | None = None
    lastName: str | None = None
    role: str | None = None


class RoleRequest(BaseModel):
    role: str | None = None


class StatusRequest(BaseModel):
    status: str | None = None


def _user_or_404(user_id: str) -> dict[str, Any]:
    user = users_repo.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _transition(user: dict[str, Any], target: UserStatus) -> None:
    try:
        ensure_user_transition(user.get("status"), target)
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/users")
def list_users(status: str | None = None, role: str | None = None):
    st = parse_user_status(status) if status else None
    if status and st is None:
        raise HTTPException(status_code=400, detail="Invalid status")
    r = normalize_role(role) if role else None
    if role and r is None:
        raise HTTPException(status_code=400, detail="Invalid role")

    # Rejected users are soft-deleted; they are only listed when asked for.
    users = users_repo.list_users(
        role=r,
        status=st.value if st else None,
        include_deleted=st is UserStatus.REJECTED,
    )
    return {"users": users, "total": len(users)}


@router.get("/users/{user_id}")
def get_user(user_id: str):
    user = users_repo.get_user(user_id, include_deleted=True)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": user, "profile": profiles_repo.get_profile(user_id)}


@router.put("/users/{user_id}")
def update_user(user_id: str, body: UpdateUserRequest, request: Request):
    admin = current_user(request)
    first = clean_str(body.firstName, max_len=100)
    last = clean_str(body.lastName, max_len=100)
    if not first or not last or not body.role:
        raise HTTPException(status_code=400, detail="First name, last name, and role are required")
    role = normalize_role(body.role)
    if not role:
        raise HTTPException(status_code=400, detail="Invalid role")

    _user_or_404(user_id)
    updated = users_repo.update_user(user_id, {"firstName": first, "lastName": last, "role": role})
    record_audit(
        request,
        action="USER_UPDATED",
        entity_type="User",
        entity_id=user_id,
        user_id=admin.user_id,
        details={"firstName": first, "lastName": last, "role": role},
    )
    return {"message": "User updated successfully", "user": updated}


@router.delete("/users/{user_id}")
def delete_user(user_id: str, request: Request):
    admin = current_user(request)
    user = _user_or_404(user_id)
    users_repo.soft_delete_user(user_id)
    log.info("user_deleted", user_id=user_id, admin_id=admin.user_id)
    record_audit(
        request,
        action="USER_DELETED",
        entity_type="User",
        entity_id=user_id,
        user_id=admin.user_id,
        details={"role": user.get("role")},
    )
    return {"message": "User deleted successfully"}


@router.post("/users/{user_id}/approve")
def approve_user(user_id: str, request: Request):
    admin = current_user(request)
    user = _user_or_404(user_id)
    _transition(user, UserStatus.ACTIVE)
    updated = users_repo.set_user_status(user_id, UserStatus.ACTIVE, clear_otp=True)

    notifications.best_effort(
        "approval_email_failed",
        notifications.send_account_approved,
        to=str(user.get("email") or ""),
        first_name=user.get("firstName"),
    )
    record_audit(request, action="USER_APPROVED", entity_type="User", entity_id=user_id, user_id=admin.user_id)
    return {"message": "User approved successfully", "user": updated}


@router.post("/users/{user_id}/reject")
def reject_user(user_id: str, request: Request):
    admin = current_user(request)
    user = _user_or_404(user_id)
    _transition(user, UserStatus.REJECTED)
    updated = users_repo.set_user_status(user_id, UserStatus.REJECTED, clear_otp=True)
    record_audit(request, action="USER_REJECTED", entity_type="User", entity_id=user_id, user_id=admin.user_id)
    return {"message": "User rejected successfully", "user": updated}


@router.put("/users/{user_id}/role")
def change_role(user_id: str, body: RoleRequest, request: Request):
    admin = current_user(request)
    role = normalize_role(body.role)
    if not role:
        raise HTTPException(status_code=400, detail="Invalid role")
    user = _user_or_404(user_id)
    updated = users_repo.update_user(user_id, {"role": role})
    record_audit(
        request,
        action="USER_ROLE_CHANGED",
        entity_type="User",
        entity_id=user_id,
        user_id=admin.user_id,
        details={"from": user.get("role"), "to": role},
    )
    return {"message": "User role updated successfully", "user": updated}


@router.put("/users/{user_id}/status")
def change_status(user_id: str, body: StatusRequest, request: Request):
    admin = current_user(request)
    target = _ADMIN_SETTABLE_STATUSES.get(str(body.status or "").strip().lower())
    if target is None:
        raise HTTPException(status_code=400, detail="Invalid status. Must be one of: active, inactive")
    user = _user_or_404(user_id)
    _transition(user, target)
    updated = users_repo.set_user_status(user_id, target, clear_otp=target is UserStatus.ACTIVE)
    record_audit(
        request,
        action="USER_STATUS_CHANGED",
        entity_type="User",
        entity_id=user_id,
        user_id=admin.user_id,
        details={"from": user.get("status"), "to": target.value},
    )
    return {"message": "User status updated successfully", "user": updated}
