from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from ..auth.otp import generate_otp, is_expired, otp_expiry, otp_matches
from ..auth.session_tokens import issue_session_token, session_ttl_seconds
from ..db.dynamodb.errors import DdbConflict
from ..middleware.auth import SESSION_COOKIE
from ..modules.identity.roles import ROLE_MENTEE, SELF_SERVICE_ROLES, normalize_role
from ..modules.moderation import UserStatus, can_sign_in
from ..observability.logging import email_domain, get_logger
from ..repositories import users_repo
from ..services import notifications
from ..services.audit import record_audit
from ..services.email_ses import is_valid_email
from ..settings import settings

router = APIRouter(tags=["auth"])
log = get_logger("auth")

NAME_COOKIE = "name"


class RegisterRequest(BaseModel):
    email: str | None = None
    firstName: str | None = None
    lastName: str | None = None
    role: str | None = None


class VerifyOtpRequest(BaseModel):
    userId: str | None = None
    otp: str | None = None


class SendOtpRequest(BaseModel):
    email: str | None = None


class ResendOtpRequest(BaseModel):
    userId: str | None = None


def _deliver_otp(user: dict[str, Any], otp: str) -> bool:
    """
    Email the code. Outside production an unconfigured sender is tolerated so
    local runs can use the `otp` echoed in the response.
    """
    res = notifications.best_effort(
        "otp_email_failed",
        notifications.send_otp_email,
        to=str(user.get("email") or ""),
        otp=otp,
        first_name=user.get("firstName"),
    )
    if res.get("ok"):
        log.info("otp_sent", email_domain=email_domain(user.get("email")))
        return True
    if not settings.is_production and res.get("error") == "email_not_configured":
        return False
    raise HTTPException(status_code=500, detail="Failed to send verification email")


def _with_dev_otp(payload: dict[str, Any], otp: str) -> dict[str, Any]:
    if not settings.is_production:
        payload["otp"] = otp
    return payload


def _public_user(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": user.get("userId") or user.get("id"),
        "email": user.get("email"),
        "firstName": user.get("firstName"),
        "lastName": user.get("lastName"),
        "role": user.get("role"),
        "status": user.get("status"),
    }


@router.post("/register", status_code=201)
def register(body: RegisterRequest, request: Request):
    email = users_repo.normalize_email(body.email)
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    role = ROLE_MENTEE
    if body.role:
        role = normalize_role(body.role) or ""
        # Admins are provisioned with scripts/create_admin.py, never self-registered.
        if role not in SELF_SERVICE_ROLES:
            raise HTTPException(status_code=400, detail="Invalid role")

    otp = generate_otp()
    try:
        user = users_repo.create_user(
            email=email,
            role=role,
            first_name=(body.firstName or "").strip() or None,
            last_name=(body.lastName or "").strip() or None,
            otp_secret=otp,
            otp_expiry=otp_expiry(),
        )
    except DdbConflict:
        raise HTTPException(status_code=409, detail="User with this email already exists")

    log.info("user_registered", user_id=user["userId"], role=role, email_domain=email_domain(email))
    record_audit(
        request,
        action="USER_REGISTERED",
        entity_type="User",
        entity_id=user["userId"],
        user_id=user["userId"],
        details={"role": role},
    )

    sent = _deliver_otp(user, otp)
    return _with_dev_otp(
        {
            "message": "Registration successful. Please check your email for verification code.",
            "userId": user["userId"],
            "emailSent": sent,
        },
        otp,
    )


@router.post("/verify-otp")
def verify_otp(body: VerifyOtpRequest, request: Request, response: Response):
    user_id = str(body.userId or "").strip()
    code = str(body.otp or "").strip()
    if not user_id or not code:
        raise HTTPException(status_code=400, detail="User ID and OTP are required")

    record = users_repo.get_user_record(user_id)
    if not record or str(record.get("deletedAt") or "").strip():
        raise HTTPException(status_code=404, detail="User not found")
    if not can_sign_in(record):
        raise HTTPException(status_code=403, detail="Account is inactive")

    stored = str(record.get("otpSecret") or "")
    if not stored:
        raise HTTPException(status_code=400, detail="No OTP found. Please request a new one.")
    # Failed attempts keep the stored code so the user can retry.
    if is_expired(record.get("otpExpiry")):
        raise HTTPException(status_code=400, detail="OTP has expired")
    if not otp_matches(stored, code):
        log.info("otp_mismatch", user_id=user_id)
        raise HTTPException(status_code=401, detail="Invalid OTP")

    current = str(record.get("status") or UserStatus.PENDING.value)
    new_status = UserStatus.ACTIVE.value if current == UserStatus.PENDING.value else current
    try:
        user = users_repo.consume_otp(user_id, otp_secret=stored, new_status=new_status)
    except DdbConflict:
        raise HTTPException(status_code=400, detail="No OTP found. Please request a new one.")
    user = user or users_repo.normalize_user_for_api(record) or {}

    token = issue_session_token(user)
    max_age = session_ttl_seconds()
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=max_age,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
        path="/",
    )
    response.set_cookie(
        NAME_COOKIE,
        users_repo.display_name(user),
        max_age=max_age,
        httponly=False,
        samesite="lax",
        secure=settings.session_cookie_secure,
        path="/",
    )

    log.info("user_signed_in", user_id=user_id, role=user.get("role"))
    record_audit(request, action="USER_LOGIN", entity_type="User", entity_id=user_id, user_id=user_id)
    return {"message": "OTP verified successfully", "user": _public_user(user)}


@router.post("/login/send-otp")
def send_login_otp(body: SendOtpRequest):
    email = users_repo.normalize_email(body.email)
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")

    record = users_repo.get_user_record_by_email(email)
    if not record or str(record.get("deletedAt") or "").strip():
        raise HTTPException(status_code=404, detail="No account found with this email")
    if not can_sign_in(record):
        raise HTTPException(status_code=403, detail="Account is inactive")

    otp = generate_otp()
    users_repo.set_otp(record["userId"], otp_secret=otp, otp_expiry=otp_expiry())
    _deliver_otp(record, otp)
    return _with_dev_otp({"message": "OTP sent to your email", "userId": record["userId"]}, otp)


@router.post("/resend-otp")
def resend_otp(body: ResendOtpRequest):
    user_id = str(body.userId or "").strip()
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID is required")

    record = users_repo.get_user_record(user_id)
    if not record or str(record.get("deletedAt") or "").strip():
        raise HTTPException(status_code=404, detail="User not found")
    if not can_sign_in(record):
        raise HTTPException(status_code=403, detail="Account is inactive")

    otp = generate_otp()
    users_repo.set_otp(user_id, otp_secret=otp, otp_expiry=otp_expiry())
    _deliver_otp(record, otp)
    return _with_dev_otp({"message": "OTP resent successfully", "userId": user_id}, otp)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(NAME_COOKIE, path="/")
    return {"message": "Logged out successfully"}
