from __future__ import annotations

from typing import Any, Iterable

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import GSI1, get_main_table
from ..modules.identity.roles import ROLE_ADMIN
from ..modules.moderation import UserStatus
from .common import is_deleted, new_id, now_iso, strip_storage_keys

# Never leave the repository layer.
_PRIVATE_FIELDS = ("otpSecret", "otpExpiry")


def user_key(user_id: str) -> dict[str, str]:
    return {"pk": f"USER#{user_id}", "sk": "USER"}


def normalize_email(email: Any) -> str:
    return str(email or "").strip().lower()


def email_lock_key(email: str) -> dict[str, str]:
    return {"pk": f"USER_EMAIL#{normalize_email(email)}", "sk": "USER_EMAIL"}


def normalize_user_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    out = strip_storage_keys(item)
    if out is None:
        return None
    for k in _PRIVATE_FIELDS:
        out.pop(k, None)
    out["id"] = out.get("userId")
    out["status"] = str(out.get("status") or UserStatus.PENDING.value)
    out["isVerified"] = out["status"] == UserStatus.ACTIVE.value
    return out


def user_summary(user: dict[str, Any] | None) -> dict[str, Any] | None:
    if not user:
        return None
    return {
        "id": user.get("userId") or user.get("id"),
        "email": user.get("email"),
        "firstName": user.get("firstName"),
        "lastName": user.get("lastName"),
        "role": user.get("role"),
    }


def display_name(user: dict[str, Any] | None) -> str:
    u = user or {}
    name = f"{u.get('firstName') or ''} {u.get('lastName') or ''}".strip()
    return name or str(u.get("email") or "")


def get_user_record(user_id: str) -> dict[str, Any] | None:
    """Raw item including the OTP fields; for the auth flow only."""
    uid = str(user_id or "").strip()
    if not uid:
        return None
    return get_main_table().get_item(key=user_key(uid))


def get_user(user_id: str, *, include_deleted: bool = False) -> dict[str, Any] | None:
    item = get_user_record(user_id)
    if not item or (is_deleted(item) and not include_deleted):
        return None
    return normalize_user_for_api(item)


def get_user_record_by_email(email: str) -> dict[str, Any] | None:
    em = normalize_email(email)
    if not em:
        return None
    t = get_main_table()
    lock = t.get_item(key=email_lock_key(em))
    uid = str((lock or {}).get("userId") or "").strip()
    if not uid:
        return None
    return t.get_item(key=user_key(uid))


def create_user(
    *,
    email: str,
    role: str,
    first_name: str | None = None,
    last_name: str | None = None,
    otp_secret: str | None = None,
    otp_expiry: str | None = None,
) -> dict[str, Any]:
    """
    Create a PENDING user.

    The email lock and the user are written in one transaction guarded by
    attribute_not_exists, so a taken email raises DdbConflict and writes nothing.
    """
    em = normalize_email(email)
    user_id = new_id("usr")
    now = now_iso()
    item: dict[str, Any] = {
        **user_key(user_id),
        "entityType": "User",
        "userId": user_id,
        "email": em,
        "firstName": first_name,
        "lastName": last_name,
        "role": role,
        "status": UserStatus.PENDING.value,
        "otpSecret": otp_secret,
        "otpExpiry": otp_expiry,
        "termsAccepted": False,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": "USERS",
        "gsi1sk": f"{now}#{user_id}",
    }
    item = {k: v for k, v in item.items() if v is not None}
    lock = {**email_lock_key(em), "entityType": "UserEmailLock", "userId": user_id, "createdAt": now}

    t = get_main_table()
    t.transact_write(
        puts=(
            t.tx_put(item=lock, must_not_exist=True),
            t.tx_put(item=item, must_not_exist=True),
        )
    )
    return item


def set_otp(user_id: str, *, otp_secret: str, otp_expiry: str) -> None:
    get_main_table().update_fields(
        key=user_key(user_id),
        set_fields={"otpSecret": otp_secret, "otpExpiry": otp_expiry, "updatedAt": now_iso()},
    )


def consume_otp(user_id: str, *, otp_secret: str, new_status: str) -> dict[str, Any] | None:
    """
    Clear the one-time code and mark the login.

    Conditioned on the stored code still being `otp_secret` so a code can be
    redeemed once; a concurrent redemption raises DdbConflict.
    """
    now = now_iso()
    item = get_main_table().update_fields(
        key=user_key(user_id),
        set_fields={"status": new_status, "lastLoginAt": now, "updatedAt": now},
        remove_fields=_PRIVATE_FIELDS,
        expect={"otpSecret": otp_secret},
    )
    return normalize_user_for_api(item)


def update_user(user_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
    allowed = {"firstName", "lastName", "role", "termsAccepted"}
    fields = {k: v for k, v in (updates or {}).items() if k in allowed}
    fields["updatedAt"] = now_iso()
    item = get_main_table().update_fields(key=user_key(user_id), set_fields=fields)
    return normalize_user_for_api(item)


def set_user_status(user_id: str, status: UserStatus, *, clear_otp: bool = False) -> dict[str, Any] | None:
    now = now_iso()
    fields: dict[str, Any] = {"status": status.value, "updatedAt": now}
    if status is UserStatus.REJECTED:
        fields["deletedAt"] = now
    item = get_main_table().update_fields(
        key=user_key(user_id),
        set_fields=fields,
        remove_fields=_PRIVATE_FIELDS if clear_otp else (),
    )
    return normalize_user_for_api(item)


def soft_delete_user(user_id: str) -> dict[str, Any] | None:
    now = now_iso()
    item = get_main_table().update_fields(
        key=user_key(user_id),
        set_fields={"deletedAt": now, "updatedAt": now},
    )
    return normalize_user_for_api(item)


def list_user_records(*, include_deleted: bool = False, newest_first: bool = True) -> list[dict[str, Any]]:
    items = get_main_table().query_all(
        index_name=GSI1,
        key_condition_expression=Key("gsi1pk").eq("USERS"),
        scan_index_forward=not newest_first,
    )
    return [it for it in items if include_deleted or not is_deleted(it)]


def list_users(
    *,
    role: str | None = None,
    status: str | None = None,
    include_deleted: bool = False,
) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for it in list_user_records(include_deleted=include_deleted):
        if role and str(it.get("role") or "") != role:
            continue
        if status and str(it.get("status") or UserStatus.PENDING.value) != status:
            continue
        norm = normalize_user_for_api(it)
        if norm:
            out.append(norm)
    return out


def find_fallback_admin() -> dict[str, Any] | None:
    # Earliest-created live admin owns converted submissions.
    for it in list_user_records(newest_first=False):
        if str(it.get("role") or "") == ROLE_ADMIN:
            return normalize_user_for_api(it)
    return None


def provision_admin(
    *, email: str, first_name: str | None = None, last_name: str | None = None
) -> tuple[dict[str, Any], bool]:
    """
    Seed an ACTIVE admin, or promote and reactivate the account owning `email`.

    Returns (user, created). Admins then sign in through the normal OTP login.
    """
    existing = get_user_record_by_email(email)
    if existing is None:
        created = create_user(email=email, role=ROLE_ADMIN, first_name=first_name, last_name=last_name)
        user_id, was_created = created["userId"], True
    else:
        user_id, was_created = str(existing["userId"]), False
        update_user(user_id, {"role": ROLE_ADMIN})

    now = now_iso()
    item = get_main_table().update_fields(
        key=user_key(user_id),
        set_fields={"status": UserStatus.ACTIVE.value, "deletedAt": None, "updatedAt": now},
        remove_fields=_PRIVATE_FIELDS,
    )
    return normalize_user_for_api(item) or {}, was_created


def get_user_summaries(user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
    t = get_main_table()
    out: dict[str, dict[str, Any]] = {}
    for uid in dict.fromkeys(str(u) for u in user_ids if u):
        item = t.get_item(key=user_key(uid))
        summary = user_summary(normalize_user_for_api(item))
        if summary:
            out[uid] = summary
    return out
