from __future__ import annotations

from typing import Any

from ..db.dynamodb.table import get_main_table
from ..modules.identity.roles import ROLE_MENTEE, ROLE_MENTOR
from .common import clean_str, now_iso, strip_storage_keys

COMMON_FIELDS = ("bio", "location", "avatar", "avatarFileName", "resume", "resumeFileName")

# Placeholder values older clients send for "no file".
_PLACEHOLDER_FILES = {"", "https://example.com", "example.com"}


def profile_key(user_id: str) -> dict[str, str]:
    return {"pk": f"USER#{user_id}", "sk": "PROFILE"}


def normalize_profile_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    out = strip_storage_keys(item)
    if out is None:
        return None
    out["id"] = out.get("userId")
    return out


def _file_ref(v: Any) -> str | None:
    s = str(v or "").strip()
    if s in _PLACEHOLDER_FILES:
        return None
    return s[:1024]


def _years(v: Any) -> int | None:
    if v is None or v == "":
        return None
    try:
        return max(0, min(80, int(v)))
    except (TypeError, ValueError):
        return None


def _interests(v: Any) -> list[str]:
    arr = v if isinstance(v, list) else []
    out: list[str] = []
    for x in arr:
        s = clean_str(x, max_len=100)
        if s and s not in out:
            out.append(s)
        if len(out) >= 50:
            break
    return out


def profile_fields_for_role(role: str, body: dict[str, Any]) -> dict[str, Any]:
    """
    Pick the profile attributes a user of `role` may set.

    Keys absent from `body` are not returned so a PUT only touches what it sends.
    """
    fields: dict[str, Any] = {}
    for k in COMMON_FIELDS:
        if k not in body:
            continue
        if k in ("avatar", "resume"):
            fields[k] = _file_ref(body.get(k))
        else:
            fields[k] = clean_str(body.get(k))

    if role == ROLE_MENTEE:
        if "education" in body:
            fields["education"] = clean_str(body.get("education"))
        if "purposeOfRegistration" in body:
            fields["purposeOfRegistration"] = clean_str(body.get("purposeOfRegistration"))
        if "interests" in body:
            fields["interests"] = _interests(body.get("interests"))
    elif role == ROLE_MENTOR:
        for k in ("specialty", "subSpecialty", "workplace"):
            if k in body:
                fields[k] = clean_str(body.get(k), max_len=200)
        if "availabilityStatus" in body:
            fields["availabilityStatus"] = clean_str(body.get("availabilityStatus"), max_len=50) or "Available"
        if "yearsOfExperience" in body:
            fields["yearsOfExperience"] = _years(body.get("yearsOfExperience"))
    return fields


def get_profile(user_id: str) -> dict[str, Any] | None:
    return normalize_profile_for_api(get_main_table().get_item(key=profile_key(user_id)))


def create_profile(user_id: str, *, role: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Create-only; DdbConflict when the user already has a profile."""
    now = now_iso()
    item: dict[str, Any] = {
        **profile_key(user_id),
        "entityType": "Profile",
        "userId": user_id,
        "createdAt": now,
        "updatedAt": now,
        **fields,
    }
    if role == ROLE_MENTOR and not item.get("availabilityStatus"):
        item["availabilityStatus"] = "Available"
    item = {k: v for k, v in item.items() if v is not None}
    get_main_table().put_new(item=item)
    return normalize_profile_for_api(item) or {}


def upsert_profile(user_id: str, *, role: str, fields: dict[str, Any]) -> dict[str, Any]:
    existing = get_main_table().get_item(key=profile_key(user_id))
    if not existing:
        return create_profile(user_id, role=role, fields=fields)
    item = get_main_table().update_fields(
        key=profile_key(user_id),
        set_fields={**fields, "updatedAt": now_iso()},
    )
    return normalize_profile_for_api(item) or {}
