from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import GSI1, get_main_table
from ..modules.moderation import ApplicationStatus
from .common import new_id, now_iso, strip_storage_keys
from .opportunities_repo import opportunity_key


def application_key(application_id: str) -> dict[str, str]:
    return {"pk": f"APPLICATION#{application_id}", "sk": "APPLICATION"}


def applicant_lock_key(opportunity_id: str, mentee_id: str) -> dict[str, str]:
    return {"pk": opportunity_key(opportunity_id)["pk"], "sk": f"APPLICANT#{mentee_id}"}


def normalize_application_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    out = strip_storage_keys(item)
    if out is None:
        return None
    out["id"] = out.get("applicationId")
    return out


def get_application(application_id: str) -> dict[str, Any] | None:
    aid = str(application_id or "").strip()
    if not aid:
        return None
    return normalize_application_for_api(get_main_table().get_item(key=application_key(aid)))


def create_application(
    *,
    opportunity_id: str,
    mentee_id: str,
    mentor_id: str | None,
    cover_letter: str | None = None,
) -> dict[str, Any]:
    """
    One application per (mentee, opportunity): the applicant lock is written in
    the same transaction, so a second attempt raises DdbConflict.
    """
    application_id = new_id("app")
    now = now_iso()
    item: dict[str, Any] = {
        **application_key(application_id),
        "entityType": "Application",
        "applicationId": application_id,
        "opportunityId": opportunity_id,
        "menteeId": mentee_id,
        "mentorId": mentor_id,
        "coverLetter": cover_letter,
        "status": ApplicationStatus.PENDING.value,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": "APPLICATIONS",
        "gsi1sk": f"{now}#{application_id}",
    }
    item = {k: v for k, v in item.items() if v is not None}
    lock = {
        **applicant_lock_key(opportunity_id, mentee_id),
        "entityType": "ApplicantLock",
        "applicationId": application_id,
        "menteeId": mentee_id,
        "createdAt": now,
    }
    t = get_main_table()
    t.transact_write(puts=(t.tx_put(item=lock, must_not_exist=True), t.tx_put(item=item, must_not_exist=True)))
    return normalize_application_for_api(item) or {}


def has_applied(*, opportunity_id: str, mentee_id: str) -> bool:
    return bool(get_main_table().get_item(key=applicant_lock_key(opportunity_id, mentee_id)))


def set_application_status(
    application_id: str,
    *,
    target: ApplicationStatus,
    expect: ApplicationStatus = ApplicationStatus.PENDING,
) -> dict[str, Any] | None:
    item = get_main_table().update_fields(
        key=application_key(application_id),
        set_fields={"status": target.value, "updatedAt": now_iso()},
        expect={"status": expect.value},
    )
    return normalize_application_for_api(item)


def list_applications(
    *,
    mentee_id: str | None = None,
    opportunity_ids: set[str] | None = None,
    status: str | None = None,
) -> list[dict[str, Any]]:
    """Newest first."""
    items = get_main_table().query_all(
        index_name=GSI1,
        key_condition_expression=Key("gsi1pk").eq("APPLICATIONS"),
        scan_index_forward=False,
    )
    out: list[dict[str, Any]] = []
    for it in items:
        if mentee_id and str(it.get("menteeId") or "") != mentee_id:
            continue
        if opportunity_ids is not None and str(it.get("opportunityId") or "") not in opportunity_ids:
            continue
        if status and str(it.get("status") or "") != status:
            continue
        norm = normalize_application_for_api(it)
        if norm:
            out.append(norm)
    return out


def list_applicant_ids(opportunity_id: str) -> list[str]:
    items = get_main_table().query_all(
        key_condition_expression=Key("pk").eq(opportunity_key(opportunity_id)["pk"])
        & Key("sk").begins_with("APPLICANT#"),
        scan_index_forward=True,
    )
    return [str(it.get("menteeId")) for it in items if it.get("menteeId")]


def count_by_opportunity() -> dict[str, int]:
    counts: dict[str, int] = {}
    for a in list_applications():
        oid = str(a.get("opportunityId") or "")
        counts[oid] = counts.get(oid, 0) + 1
    return counts
