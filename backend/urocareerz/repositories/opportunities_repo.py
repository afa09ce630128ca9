from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import GSI1, get_main_table
from ..modules.moderation import OpportunityStatus
from .common import clean_str, is_deleted, new_id, now_iso, strip_storage_keys

OPTIONAL_FIELDS = (
    "location",
    "experienceLevel",
    "requirements",
    "benefits",
    "duration",
    "compensation",
    "applicationDeadline",
    "sourceUrl",
    "sourceName",
)


def opportunity_key(opportunity_id: str) -> dict[str, str]:
    return {"pk": f"OPPORTUNITY#{opportunity_id}", "sk": "OPPORTUNITY"}


def normalize_opportunity_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    out = strip_storage_keys(item)
    if out is None:
        return None
    out["id"] = out.get("opportunityId")
    return out


def pick_optional_fields(body: dict[str, Any]) -> dict[str, Any]:
    return {k: clean_str(body.get(k)) for k in OPTIONAL_FIELDS if k in body}


def get_opportunity(opportunity_id: str, *, include_deleted: bool = False) -> dict[str, Any] | None:
    oid = str(opportunity_id or "").strip()
    if not oid:
        return None
    item = get_main_table().get_item(key=opportunity_key(oid))
    if not item or (is_deleted(item) and not include_deleted):
        return None
    return normalize_opportunity_for_api(item)


def create_opportunity(
    *,
    title: str,
    description: str,
    opportunity_type_id: str,
    creator_id: str,
    creator_role: str,
    status: OpportunityStatus = OpportunityStatus.PENDING,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    opportunity_id = new_id("opp")
    now = now_iso()
    item: dict[str, Any] = {
        **opportunity_key(opportunity_id),
        "entityType": "Opportunity",
        "opportunityId": opportunity_id,
        "title": title,
        "description": description,
        "opportunityTypeId": opportunity_type_id,
        "creatorId": creator_id,
        "creatorRole": creator_role,
        "status": status.value,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": "OPPORTUNITIES",
        "gsi1sk": f"{now}#{opportunity_id}",
        **(extra or {}),
    }
    item = {k: v for k, v in item.items() if v is not None}
    get_main_table().put_new(item=item)
    return normalize_opportunity_for_api(item) or {}


def update_opportunity(
    opportunity_id: str,
    updates: dict[str, Any],
    *,
    expect_status: OpportunityStatus | None = None,
) -> dict[str, Any] | None:
    """
    Partial update. `expect_status` turns it into a guarded transition: the write
    only lands if the stored status still matches (DdbConflict otherwise).
    """
    fields = dict(updates or {})
    fields["updatedAt"] = now_iso()
    item = get_main_table().update_fields(
        key=opportunity_key(opportunity_id),
        set_fields=fields,
        expect={"status": expect_status.value} if expect_status else None,
        absent=("deletedAt",),
    )
    return normalize_opportunity_for_api(item)


def transition_status(
    opportunity_id: str,
    *,
    target: OpportunityStatus,
    admin_feedback: str | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """PENDING -> target; DdbConflict if another moderator got there first."""
    fields: dict[str, Any] = {"status": target.value, "reviewedAt": now_iso(), **(extra or {})}
    if admin_feedback is not None:
        fields["adminFeedback"] = admin_feedback
    return update_opportunity(opportunity_id, fields, expect_status=OpportunityStatus.PENDING)


def soft_delete_opportunity(opportunity_id: str) -> dict[str, Any] | None:
    return update_opportunity(opportunity_id, {"deletedAt": now_iso()})


def list_opportunities(
    *,
    creator_id: str | None = None,
    creator_role: str | None = None,
    status: str | None = None,
    type_id: str | None = None,
    include_deleted: bool = False,
) -> list[dict[str, Any]]:
    """Newest first; soft-deleted rows are excluded unless asked for."""
    items = get_main_table().query_all(
        index_name=GSI1,
        key_condition_expression=Key("gsi1pk").eq("OPPORTUNITIES"),
        scan_index_forward=False,
    )
    out: list[dict[str, Any]] = []
    for it in items:
        if not include_deleted and is_deleted(it):
            continue
        if creator_id and str(it.get("creatorId") or "") != creator_id:
            continue
        if creator_role and str(it.get("creatorRole") or "") != creator_role:
            continue
        if status and str(it.get("status") or "") != status:
            continue
        if type_id and str(it.get("opportunityTypeId") or "") != type_id:
            continue
        norm = normalize_opportunity_for_api(it)
        if norm:
            out.append(norm)
    return out


def count_using_type(type_id: str) -> int:
    return len(list_opportunities(type_id=type_id))


def convert_to_regular(
    opportunity_id: str,
    *,
    source: dict[str, Any],
    owner_id: str,
    owner_role: str,
    admin_feedback: str | None = None,
) -> dict[str, Any]:
    """
    Publish a mentee submission as a regular APPROVED opportunity.

    The clone put and the PENDING -> CONVERTED update of the source run in one
    transaction; DdbConflict when the source is no longer pending.
    """
    clone_id = new_id("opp")
    now = now_iso()
    clone: dict[str, Any] = {
        **opportunity_key(clone_id),
        "entityType": "Opportunity",
        "opportunityId": clone_id,
        "title": source.get("title"),
        "description": source.get("description"),
        "opportunityTypeId": source.get("opportunityTypeId"),
        "creatorId": owner_id,
        "creatorRole": owner_role,
        "status": OpportunityStatus.APPROVED.value,
        "convertedFromId": opportunity_id,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": "OPPORTUNITIES",
        "gsi1sk": f"{now}#{clone_id}",
        **{k: source.get(k) for k in OPTIONAL_FIELDS},
    }
    clone = {k: v for k, v in clone.items() if v is not None}

    fields: dict[str, Any] = {
        "status": OpportunityStatus.CONVERTED.value,
        "reviewedAt": now,
        "convertedToId": clone_id,
        "updatedAt": now,
    }
    if admin_feedback is not None:
        fields["adminFeedback"] = admin_feedback

    t = get_main_table()
    t.transact_write(
        puts=(t.tx_put(item=clone, must_not_exist=True),),
        updates=(
            t.tx_update(
                key=opportunity_key(opportunity_id),
                set_fields=fields,
                expect={"status": OpportunityStatus.PENDING.value},
                absent=("deletedAt",),
            ),
        ),
    )
    return normalize_opportunity_for_api(clone) or {}
