from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import GSI1, get_main_table
from .common import now_iso, strip_storage_keys


def saved_key(user_id: str, opportunity_id: str) -> dict[str, str]:
    return {"pk": f"USER#{user_id}", "sk": f"SAVED#{opportunity_id}"}


def normalize_saved_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    out = strip_storage_keys(item)
    if out is None:
        return None
    out["id"] = f"{out.get('userId')}:{out.get('opportunityId')}"
    return out


def save_opportunity(*, user_id: str, opportunity_id: str) -> dict[str, Any]:
    """The (user, opportunity) pair is the key; saving twice raises DdbConflict."""
    now = now_iso()
    item = {
        **saved_key(user_id, opportunity_id),
        "entityType": "SavedOpportunity",
        "userId": user_id,
        "opportunityId": opportunity_id,
        "createdAt": now,
        "gsi1pk": f"SAVES#{opportunity_id}",
        "gsi1sk": f"{now}#{user_id}",
    }
    get_main_table().put_new(item=item)
    return normalize_saved_for_api(item) or {}


def get_saved(*, user_id: str, opportunity_id: str) -> dict[str, Any] | None:
    return normalize_saved_for_api(get_main_table().get_item(key=saved_key(user_id, opportunity_id)))


def unsave_opportunity(*, user_id: str, opportunity_id: str) -> None:
    get_main_table().delete_item(key=saved_key(user_id, opportunity_id))


def list_saved_for_user(user_id: str) -> list[dict[str, Any]]:
    items = get_main_table().query_all(
        key_condition_expression=Key("pk").eq(f"USER#{user_id}") & Key("sk").begins_with("SAVED#"),
    )
    out = [n for n in (normalize_saved_for_api(it) for it in items) if n]
    out.sort(key=lambda s: str(s.get("createdAt") or ""), reverse=True)
    return out


def list_savers(opportunity_id: str) -> list[dict[str, Any]]:
    items = get_main_table().query_all(
        index_name=GSI1,
        key_condition_expression=Key("gsi1pk").eq(f"SAVES#{opportunity_id}"),
        scan_index_forward=False,
    )
    return [n for n in (normalize_saved_for_api(it) for it in items) if n]


def count_savers(opportunity_id: str) -> int:
    return len(list_savers(opportunity_id))
