from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key
from cachetools import TTLCache

from ..db.dynamodb.table import GSI1, get_main_table
from .common import new_id, now_iso, strip_storage_keys

# Public type list is read on every board page load; admin writes invalidate it.
_ACTIVE_TYPES_CACHE: TTLCache[str, list[dict[str, Any]]] = TTLCache(maxsize=1, ttl=60)


def type_key(type_id: str) -> dict[str, str]:
    return {"pk": f"OPPTYPE#{type_id}", "sk": "OPPTYPE"}


def name_lock_key(name: str) -> dict[str, str]:
    return {"pk": f"OPPTYPE_NAME#{str(name or '').strip().lower()}", "sk": "OPPTYPE_NAME"}


def normalize_type_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    out = strip_storage_keys(item)
    if out is None:
        return None
    out["id"] = out.get("typeId")
    return out


def type_summary(t: dict[str, Any] | None) -> dict[str, Any] | None:
    if not t:
        return None
    return {"id": t.get("typeId") or t.get("id"), "name": t.get("name"), "color": t.get("color")}


def invalidate_cache() -> None:
    _ACTIVE_TYPES_CACHE.clear()


def get_type(type_id: str) -> dict[str, Any] | None:
    tid = str(type_id or "").strip()
    if not tid:
        return None
    return normalize_type_for_api(get_main_table().get_item(key=type_key(tid)))


def list_types(*, active_only: bool = True) -> list[dict[str, Any]]:
    if active_only and "active" in _ACTIVE_TYPES_CACHE:
        return list(_ACTIVE_TYPES_CACHE["active"])

    items = get_main_table().query_all(
        index_name=GSI1,
        key_condition_expression=Key("gsi1pk").eq("OPPTYPES"),
        scan_index_forward=True,
    )
    out: list[dict[str, Any]] = []
    for it in items:
        if active_only and not bool(it.get("isActive", True)):
            continue
        norm = normalize_type_for_api(it)
        if norm:
            out.append(norm)
    if active_only:
        _ACTIVE_TYPES_CACHE["active"] = list(out)
    return out


def type_map() -> dict[str, dict[str, Any]]:
    return {str(t["typeId"]): t for t in list_types(active_only=False) if t.get("typeId")}


def create_type(*, name: str, description: str | None = None, color: str | None = None) -> dict[str, Any]:
    """Raises DdbConflict when a type with the same (case-insensitive) name exists."""
    nm = str(name).strip()
    type_id = new_id("otype")
    now = now_iso()
    item: dict[str, Any] = {
        **type_key(type_id),
        "entityType": "OpportunityType",
        "typeId": type_id,
        "name": nm,
        "description": description,
        "color": color,
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": "OPPTYPES",
        "gsi1sk": nm.lower(),
    }
    item = {k: v for k, v in item.items() if v is not None}
    lock = {**name_lock_key(nm), "entityType": "OpportunityTypeNameLock", "typeId": type_id}

    t = get_main_table()
    t.transact_write(puts=(t.tx_put(item=lock, must_not_exist=True), t.tx_put(item=item, must_not_exist=True)))
    invalidate_cache()
    return normalize_type_for_api(item) or {}


def update_type(
    type_id: str,
    *,
    name: str,
    description: str | None = None,
    color: str | None = None,
) -> dict[str, Any] | None:
    """
    Rename moves the name lock in the same transaction; DdbConflict when the new
    name is taken.
    """
    t = get_main_table()
    current = t.get_item(key=type_key(type_id))
    if not current:
        return None

    nm = str(name).strip()
    old_name = str(current.get("name") or "")
    fields = {
        "name": nm,
        "description": description,
        "color": color,
        "gsi1sk": nm.lower(),
        "updatedAt": now_iso(),
    }
    if nm.lower() == old_name.lower():
        t.update_fields(key=type_key(type_id), set_fields=fields)
    else:
        lock = {**name_lock_key(nm), "entityType": "OpportunityTypeNameLock", "typeId": type_id}
        t.transact_write(
            puts=(t.tx_put(item=lock, must_not_exist=True),),
            updates=(t.tx_update(key=type_key(type_id), set_fields=fields),),
            deletes=(t.tx_delete(key=name_lock_key(old_name)),),
        )
    invalidate_cache()
    return get_type(type_id)


def deactivate_type(type_id: str) -> dict[str, Any] | None:
    item = get_main_table().update_fields(
        key=type_key(type_id),
        set_fields={"isActive": False, "updatedAt": now_iso()},
    )
    invalidate_cache()
    return normalize_type_for_api(item)
