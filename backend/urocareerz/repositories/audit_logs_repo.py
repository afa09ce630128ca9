from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import GSI1, get_main_table
from .common import new_id, now_iso, strip_storage_keys


def audit_key(audit_id: str) -> dict[str, str]:
    return {"pk": f"AUDIT#{audit_id}", "sk": "AUDIT"}


def normalize_audit_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    out = strip_storage_keys(item)
    if out is None:
        return None
    out["id"] = out.get("auditId")
    return out


def put_audit_log(
    *,
    action: str,
    entity_type: str,
    entity_id: str | None,
    user_id: str | None,
    details: dict[str, Any] | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict[str, Any]:
    audit_id = new_id("aud")
    now = now_iso()
    item: dict[str, Any] = {
        **audit_key(audit_id),
        "entityType": "AuditLog",
        "auditId": audit_id,
        "action": action,
        "auditEntityType": entity_type,
        "entityId": entity_id,
        "userId": user_id,
        "details": details or {},
        "ipAddress": ip_address,
        "userAgent": user_agent,
        "createdAt": now,
        "gsi1pk": "AUDIT_LOGS",
        "gsi1sk": f"{now}#{audit_id}",
    }
    item = {k: v for k, v in item.items() if v is not None}
    # Append-only: ids are fresh, the guard only protects against id reuse.
    get_main_table().put_new(item=item)
    return _rename_entity_type(normalize_audit_for_api(item)) or {}


def _rename_entity_type(out: dict[str, Any] | None) -> dict[str, Any] | None:
    # `entityType` is the storage discriminator column, so the audited entity's
    # type is stored as auditEntityType and renamed on the way out.
    if out is None:
        return None
    out["entityType"] = out.pop("auditEntityType", None)
    return out


def list_audit_logs(
    *,
    action: str | None = None,
    entity_type: str | None = None,
    start: str | None = None,
    end: str | None = None,
) -> list[dict[str, Any]]:
    """Newest first. `start`/`end` are inclusive ISO timestamps."""
    cond = Key("gsi1pk").eq("AUDIT_LOGS")
    if start and end:
        cond = cond & Key("gsi1sk").between(start, end + "\uffff")
    elif start:
        cond = cond & Key("gsi1sk").gte(start)
    elif end:
        cond = cond & Key("gsi1sk").lte(end + "\uffff")

    items = get_main_table().query_all(index_name=GSI1, key_condition_expression=cond, scan_index_forward=False)
    out: list[dict[str, Any]] = []
    for it in items:
        if action and str(it.get("action") or "") != action:
            continue
        if entity_type and str(it.get("auditEntityType") or "") != entity_type:
            continue
        norm = _rename_entity_type(normalize_audit_for_api(it))
        if norm:
            out.append(norm)
    return out
