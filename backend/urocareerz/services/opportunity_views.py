from __future__ import annotations

from typing import Any

from ..repositories import opportunity_types_repo, users_repo


def _creator_summary(user: dict[str, Any] | None) -> dict[str, Any] | None:
    if not user:
        return None
    return {
        "id": user.get("id"),
        "firstName": user.get("firstName"),
        "lastName": user.get("lastName"),
        "role": user.get("role"),
    }


def enrich_opportunities(items: list[dict[str, Any]], *, include_email: bool = False) -> list[dict[str, Any]]:
    """Attach `opportunityType` {id, name, color} and `creator` summaries."""
    types = opportunity_types_repo.type_map()
    creators = users_repo.get_user_summaries(str(o.get("creatorId") or "") for o in items)
    out: list[dict[str, Any]] = []
    for o in items:
        row = dict(o)
        row["opportunityType"] = opportunity_types_repo.type_summary(types.get(str(o.get("opportunityTypeId") or "")))
        creator = creators.get(str(o.get("creatorId") or ""))
        summary = _creator_summary(creator)
        if summary and include_email:
            summary["email"] = creator.get("email") if creator else None
        row["creator"] = summary
        out.append(row)
    return out


def enrich_opportunity(item: dict[str, Any], *, include_email: bool = False) -> dict[str, Any]:
    return enrich_opportunities([item], include_email=include_email)[0]
