from __future__ import annotations

from fastapi import APIRouter, HTTPException

from ...db.dynamodb.pagination import clamp_page, slice_page
from ...modules.moderation import DiscussionStatus, parse_discussion_status
from ...repositories import discussions_repo
from ..discussions import with_authors

router = APIRouter(tags=["admin"])


@router.get("/discussions")
def list_all_discussions(
    status: str | None = None,
    category: str | None = None,
    page: int = 1,
    limit: int = 20,
):
    threads = discussions_repo.list_threads()
    status_counts = {s.value: 0 for s in DiscussionStatus}
    for t in threads:
        st = str(t.get("status") or "")
        status_counts[st] = status_counts.get(st, 0) + 1

    filtered = threads
    if status and status.strip().lower() != "all":
        parsed = parse_discussion_status(status)
        if parsed is None:
            raise HTTPException(status_code=400, detail="Invalid status")
        filtered = [t for t in filtered if t.get("status") == parsed.value]
    cat = str(category or "").strip().upper()
    if cat and cat != "ALL":
        filtered = [t for t in filtered if t.get("category") == cat]

    p, lim = clamp_page(page, limit, default_limit=20)
    window, pagination = slice_page(filtered, page=p, limit=lim)
    return {
        "discussions": with_authors(window),
        "pagination": pagination,
        "stats": {"total": len(threads), "statusCounts": status_counts},
    }
