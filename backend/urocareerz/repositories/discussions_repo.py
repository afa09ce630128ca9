from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.errors import DdbConflict
from ..db.dynamodb.table import GSI1, get_main_table
from ..modules.moderation import DiscussionStatus
from .common import is_deleted, new_id, now_iso, strip_storage_keys

CATEGORIES = (
    "GENERAL",
    "CASE_DISCUSSION",
    "CAREER_ADVICE",
    "TECHNICAL",
    "NETWORKING",
    "RESOURCES",
)


def thread_key(thread_id: str) -> dict[str, str]:
    return {"pk": f"THREAD#{thread_id}", "sk": "THREAD"}


def view_key(thread_id: str, user_id: str) -> dict[str, str]:
    return {"pk": f"THREAD#{thread_id}", "sk": f"VIEW#{user_id}"}


def normalize_thread_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    out = strip_storage_keys(item)
    if out is None:
        return None
    out["id"] = out.get("threadId")
    out["viewCount"] = int(out.get("viewCount") or 0)
    out["commentCount"] = int(out.get("commentCount") or 0)
    out["isPinned"] = bool(out.get("isPinned"))
    out["tags"] = list(out.get("tags") or [])
    return out


def normalize_comment_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    out = strip_storage_keys(item)
    if out is None:
        return None
    out["id"] = out.get("commentId")
    return out


def get_thread(thread_id: str, *, include_deleted: bool = False) -> dict[str, Any] | None:
    tid = str(thread_id or "").strip()
    if not tid:
        return None
    item = get_main_table().get_item(key=thread_key(tid))
    if not item or (is_deleted(item) and not include_deleted):
        return None
    return normalize_thread_for_api(item)


def create_thread(
    *,
    author_id: str,
    title: str,
    content: str,
    category: str,
    tags: list[str],
) -> dict[str, Any]:
    thread_id = new_id("thr")
    now = now_iso()
    item: dict[str, Any] = {
        **thread_key(thread_id),
        "entityType": "DiscussionThread",
        "threadId": thread_id,
        "authorId": author_id,
        "title": title,
        "content": content,
        "category": category,
        "tags": tags,
        "status": DiscussionStatus.ACTIVE.value,
        "isPinned": False,
        "viewCount": 0,
        "commentCount": 0,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": "THREADS",
        "gsi1sk": f"{now}#{thread_id}",
    }
    get_main_table().put_new(item=item)
    return normalize_thread_for_api(item) or {}


def update_thread(thread_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
    allowed = {"title", "content", "category", "tags", "status", "isPinned"}
    fields = {k: v for k, v in (updates or {}).items() if k in allowed}
    fields["updatedAt"] = now_iso()
    item = get_main_table().update_fields(key=thread_key(thread_id), set_fields=fields, absent=("deletedAt",))
    return normalize_thread_for_api(item)


def soft_delete_thread(thread_id: str) -> dict[str, Any] | None:
    now = now_iso()
    item = get_main_table().update_fields(
        key=thread_key(thread_id),
        set_fields={"deletedAt": now, "updatedAt": now},
    )
    return normalize_thread_for_api(item)


def list_threads(
    *,
    category: str | None = None,
    status: str | None = None,
    author_id: str | None = None,
    include_deleted: bool = False,
) -> list[dict[str, Any]]:
    """Pinned threads first, then newest first."""
    items = get_main_table().query_all(
        index_name=GSI1,
        key_condition_expression=Key("gsi1pk").eq("THREADS"),
        scan_index_forward=False,
    )
    out: list[dict[str, Any]] = []
    for it in items:
        if not include_deleted and is_deleted(it):
            continue
        if category and str(it.get("category") or "") != category:
            continue
        if status and str(it.get("status") or "") != status:
            continue
        if author_id and str(it.get("authorId") or "") != author_id:
            continue
        norm = normalize_thread_for_api(it)
        if norm:
            out.append(norm)
    out.sort(key=lambda t: str(t.get("createdAt") or ""), reverse=True)
    out.sort(key=lambda t: bool(t.get("isPinned")), reverse=True)
    return out


def add_comment(*, thread_id: str, author_id: str, content: str) -> dict[str, Any]:
    """
    Comment put + commentCount increment in one transaction, guarded on the
    thread still being ACTIVE and not deleted (DdbConflict otherwise).
    """
    comment_id = new_id("cmt")
    now = now_iso()
    item = {
        "pk": f"THREAD#{thread_id}",
        "sk": f"COMMENT#{now}#{comment_id}",
        "entityType": "DiscussionComment",
        "commentId": comment_id,
        "threadId": thread_id,
        "authorId": author_id,
        "content": content,
        "createdAt": now,
        "updatedAt": now,
    }
    t = get_main_table()
    t.transact_write(
        puts=(t.tx_put(item=item, must_not_exist=True),),
        updates=(
            t.tx_update(
                key=thread_key(thread_id),
                set_fields={"lastActivityAt": now},
                add_fields={"commentCount": 1},
                expect={"status": DiscussionStatus.ACTIVE.value},
                absent=("deletedAt",),
            ),
        ),
    )
    return normalize_comment_for_api(item) or {}


def list_comments(thread_id: str) -> list[dict[str, Any]]:
    """Oldest first (sort key embeds the creation time)."""
    items = get_main_table().query_all(
        key_condition_expression=Key("pk").eq(f"THREAD#{thread_id}") & Key("sk").begins_with("COMMENT#"),
        scan_index_forward=True,
    )
    return [n for n in (normalize_comment_for_api(it) for it in items if not is_deleted(it)) if n]


def record_view(*, thread_id: str, user_id: str) -> bool:
    """
    Count a view once per (user, thread).

    Conditional view-marker put + viewCount increment in one transaction.
    Returns False when this user's view was already counted.
    """
    now = now_iso()
    marker = {
        **view_key(thread_id, user_id),
        "entityType": "DiscussionView",
        "threadId": thread_id,
        "userId": user_id,
        "createdAt": now,
    }
    t = get_main_table()
    try:
        t.transact_write(
            puts=(t.tx_put(item=marker, must_not_exist=True),),
            updates=(t.tx_update(key=thread_key(thread_id), add_fields={"viewCount": 1}),),
        )
    except DdbConflict as e:
        # Only a failed marker put (index 0) means "already viewed"; no reasons is unknown.
        if e.failed_item_indexes() == [0]:
            return False
        raise
    return True
