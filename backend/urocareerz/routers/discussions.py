from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..auth.principal import current_user
from ..db.dynamodb.errors import DdbConflict
from ..db.dynamodb.pagination import clamp_page, slice_page
from ..modules.moderation import can_comment, can_manage_thread, parse_discussion_status
from ..observability.logging import get_logger
from ..repositories import discussions_repo, users_repo

router = APIRouter(tags=["discussions"])
log = get_logger("discussions")

MAX_TAGS = 5


class ThreadRequest(BaseModel):
    title: str | None = None
    content: str | None = None
    category: str | None = None
    tags: list[str] | None = None


class CommentRequest(BaseModel):
    content: str | None = None


class ThreadStatusRequest(BaseModel):
    status: str | None = None


def validate_thread(body: ThreadRequest) -> dict[str, Any]:
    title = str(body.title or "").strip()
    content = str(body.content or "").strip()
    if not title or not content:
        raise HTTPException(status_code=400, detail="Title and content are required")
    if not 5 <= len(title) <= 200:
        raise HTTPException(status_code=400, detail="Title must be between 5 and 200 characters")
    if not 10 <= len(content) <= 5000:
        raise HTTPException(status_code=400, detail="Content must be between 10 and 5000 characters")

    category = str(body.category or "GENERAL").strip().upper()
    if category not in discussions_repo.CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")

    tags = [t.strip()[:50] for t in (body.tags or []) if str(t or "").strip()]
    if len(tags) > MAX_TAGS:
        raise HTTPException(status_code=400, detail=f"Maximum {MAX_TAGS} tags allowed")
    return {"title": title, "content": content, "category": category, "tags": list(dict.fromkeys(tags))}


def with_authors(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    authors = users_repo.get_user_summaries(str(r.get("authorId") or "") for r in rows)
    return [{**r, "author": authors.get(str(r.get("authorId") or ""))} for r in rows]


def _get_thread_or_404(thread_id: str) -> dict[str, Any]:
    thread = discussions_repo.get_thread(thread_id)
    if not thread:
        raise HTTPException(status_code=404, detail="Discussion thread not found")
    return thread


@router.get("/discussions")
def list_discussions(
    request: Request,
    category: str | None = None,
    status: str | None = None,
    myDiscussions: str | None = None,
    page: int = 1,
    limit: int = 10,
):
    user = current_user(request)
    cat = str(category or "").strip().upper()
    st = None
    if status and status.strip().lower() != "all":
        parsed = parse_discussion_status(status)
        if parsed is None:
            raise HTTPException(status_code=400, detail="Invalid status")
        st = parsed.value

    threads = discussions_repo.list_threads(
        category=cat if cat and cat != "ALL" else None,
        status=st,
        author_id=user.user_id if str(myDiscussions or "").lower() == "true" else None,
    )
    p, lim = clamp_page(page, limit)
    window, pagination = slice_page(threads, page=p, limit=lim)
    return {"discussions": with_authors(window), "pagination": pagination}


@router.post("/discussions", status_code=201)
def create_discussion(body: ThreadRequest, request: Request):
    user = current_user(request)
    fields = validate_thread(body)
    if not users_repo.get_user(user.user_id):
        raise HTTPException(status_code=404, detail="User not found or account deleted")

    thread = discussions_repo.create_thread(author_id=user.user_id, **fields)
    log.info("discussion_created", thread_id=thread["id"], user_id=user.user_id)
    return {"message": "Discussion created successfully", "discussion": with_authors([thread])[0]}


@router.get("/discussions/{thread_id}")
def get_discussion(thread_id: str, request: Request):
    current_user(request)
    thread = _get_thread_or_404(thread_id)
    comments = with_authors(discussions_repo.list_comments(thread_id))
    return {"discussion": {**with_authors([thread])[0], "comments": comments}}


@router.put("/discussions/{thread_id}")
def update_discussion(thread_id: str, body: ThreadRequest, request: Request):
    user = current_user(request)
    thread = _get_thread_or_404(thread_id)
    if str(thread.get("authorId") or "") != user.user_id:
        raise HTTPException(status_code=403, detail="You can only edit your own threads")

    fields = validate_thread(body)
    try:
        updated = discussions_repo.update_thread(thread_id, fields)
    except DdbConflict:
        raise HTTPException(status_code=404, detail="Discussion thread not found")
    return {"message": "Discussion updated successfully", "discussion": with_authors([updated or thread])[0]}


@router.delete("/discussions/{thread_id}")
def delete_discussion(thread_id: str, request: Request):
    user = current_user(request)
    thread = _get_thread_or_404(thread_id)
    if not can_manage_thread(thread, user_id=user.user_id, role=user.role):
        raise HTTPException(status_code=403, detail="You can only delete your own threads")
    discussions_repo.soft_delete_thread(thread_id)
    log.info("discussion_deleted", thread_id=thread_id, user_id=user.user_id)
    return {"message": "Discussion deleted successfully"}


@router.get("/discussions/{thread_id}/comments")
def list_comments(thread_id: str, request: Request):
    current_user(request)
    _get_thread_or_404(thread_id)
    return {"comments": with_authors(discussions_repo.list_comments(thread_id))}


@router.post("/discussions/{thread_id}/comments", status_code=201)
def add_comment(thread_id: str, body: CommentRequest, request: Request):
    user = current_user(request)
    content = str(body.content or "").strip()
    if not 1 <= len(content) <= 2000:
        raise HTTPException(status_code=400, detail="Comment must be between 1 and 2000 characters")

    thread = _get_thread_or_404(thread_id)
    if not can_comment(thread):
        raise HTTPException(status_code=400, detail="Cannot comment on closed or archived threads")
    if not users_repo.get_user(user.user_id):
        raise HTTPException(status_code=404, detail="User not found or account deleted")

    try:
        comment = discussions_repo.add_comment(thread_id=thread_id, author_id=user.user_id, content=content)
    except DdbConflict:
        # The thread was closed or deleted between the read and the write.
        raise HTTPException(status_code=400, detail="Cannot comment on closed or archived threads")
    return {"message": "Comment added successfully", "comment": with_authors([comment])[0]}


@router.patch("/discussions/{thread_id}/status")
def set_discussion_status(thread_id: str, body: ThreadStatusRequest, request: Request):
    user = current_user(request)
    target = parse_discussion_status(body.status)
    if target is None:
        raise HTTPException(status_code=400, detail="Invalid status. Must be ACTIVE, CLOSED, or ARCHIVED")

    thread = _get_thread_or_404(thread_id)
    if not can_manage_thread(thread, user_id=user.user_id, role=user.role):
        raise HTTPException(status_code=403, detail="You can only change the status of your own threads")
    try:
        updated = discussions_repo.update_thread(thread_id, {"status": target.value})
    except DdbConflict:
        raise HTTPException(status_code=404, detail="Discussion thread not found")
    log.info("discussion_status_changed", thread_id=thread_id, status=target.value)
    return {"message": "Discussion status updated successfully", "discussion": updated}


@router.post("/discussions/{thread_id}/view")
def track_view(thread_id: str, request: Request):
    user = current_user(request)
    _get_thread_or_404(thread_id)
    counted = discussions_repo.record_view(thread_id=thread_id, user_id=user.user_id)
    thread = discussions_repo.get_thread(thread_id, include_deleted=True) or {}
    return {
        "success": True,
        "viewCount": int(thread.get("viewCount") or 0),
        "alreadyViewed": not counted,
        "message": "View tracked successfully" if counted else "View already tracked for this user",
    }
