from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ...auth.principal import current_user
from ...modules.identity.roles import ROLE_MENTEE, ROLE_MENTOR
from ...modules.moderation import UserStatus
from ...observability.logging import get_logger
from ...repositories import users_repo
from ...services import notifications
from ...services.audit import record_audit

router = APIRouter(tags=["admin"])
log = get_logger("announcements")


class AnnouncementRequest(BaseModel):
    title: str | None = None
    content: str | None = None


@router.post("/announcements")
def send_announcement(body: AnnouncementRequest, request: Request):
    admin = current_user(request)
    title = str(body.title or "").strip()
    content = str(body.content or "").strip()
    if not title or not content:
        raise HTTPException(status_code=400, detail="Title and content are required")

    recipients = [
        u
        for u in users_repo.list_users(status=UserStatus.ACTIVE.value)
        if u.get("role") in (ROLE_MENTOR, ROLE_MENTEE)
    ]
    if not recipients:
        raise HTTPException(status_code=400, detail="No users found to send announcement to")

    results = []
    for u in recipients:
        res = notifications.best_effort(
            "announcement_email_failed",
            notifications.send_announcement,
            to=str(u.get("email") or ""),
            name=u.get("firstName"),
            title=title,
            content=content,
        )
        results.append({"userId": u["id"], "success": bool(res.get("ok")), "error": res.get("error")})

    successful = sum(1 for r in results if r["success"])
    failed = len(results) - successful
    log.info("announcement_sent", total=len(results), successful=successful, failed=failed)
    record_audit(
        request,
        action="ANNOUNCEMENT_SENT",
        entity_type="Announcement",
        user_id=admin.user_id,
        details={"title": title, "totalUsers": len(results), "successful": successful, "failed": failed},
    )
    return {
        "message": f"Announcement sent to {successful} of {len(results)} users",
        "totalUsers": len(results),
        "successful": successful,
        "failed": failed,
        "results": results,
    }
