from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..auth.principal import require_role
from ..db.dynamodb.pagination import clamp_page, slice_page
from ..modules.identity.roles import ROLE_MENTEE, ROLE_MENTOR
from ..observability.logging import email_domain, get_logger
from ..repositories import profiles_repo, users_repo
from ..services import notifications
from ..services.email_ses import is_valid_email

router = APIRouter(tags=["mentors"])
log = get_logger("mentors")

# experienceLevel -> inclusive yearsOfExperience range
EXPERIENCE_BANDS: dict[str, tuple[int, int | None]] = {
    "student": (0, 2),
    "resident": (3, 6),
    "fellow": (7, 10),
    "attending": (11, None),
}


class MentorMessageRequest(BaseModel):
    menteeEmail: str | None = None
    menteeName: str | None = None
    subject: str | None = None
    message: str | None = None


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + (ca != cb)))
        prev = cur
    return prev[-1]


def fuzzy_match(query: str, text: str) -> bool:
    q = (query or "").strip().lower()
    t = (text or "").strip().lower()
    if not q or not t:
        return False
    if q in t:
        return True
    return levenshtein(q, t) <= max(1, int(len(t) * 0.3))


def in_experience_band(level: str, years: Any) -> bool:
    band = EXPERIENCE_BANDS.get(str(level or "").strip().lower())
    if band is None:
        return True
    try:
        y = int(years or 0)
    except (TypeError, ValueError):
        y = 0
    lo, hi = band
    return y >= lo and (hi is None or y <= hi)


def _searchable_text(user: dict[str, Any], profile: dict[str, Any]) -> str:
    parts = [
        user.get("firstName"),
        user.get("lastName"),
        user.get("email"),
        profile.get("location"),
        profile.get("education"),
        profile.get("bio"),
        " ".join(profile.get("interests") or []),
    ]
    return " ".join(str(p) for p in parts if p)


@router.post("/messages/send")
def send_message(body: MentorMessageRequest, request: Request):
    user = require_role(request, ROLE_MENTOR, detail="Only mentors can send messages to mentees.")

    to = str(body.menteeEmail or "").strip()
    name = str(body.menteeName or "").strip()
    subject = str(body.subject or "").strip()
    message = str(body.message or "").strip()
    if not to or not name or not subject or not message:
        raise HTTPException(status_code=400, detail="All fields are required")
    if not is_valid_email(to):
        raise HTTPException(status_code=400, detail="Invalid email format")
    if len(subject) > 200:
        raise HTTPException(status_code=400, detail="Subject must be 200 characters or less")
    if len(message) > 5000:
        raise HTTPException(status_code=400, detail="Message must be 5000 characters or less")

    mentor = users_repo.get_user(user.user_id) or {}
    try:
        res = notifications.send_mentor_message(
            to=to,
            mentee_name=name,
            mentor_name=users_repo.display_name(mentor) or "Your mentor",
            mentor_email=mentor.get("email"),
            subject=subject,
            message=message,
        )
    except Exception as e:
        log.warning("mentor_message_failed", error=str(e), to_domain=email_domain(to))
        raise HTTPException(status_code=500, detail="Failed to send message")
    if not res.get("ok"):
        log.warning("mentor_message_failed", error=res.get("error"), to_domain=email_domain(to))
        raise HTTPException(status_code=500, detail="Failed to send message")

    log.info("mentor_message_sent", user_id=user.user_id, to_domain=email_domain(to))
    return {"success": True, "message": "Message sent successfully", "messageId": res.get("messageId")}


@router.get("/mentees/search")
def search_mentees(
    request: Request,
    q: str | None = None,
    location: str | None = None,
    experienceLevel: str | None = None,
    interests: str | None = None,
    page: int = 1,
    limit: int = 10,
):
    user = require_role(request, ROLE_MENTOR, detail="Only mentors can search mentees")

    loc = str(location or "").strip().lower()
    interest = str(interests or "").strip().lower()
    matches: list[dict[str, Any]] = []
    for mentee in users_repo.list_users(role=ROLE_MENTEE):
        profile = profiles_repo.get_profile(mentee["id"]) or {}
        if q and q.strip() and not fuzzy_match(q, _searchable_text(mentee, profile)):
            continue
        if loc and loc not in str(profile.get("location") or "").lower():
            continue
        if experienceLevel and not in_experience_band(experienceLevel, profile.get("yearsOfExperience")):
            continue
        if interest and not any(interest in str(i).lower() for i in profile.get("interests") or []):
            continue
        matches.append(
            {
                "id": mentee["id"],
                "email": mentee.get("email"),
                "firstName": mentee.get("firstName"),
                "lastName": mentee.get("lastName"),
                "createdAt": mentee.get("createdAt"),
                "profile": profile or None,
            }
        )

    p, lim = clamp_page(page, limit)
    window, pg = slice_page(matches, page=p, limit=lim)
    return {
        "mentees": window,
        "pagination": {
            "page": pg["page"],
            "limit": pg["limit"],
            "total": pg["total"],
            "totalPages": pg["pages"],
            "hasNext": pg["hasNext"],
            "hasPrev": pg["hasPrev"],
        },
    }
