from __future__ import annotations

from html import escape
from typing import Any, Callable

from ..observability.logging import get_logger
from ..settings import settings
from .email_ses import send_email

log = get_logger("notifications")


def _link(path: str = "") -> str:
    base = str(settings.frontend_base_url or "").rstrip("/")
    return f"{base}{path}"


def _html(title: str, paragraphs: list[str], *, cta: tuple[str, str] | None = None) -> str:
    body = "".join(f"<p>{escape(p).replace(chr(10), '<br/>')}</p>" for p in paragraphs if p)
    button = ""
    if cta:
        label, href = cta
        button = (
            f'<p><a href="{escape(href, quote=True)}" '
            'style="background:#2563eb;color:#fff;padding:10px 18px;border-radius:6px;'
            f'text-decoration:none">{escape(label)}</a></p>'
        )
    return (
        '<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto">'
        f"<h2>{escape(title)}</h2>{body}{button}"
        f'<p style="color:#6b7280;font-size:12px">{escape(settings.app_name)}</p>'
        "</div>"
    )


def _send(to: str, subject: str, title: str, paragraphs: list[str], **kw: Any) -> dict[str, Any]:
    cta = kw.pop("cta", None)
    text = "\n\n".join(p for p in paragraphs if p)
    if cta:
        text = f"{text}\n\n{cta[0]}: {cta[1]}"
    return send_email(to_email=to, subject=subject, text=text, html=_html(title, paragraphs, cta=cta), **kw)


def _greeting(name: str | None) -> str:
    n = str(name or "").strip()
    return f"Hi {n}," if n else "Hi,"


def send_otp_email(*, to: str, otp: str, first_name: str | None = None) -> dict[str, Any]:
    minutes = int(settings.otp_ttl_minutes or 10)
    return _send(
        to,
        f"Your {settings.app_name} verification code",
        "Verify your email",
        [
            _greeting(first_name),
            f"Your {settings.app_name} verification code is: {otp}",
            f"This code expires in {minutes} minutes. If you did not request it, you can ignore this email.",
        ],
    )


def send_account_approved(*, to: str, first_name: str | None = None) -> dict[str, Any]:
    return _send(
        to,
        f"Welcome to {settings.app_name} - Account Approved!",
        "Your account has been approved",
        [_greeting(first_name), "An administrator has approved your account. You can now sign in."],
        cta=("Sign in", _link("/login")),
    )


def send_application_submitted_to_mentor(
    *, to: str, mentor_name: str | None, mentee_name: str, opportunity_title: str
) -> dict[str, Any]:
    return _send(
        to,
        f"New Application - {opportunity_title}",
        "New application received",
        [
            _greeting(mentor_name),
            f"{mentee_name} has applied to your opportunity \"{opportunity_title}\".",
        ],
        cta=("Review applications", _link("/dashboard/mentor/applications")),
    )


def send_application_confirmation(*, to: str, mentee_name: str | None, opportunity_title: str) -> dict[str, Any]:
    return _send(
        to,
        f"Application Submitted - {opportunity_title}",
        "Application submitted",
        [
            _greeting(mentee_name),
            f"Your application for \"{opportunity_title}\" has been submitted. The mentor will review it soon.",
        ],
    )


def send_application_status(
    *, to: str, mentee_name: str | None, opportunity_title: str, status: str
) -> dict[str, Any]:
    accepted = str(status).upper() == "ACCEPTED"
    if accepted:
        subject = f"Application Accepted - {opportunity_title}"
        line = f"Congratulations! Your application for \"{opportunity_title}\" has been accepted."
    else:
        subject = f"Application Update - {opportunity_title}"
        line = f"Your application for \"{opportunity_title}\" was not selected this time."
    return _send(to, subject, "Application update", [_greeting(mentee_name), line])


def send_opportunity_decision(
    *,
    to: str,
    name: str | None,
    opportunity_title: str,
    approved: bool,
    admin_notes: str | None = None,
) -> dict[str, Any]:
    verdict = "Approved" if approved else "Rejected"
    lines = [
        _greeting(name),
        f"Your opportunity \"{opportunity_title}\" has been {verdict.lower()}.",
    ]
    if admin_notes:
        lines.append(f"Admin notes: {admin_notes}")
    return _send(to, f"Opportunity {verdict}: {opportunity_title}", f"Opportunity {verdict.lower()}", lines)


def send_submission_decision(
    *,
    to: str,
    name: str | None,
    opportunity_title: str,
    decision: str,
    admin_notes: str | None = None,
) -> dict[str, Any]:
    d = str(decision).upper()
    if d == "CONVERTED":
        subject = f"Opportunity Submission Approved and Published: {opportunity_title}"
        line = (
            f"Your submission \"{opportunity_title}\" has been approved and published "
            "as a regular opportunity on the board."
        )
    elif d == "APPROVED":
        subject = f"Opportunity Submission Approved: {opportunity_title}"
        line = f"Your submission \"{opportunity_title}\" has been approved."
    else:
        subject = f"Opportunity Submission Rejected: {opportunity_title}"
        line = f"Your submission \"{opportunity_title}\" was not approved."
    lines = [_greeting(name), line]
    if admin_notes:
        lines.append(f"Admin notes: {admin_notes}")
    return _send(to, subject, "Submission reviewed", lines)


def send_submission_received(*, to: str, name: str | None, opportunity_title: str) -> dict[str, Any]:
    return _send(
        to,
        f"Opportunity Submitted for Review - {opportunity_title}",
        "Thanks for your submission",
        [
            _greeting(name),
            f"We received \"{opportunity_title}\". An administrator will review it shortly.",
        ],
    )


def send_new_submission_to_admin(
    *, opportunity_title: str, submitter_name: str, creator_role: str
) -> dict[str, Any]:
    to = str(settings.admin_notification_email or "").strip()
    if not to:
        return {"ok": False, "error": "admin_email_not_configured"}
    return _send(
        to,
        f"New Opportunity Submission - {opportunity_title}",
        "New opportunity awaiting review",
        [f"{submitter_name} ({creator_role.lower()}) submitted \"{opportunity_title}\" for review."],
        cta=("Open admin dashboard", _link("/admin")),
    )


def send_announcement(*, to: str, name: str | None, title: str, content: str) -> dict[str, Any]:
    return _send(to, title, title, [_greeting(name), content])


def send_mentor_message(
    *,
    to: str,
    mentee_name: str,
    mentor_name: str,
    mentor_email: str | None,
    subject: str,
    message: str,
) -> dict[str, Any]:
    return _send(
        to,
        subject,
        subject,
        [
            _greeting(mentee_name),
            message,
            f"Sent by {mentor_name} via {settings.app_name}. Reply to this email to respond.",
        ],
        reply_to=mentor_email,
    )


def best_effort(event: str, fn: Callable[..., dict[str, Any]], **kwargs: Any) -> dict[str, Any]:
    """Run a notification send; failures are logged and reported, never raised."""
    try:
        res = fn(**kwargs)
    except Exception as e:
        log.warning(event, error=str(e))
        return {"ok": False, "error": "send_failed"}
    if not res.get("ok"):
        log.warning(event, error=res.get("error"))
    return res
