from __future__ import annotations

from typing import Any

from pydantic import validate_email

from ..db.dynamodb.client import aws_client
from ..observability.logging import email_domain, get_logger
from ..settings import settings

log = get_logger("email")


def is_valid_email(email: Any) -> bool:
    s = str(email or "").strip()
    if not s:
        return False
    try:
        validate_email(s)
    except ValueError:
        return False
    return True


def _sender() -> str | None:
    addr = str(settings.email_from_address or "").strip()
    if not addr:
        return None
    name = str(settings.email_from_name or "").strip()
    return f"{name} <{addr}>" if name else addr


def send_email(
    *,
    to_email: str,
    subject: str,
    text: str,
    html: str | None = None,
    reply_to: str | None = None,
) -> dict[str, Any]:
    """
    Send one message through SES v2.

    Returns {"ok": True, "messageId": ...} or {"ok": False, "error": ...}; SES
    client errors propagate so callers decide whether the send is best-effort.
    """
    to_ = str(to_email or "").strip()
    frm = _sender()
    if not frm:
        log.warning("email_not_configured", to_domain=email_domain(to_))
        return {"ok": False, "error": "email_not_configured"}
    if not is_valid_email(to_):
        return {"ok": False, "error": "invalid_recipient"}

    body: dict[str, Any] = {"Text": {"Data": str(text or "").strip() or "(empty)"}}
    if html:
        body["Html"] = {"Data": html}

    kwargs: dict[str, Any] = {
        "FromEmailAddress": frm,
        "Destination": {"ToAddresses": [to_]},
        "Content": {
            "Simple": {
                "Subject": {"Data": str(subject or "").strip()[:200] or settings.app_name},
                "Body": body,
            }
        },
    }
    if reply_to and is_valid_email(reply_to):
        kwargs["ReplyToAddresses"] = [str(reply_to).strip()]

    resp = aws_client("sesv2").send_email(**kwargs)
    msg_id = (resp or {}).get("MessageId") if isinstance(resp, dict) else None
    log.info("email_sent", to_domain=email_domain(to_), message_id=msg_id)
    return {"ok": True, "messageId": msg_id}
