from __future__ import annotations

from fastapi import HTTPException, Request

from .session_tokens import SessionUser


def current_user(request: Request) -> SessionUser:
    user = getattr(getattr(request, "state", None), "user", None)
    if not isinstance(user, SessionUser):
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def require_role(request: Request, *roles: str, detail: str = "Access denied") -> SessionUser:
    user = current_user(request)
    if user.role not in roles:
        raise HTTPException(status_code=403, detail=detail)
    return user


def client_ip(request: Request) -> str | None:
    fwd = str(request.headers.get("x-forwarded-for") or "").strip()
    if fwd:
        return fwd.split(",")[0].strip() or None
    real = str(request.headers.get("x-real-ip") or "").strip()
    if real:
        return real
    client = getattr(request, "client", None)
    return getattr(client, "host", None) if client else None
