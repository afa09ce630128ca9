from __future__ import annotations

from dataclasses import replace

import structlog
from fastapi import HTTPException, Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth.session_tokens import SessionTokenError, verify_session_token
from ..modules.identity.roles import is_admin, normalize_role
from ..modules.moderation import can_sign_in
from ..observability.logging import get_logger
from ..problem_details import problem_response
from ..repositories import users_repo

SESSION_COOKIE = "token"

_PUBLIC_PATHS = frozenset(
    {
        "/api/register",
        "/api/verify-otp",
        "/api/login/send-otp",
        "/api/resend-otp",
        "/api/logout",
    }
)


def is_public_path(path: str, method: str = "GET") -> bool:
    if path == "/":
        return True
    if path in _PUBLIC_PATHS:
        return True
    # The board renders type filters before sign-in.
    if path == "/api/opportunity-types" and method.upper() == "GET":
        return True
    return False


def is_admin_path(path: str) -> bool:
    return path.startswith("/api/admin/") or path == "/api/admin"


def read_token(request: Request) -> str | None:
    cookie = str(request.cookies.get(SESSION_COOKIE) or "").strip()
    if cookie:
        return cookie
    auth = str(request.headers.get("authorization") or "")
    parts = auth.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip() or None
    return None


async def require_auth(request: Request):
    path = request.url.path
    method = request.method.upper()

    # CORS preflight is answered by CORSMiddleware.
    if method == "OPTIONS":
        return
    if not path.startswith("/api/"):
        return
    if is_public_path(path, method):
        return

    token = read_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        user = verify_session_token(token)
    except SessionTokenError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    # The stored user record, not the token claims, decides whether the session is live.
    record = await run_in_threadpool(users_repo.get_user_record, user.user_id)
    if not record or not can_sign_in(record):
        raise HTTPException(status_code=401, detail="Session is no longer valid")
    stored_role = normalize_role(record.get("role"))
    if stored_role and stored_role != user.role:
        user = replace(user, role=stored_role)

    if is_admin_path(path) and not is_admin(user.role):
        raise HTTPException(status_code=403, detail="Admin access required")

    request.state.user = user
    structlog.contextvars.bind_contextvars(user_id=user.user_id)


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Session enforcement as ASGI middleware.

    Added before CORSMiddleware so auth failures still carry CORS headers.
    """

    async def dispatch(self, request: Request, call_next):
        log = get_logger("auth_middleware")
        try:
            await require_auth(request)
        except HTTPException as exc:
            log.info("auth_middleware_denied", status_code=exc.status_code, path=request.url.path)
            return problem_response(
                request=request,
                status_code=exc.status_code,
                title="Unauthorized" if exc.status_code == 401 else None,
                detail=str(exc.detail),
            )
        except Exception:
            log.exception("auth_middleware_error", path=request.url.path)
            return problem_response(request=request, status_code=500, detail="Authentication failed")
        return await call_next(request)
