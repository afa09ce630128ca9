from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth.principal import client_ip
from ..observability.logging import get_logger


def _user_id(request: Request) -> str | None:
    user = getattr(getattr(request, "state", None), "user", None)
    uid = getattr(user, "user_id", None) if user else None
    return str(uid) if uid else None


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One structured `request` event per call."""

    def __init__(self, app, *, exclude_paths: set[str] | None = None):
        super().__init__(app)
        self._exclude = exclude_paths or set()
        self._log = get_logger("access")

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in self._exclude:
            return await call_next(request)

        start = time.perf_counter()
        method = request.method.upper()
        try:
            response = await call_next(request)
        except Exception:
            self._log.exception(
                "request_error",
                method=method,
                path=path,
                duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
                client_ip=client_ip(request),
                user_id=_user_id(request),
            )
            raise

        self._log.info(
            "request",
            method=method,
            path=path,
            status=int(getattr(response, "status_code", 0) or 0),
            duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
            client_ip=client_ip(request),
            user_id=_user_id(request),
        )
        return response
