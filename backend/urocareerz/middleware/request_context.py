from __future__ import annotations

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-Id"


def inbound_request_id(request: Request) -> str:
    rid = str(request.headers.get(REQUEST_ID_HEADER) or "").strip()[:128]
    return rid or uuid.uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Outermost layer: every log line and problem body for the call shares one request id."""

    async def dispatch(self, request: Request, call_next):
        request_id = inbound_request_id(request)
        request.state.request_id = request_id
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
