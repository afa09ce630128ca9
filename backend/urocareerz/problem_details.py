"""
application/problem+json responses for every error the API returns.

Each body carries the RFC 7807 members plus a flat `error` string, which is
what the browser client shows to users.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db.dynamodb.errors import DdbError, http_status_for
from .observability.logging import get_logger
from .settings import get_settings

PROBLEM_JSON = "application/problem+json"

log = get_logger("problem")


def _title_for(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Internal Server Error" if status_code >= 500 else "Error"


def problem_response(
    *,
    request: Request,
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> ORJSONResponse:
    status_code = int(status_code)
    if status_code >= 500 and get_settings().is_production:
        detail = None

    body: dict[str, Any] = {
        "type": "about:blank",
        "title": title or _title_for(status_code),
        "status": status_code,
        "instance": request.url.path,
        # Browser clients read the flat `error` field.
        "error": detail or title or _title_for(status_code),
    }
    if detail:
        body["detail"] = detail
    rid = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
    if rid:
        body["requestId"] = str(rid)
    if errors:
        body["errors"] = errors
    if extensions:
        body["extensions"] = extensions

    return ORJSONResponse(status_code=status_code, content=body, media_type=PROBLEM_JSON)


async def _on_http_exception(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    text = str(exc.detail) if exc.detail is not None else None
    if exc.status_code == 404 and (not text or text == "Not Found"):
        text = "Route not found"
    return problem_response(request=request, status_code=exc.status_code, detail=text)


async def _on_validation_error(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    errors = [
        {
            "path": ".".join(str(p) for p in (e.get("loc") or ()) if p != "body"),
            "message": e.get("msg") or "Invalid value",
            "type": e.get("type"),
        }
        for e in exc.errors()
    ]
    return problem_response(
        request=request,
        status_code=422,
        title="Validation Failed",
        detail="Request validation failed",
        errors=errors,
    )


async def _on_ddb_error(request: Request, exc: DdbError) -> ORJSONResponse:
    status_code, title = http_status_for(exc)
    fields = exc.log_fields()
    if status_code >= 500:
        log.error("ddb_error", error=exc.message, path=request.url.path, **fields)
    return problem_response(
        request=request, status_code=status_code, title=title, detail=exc.message, extensions=fields
    )


async def _on_unhandled(request: Request, exc: Exception) -> ORJSONResponse:
    user = getattr(request.state, "user", None)
    log.exception(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        user_id=getattr(user, "user_id", None),
    )
    return problem_response(request=request, status_code=500, detail=str(exc) or None)


def install_problem_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _on_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _on_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(DdbError, _on_ddb_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _on_unhandled)
