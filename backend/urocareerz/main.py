from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from .middleware.access_log import AccessLogMiddleware
from .middleware.auth import AuthMiddleware
from .middleware.cors import build_allowed_origins
from .middleware.request_context import RequestContextMiddleware
from .observability.logging import configure_logging, get_logger
from .problem_details import install_problem_handlers
from .routers.admin import router as admin_router
from .routers.applications import router as applications_router
from .routers.auth import router as auth_router
from .routers.discussions import router as discussions_router
from .routers.files import router as files_router
from .routers.health import router as health_router
from .routers.mentee_opportunities import router as mentee_opportunities_router
from .routers.mentors import router as mentors_router
from .routers.opportunities import router as opportunities_router
from .routers.opportunity_types import router as opportunity_types_router
from .routers.profile import router as profile_router
from .routers.saved_opportunities import router as saved_opportunities_router
from .routers.user import router as user_router
from .settings import settings

_API_ROUTERS = (
    auth_router,
    user_router,
    profile_router,
    files_router,
    opportunity_types_router,
    opportunities_router,
    mentee_opportunities_router,
    applications_router,
    saved_opportunities_router,
    discussions_router,
    mentors_router,
)


def create_app() -> FastAPI:
    configure_logging(level=settings.log_level)
    log = get_logger("startup")

    app = FastAPI(
        title=f"{settings.app_name} API",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
    )
    log.info("app_starting", settings=settings.to_log_safe_dict())

    # Last added runs first: request id -> CORS -> access log -> session.
    app.add_middleware(AuthMiddleware)
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=build_allowed_origins(
            frontend_base_url=settings.frontend_base_url,
            frontend_url=settings.frontend_url,
            frontend_urls=settings.frontend_urls,
        ),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
        max_age=600,
    )
    app.add_middleware(RequestContextMiddleware)

    install_problem_handlers(app)

    app.include_router(health_router)
    for router in _API_ROUTERS:
        app.include_router(router, prefix="/api")
    app.include_router(admin_router, prefix="/api/admin")
    return app


app = create_app()
