from __future__ import annotations

from fastapi import APIRouter

from .analytics import router as analytics_router
from .announcements import router as announcements_router
from .audit_logs import router as audit_logs_router
from .discussions import router as discussions_router
from .mentee_opportunities import router as mentee_opportunities_router
from .opportunities import router as opportunities_router
from .opportunity_types import router as opportunity_types_router
from .users import router as users_router

# Mounted under /api/admin; AuthMiddleware enforces the ADMIN role for the prefix.
router = APIRouter()
for _r in (
    users_router,
    opportunities_router,
    mentee_opportunities_router,
    opportunity_types_router,
    audit_logs_router,
    announcements_router,
    analytics_router,
    discussions_router,
):
    router.include_router(_r)
