"""
HQ-only endpoints, mounted under /api/v1/admin
"""
from fastapi import APIRouter, Depends, Request

from .api_v1.endpoints import dashboard, licensees, royalties, venues
from .deps import require_hq_admin
from ..middleware.tenant_middleware import require_admin_context

admin_router = APIRouter()


async def admin_context_required(request: Request):
    require_admin_context(request)
    return request


admin_dependencies = [Depends(admin_context_required), Depends(require_hq_admin)]

admin_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["admin-dashboard"],
    dependencies=admin_dependencies
)

admin_router.include_router(
    licensees.router,
    prefix="/licensees",
    tags=["licensee-management"],
    dependencies=admin_dependencies
)

admin_router.include_router(
    royalties.admin_router,
    prefix="/royalties",
    tags=["admin-royalties"],
    dependencies=admin_dependencies
)

admin_router.include_router(
    venues.router,
    prefix="/venues",
    tags=["admin-venues"],
    dependencies=admin_dependencies
)
