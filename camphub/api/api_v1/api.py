from fastapi import APIRouter, Request

from ..api_admin import admin_router
from ..api_tenant import tenant_router
from ...middleware.tenant_middleware import get_tenant_context

api_router = APIRouter()

api_router.include_router(admin_router, prefix="/admin", tags=["admin"])
api_router.include_router(tenant_router, prefix="", tags=["tenant"])


@api_router.get("/context", tags=["tenant"])
async def read_tenant_context(request: Request):
    """Tenant context resolved for this request by the tenant middleware"""
    return get_tenant_context(request)
