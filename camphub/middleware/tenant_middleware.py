"""
Tenant context resolution for every HTTP request.

Places ``tenant_id``, ``tenant_slug`` and ``tenant_type`` ('admin' | 'tenant')
into the request state from, in order of priority:
- X-Tenant-Type / X-Tenant-Slug / X-Tenant-Id headers sent by the frontend
- an ``/admin`` or ``/api/v1/admin`` path
- a subdomain matching an active licensee slug (``acme.camphub.app``)
"""
import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from sqlalchemy import select

from ..db.database import AsyncSessionLocal
from ..models.tenant import Tenant, LicenseStatus

logger = logging.getLogger(__name__)

SKIP_PATHS = (
    "/docs",
    "/redoc",
    "/openapi.json",
    "/api/v1/docs",
    "/api/v1/redoc",
    "/api/v1/openapi.json",
    "/health",
    "/api/v1/health",
    "/favicon.ico",
    "/api/v1/webhooks/",
)


class TenantMiddleware:
    """Pure ASGI middleware so streaming responses are passed through untouched."""

    def __init__(self, app, session_factory=None):
        self.app = app
        self.session_factory = session_factory or AsyncSessionLocal

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            request = Request(scope, receive)
            if not any(request.url.path.startswith(path) for path in SKIP_PATHS):
                tenant_info = await self._detect_tenant(request)
                if tenant_info:
                    state = scope.setdefault("state", {})
                    state["tenant_id"] = tenant_info["id"]
                    state["tenant_slug"] = tenant_info["slug"]
                    state["tenant_type"] = tenant_info["type"]

        await self.app(scope, receive, send)

    async def _detect_tenant(self, request: Request) -> Optional[dict]:
        tenant_type_header = request.headers.get("X-Tenant-Type", "").lower()
        tenant_slug_header = request.headers.get("X-Tenant-Slug", "")
        tenant_id_header = request.headers.get("X-Tenant-Id", "")

        if tenant_type_header == "admin":
            return {"id": tenant_id_header or None, "slug": tenant_slug_header or "admin", "type": "admin"}
        if tenant_type_header == "tenant" and (tenant_id_header or tenant_slug_header):
            if not tenant_id_header:
                tenant = await self._get_tenant_by_slug(tenant_slug_header)
                if not tenant:
                    return None
                tenant_id_header = tenant.id
            return {"id": tenant_id_header, "slug": tenant_slug_header or None, "type": "tenant"}

        path = request.url.path
        if path.startswith("/admin") or path.startswith("/api/v1/admin"):
            return {"id": None, "slug": "admin", "type": "admin"}

        subdomain = extract_subdomain(request.headers.get("host", ""))
        if subdomain == "admin":
            return {"id": None, "slug": "admin", "type": "admin"}
        if subdomain and subdomain != "www":
            tenant = await self._get_tenant_by_slug(subdomain)
            if tenant:
                return {"id": tenant.id, "slug": tenant.slug, "type": "tenant"}

        return None

    async def _get_tenant_by_slug(self, slug: str) -> Optional[Tenant]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Tenant).where(Tenant.slug == slug, Tenant.license_status == LicenseStatus.ACTIVE)
                )
                return result.scalar_one_or_none()
        except Exception as e:
            logger.warning(f"Tenant lookup for '{slug}' failed: {e}")
            return None


def extract_subdomain(host: str) -> Optional[str]:
    if not host:
        return None
    parts = host.split(":")[0].split(".")
    if all(part.isdigit() for part in parts):
        return None
    if len(parts) >= 3:
        return parts[0]
    return None


def get_tenant_context(request: Request) -> dict:
    return {
        "tenant_id": getattr(request.state, "tenant_id", None),
        "tenant_slug": getattr(request.state, "tenant_slug", None),
        "tenant_type": getattr(request.state, "tenant_type", None),
    }


def is_admin_context(request: Request) -> bool:
    return getattr(request.state, "tenant_type", None) == "admin"


def require_admin_context(request: Request):
    if not is_admin_context(request):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin context required"
        )
