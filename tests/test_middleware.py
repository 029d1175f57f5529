import httpx
import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI, Request

from camphub.middleware.tenant_middleware import (
    TenantMiddleware, extract_subdomain, get_tenant_context, require_admin_context
)
from camphub.models.tenant import LicenseStatus, Tenant


@pytest.mark.parametrize("host,expected", [
    ("acme.camphub.app", "acme"),
    ("acme.camphub.app:8000", "acme"),
    ("camphub.app", None),
    ("localhost:8000", None),
    ("127.0.0.1:8000", None),
    ("", None),
])
def test_extract_subdomain(host, expected):
    assert extract_subdomain(host) == expected


@pytest_asyncio.fixture
async def context_app(session_factory):
    app = FastAPI()
    app.add_middleware(TenantMiddleware, session_factory=session_factory)

    @app.get("/context")
    async def context(request: Request):
        return get_tenant_context(request)

    @app.get("/api/v1/admin/ping")
    async def admin_ping(request: Request):
        return get_tenant_context(request)

    @app.get("/admin-only", dependencies=[Depends(require_admin_context)])
    async def admin_only():
        return {"ok": True}

    @app.get("/health")
    async def health(request: Request):
        return get_tenant_context(request)

    return app


def _client(app, host="camphub.app"):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=f"http://{host}")


@pytest.mark.asyncio
async def test_headers_take_priority(context_app, tenant):
    async with _client(context_app, "other.camphub.app") as client:
        resp = await client.get("/context", headers={"X-Tenant-Type": "tenant", "X-Tenant-Slug": "acme"})
        assert resp.json() == {"tenant_id": tenant.id, "tenant_slug": "acme", "tenant_type": "tenant"}

        resp = await client.get("/context", headers={"X-Tenant-Type": "admin"})
        assert resp.json()["tenant_type"] == "admin"

        resp = await client.get("/context", headers={"X-Tenant-Type": "tenant", "X-Tenant-Slug": "nobody"})
        assert resp.json()["tenant_type"] is None


@pytest.mark.asyncio
async def test_subdomain_and_admin_path(context_app, tenant, db):
    async with _client(context_app, "acme.camphub.app") as client:
        resp = await client.get("/context")
        assert resp.json()["tenant_id"] == tenant.id

        resp = await client.get("/api/v1/admin/ping")
        assert resp.json()["tenant_type"] == "admin"

        resp = await client.get("/health")
        assert resp.json()["tenant_type"] is None

    async with _client(context_app, "admin.camphub.app") as client:
        assert (await client.get("/admin-only")).status_code == 200

    tenant.license_status = LicenseStatus.SUSPENDED
    await db.commit()
    async with _client(context_app, "acme.camphub.app") as client:
        assert (await client.get("/context")).json()["tenant_id"] is None
        assert (await client.get("/admin-only")).status_code == 403


@pytest.mark.asyncio
async def test_lookup_failure_is_not_fatal(tenant):
    def broken_factory():
        raise RuntimeError("no database")

    app = FastAPI()
    app.add_middleware(TenantMiddleware, session_factory=broken_factory)

    @app.get("/context")
    async def context(request: Request):
        return get_tenant_context(request)

    async with _client(app, "acme.camphub.app") as client:
        resp = await client.get("/context")
        assert resp.status_code == 200
        assert resp.json()["tenant_id"] is None
