import pytest

from camphub.core.crypto import decrypt_json
from camphub.core.exceptions import ConflictError, NotFoundError
from camphub.models.tenant import LicenseStatus
from camphub.models.user import UserRole
from camphub.schemas.tenant import LicenseeCreate, LicenseeUpdate
from camphub.services import email_service
from camphub.services.licensee_service import LicenseeService


@pytest.mark.asyncio
async def test_create_and_list_licensees(db, tenant):
    created = await LicenseeService.create_licensee(
        db, LicenseeCreate(name="Bayside Camps", slug="bayside", city="Tampa")
    )
    assert created.license_status == LicenseStatus.ACTIVE

    with pytest.raises(ConflictError, match="already exists"):
        await LicenseeService.create_licensee(db, LicenseeCreate(name="Other", slug="bayside"))

    found, total = await LicenseeService.list_licensees(db, search="tampa")
    assert total == 1
    assert [t.slug for t in found] == ["bayside"]

    updated = await LicenseeService.update_licensee(db, created.id, LicenseeUpdate(city="Orlando"))
    assert updated.city == "Orlando"
    assert updated.name == "Bayside Camps"


@pytest.mark.asyncio
async def test_set_license_status(db, tenant):
    suspended = await LicenseeService.set_license_status(db, tenant.id, LicenseStatus.SUSPENDED)
    assert suspended.license_status == LicenseStatus.SUSPENDED

    active, total = await LicenseeService.list_licensees(db, status=LicenseStatus.ACTIVE)
    assert (active, total) == ([], 0)
    _, total = await LicenseeService.list_licensees(db, status=LicenseStatus.SUSPENDED)
    assert total == 1

    with pytest.raises(NotFoundError, match="Licensee not found"):
        await LicenseeService.set_license_status(db, "missing", LicenseStatus.ACTIVE)


@pytest.mark.asyncio
async def test_set_email_credentials_encrypts_and_feeds_tenant_account(db, tenant):
    tenant.smtp_config = {"provider": "outlook"}
    await LicenseeService.set_email_credentials(db, tenant.id, "camps@acme-camps.com", "app-password")

    assert "app-password" not in tenant.smtp_credentials_encrypted
    assert decrypt_json(tenant.smtp_credentials_encrypted) == {
        "username": "camps@acme-camps.com",
        "password": "app-password",
    }
    account = email_service.tenant_account(tenant)
    assert account.host == "smtp.office365.com"
    assert account.from_email == "camps@acme-camps.com"
    assert account.from_name == "Acme Camps"

    with pytest.raises(NotFoundError):
        await LicenseeService.set_email_credentials(db, "missing", "u", "p")


@pytest.mark.asyncio
async def test_license_status_and_credentials_endpoints(client, tenant, make_user, auth_headers):
    hq = await make_user("hq@camphub.example.com", UserRole.HQ_ADMIN)
    owner = await make_user("owner@acme-camps.com", UserRole.LICENSEE_OWNER, tenant.id)

    resp = await client.post(
        f"/api/v1/admin/licensees/{tenant.id}/status", json={"status": "suspended"}, headers=auth_headers(owner)
    )
    assert resp.status_code == 403

    resp = await client.post(
        f"/api/v1/admin/licensees/{tenant.id}/status", json={"status": "suspended"}, headers=auth_headers(hq)
    )
    assert resp.status_code == 200
    assert resp.json()["license_status"] == "suspended"

    resp = await client.post(
        "/api/v1/admin/licensees/missing/status", json={"status": "active"}, headers=auth_headers(hq)
    )
    assert resp.status_code == 404

    resp = await client.put(
        f"/api/v1/admin/licensees/{tenant.id}/email-credentials",
        json={"username": "acme", "password": "pw"},
        headers=auth_headers(hq),
    )
    assert resp.status_code == 200
    assert resp.json() == {"message": "Email credentials updated"}

    resp = await client.put(
        "/api/v1/admin/licensees/missing/email-credentials",
        json={"username": "acme", "password": "pw"},
        headers=auth_headers(hq),
    )
    assert resp.status_code == 404
