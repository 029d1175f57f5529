from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.tenant import LicenseStatus
from ....models.user import User
from ....schemas.tenant import (
    LicenseeCreate, LicenseeUpdate, LicenseeResponse, LicenseeListResponse,
    LicenseStatusUpdate, EmailCredentialsUpdate
)
from ....services.licensee_service import LicenseeService
from ...deps import require_hq_admin

router = APIRouter()


@router.get("/", response_model=LicenseeListResponse)
async def list_licensees(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[LicenseStatus] = None,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    licensees, total = await LicenseeService.list_licensees(db, page=page, size=size, search=search, status=status)
    return LicenseeListResponse(
        licensees=[LicenseeResponse.model_validate(t) for t in licensees],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size,
    )


@router.post("/", response_model=LicenseeResponse, status_code=201)
async def create_licensee(
    payload: LicenseeCreate,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await LicenseeService.create_licensee(db, payload)
    except BusinessRuleError as e:
        raise_http(e)


@router.get("/{tenant_id}", response_model=LicenseeResponse)
async def get_licensee(
    tenant_id: str,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await LicenseeService.get_licensee(db, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.patch("/{tenant_id}", response_model=LicenseeResponse)
async def update_licensee(
    tenant_id: str,
    payload: LicenseeUpdate,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await LicenseeService.update_licensee(db, tenant_id, payload)
    except NotFoundError as e:
        raise_http(e)


@router.post("/{tenant_id}/status", response_model=LicenseeResponse)
async def set_license_status(
    tenant_id: str,
    payload: LicenseStatusUpdate,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Activate, suspend or terminate a license"""
    try:
        return await LicenseeService.set_license_status(db, tenant_id, payload.status)
    except NotFoundError as e:
        raise_http(e)


@router.put("/{tenant_id}/email-credentials")
async def set_email_credentials(
    tenant_id: str,
    payload: EmailCredentialsUpdate,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await LicenseeService.set_email_credentials(db, tenant_id, payload.username, payload.password)
    except NotFoundError as e:
        raise_http(e)
    return {"message": "Email credentials updated"}
