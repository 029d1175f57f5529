from datetime import date
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.camp import CampStatus
from ....models.user import User
from ....schemas.camp import (
    CampCreate, CampUpdate, CampResponse, CampListResponse, AddonCreate, AddonResponse
)
from ....services.camp_hq_service import CampHQService
from ....services.camp_service import CampService
from ...deps import get_current_active_user, require_director, require_staff, get_tenant_scope, require_tenant_scope

router = APIRouter()


@router.get("/", response_model=CampListResponse)
async def list_camps(
    status: Optional[CampStatus] = None,
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    camps, total = await CampService.list_camps(
        db, tenant_id, status=status, date_from=date_from, date_to=date_to, search=search, page=page, size=size
    )
    return CampListResponse(
        camps=[CampResponse.model_validate(c) for c in camps],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size,
    )


@router.post("/", response_model=CampResponse, status_code=201)
async def create_camp(
    payload: CampCreate,
    current_user: User = Depends(require_director),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampService.create_camp(db, tenant_id, payload)
    except BusinessRuleError as e:
        raise_http(e)


@router.get("/addons", response_model=List[AddonResponse])
async def list_addons(
    camp_id: Optional[str] = None,
    current_user: User = Depends(get_current_active_user),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await CampService.list_addons(db, tenant_id, camp_id)


@router.post("/addons", response_model=AddonResponse, status_code=201)
async def create_addon(
    payload: AddonCreate,
    current_user: User = Depends(require_director),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampService.create_addon(db, tenant_id, payload)
    except NotFoundError as e:
        raise_http(e)


@router.delete("/addons/{addon_id}", response_model=AddonResponse)
async def deactivate_addon(
    addon_id: str,
    current_user: User = Depends(require_director),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampService.deactivate_addon(db, tenant_id, addon_id)
    except NotFoundError as e:
        raise_http(e)


@router.get("/{camp_id}", response_model=CampResponse)
async def get_camp(
    camp_id: str,
    current_user: User = Depends(get_current_active_user),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampService.get_camp(db, camp_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.patch("/{camp_id}", response_model=CampResponse)
async def update_camp(
    camp_id: str,
    payload: CampUpdate,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampService.update_camp(db, camp_id, tenant_id, payload)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.delete("/{camp_id}", status_code=204)
async def delete_camp(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await CampService.delete_camp(db, camp_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.get("/{camp_id}/hq")
async def get_camp_hq_overview(
    camp_id: str,
    today: Optional[date] = None,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Director's overview: schedule progress, today's attendance, enrollment and next actions"""
    try:
        return await CampHQService.get_camp_hq_overview(db, camp_id, tenant_id, today)
    except NotFoundError as e:
        raise_http(e)
