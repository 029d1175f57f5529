from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.user import User
from ....schemas.camp import CampDayCreate, CampDayResponse, CampDayStatusUpdate, EndCampDayRequest
from ....services.camp_day_service import CampDayService
from ....services.camp_service import CampService
from ...deps import require_staff, require_director, get_tenant_scope

router = APIRouter()


@router.get("/camp/{camp_id}", response_model=List[CampDayResponse])
async def list_camp_days(
    camp_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await CampService.get_camp(db, camp_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)
    return await CampDayService.list_camp_days(db, camp_id)


@router.post("/camp/{camp_id}", response_model=CampDayResponse)
async def get_or_create_camp_day(
    camp_id: str,
    payload: CampDayCreate,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampDayService.get_or_create_camp_day(db, camp_id, payload.date, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.get("/{camp_day_id}", response_model=CampDayResponse)
async def get_camp_day(
    camp_day_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.post("/{camp_day_id}/initialize-attendance")
async def initialize_attendance(
    camp_day_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
        created = await CampDayService.initialize_attendance(db, camp_day_id)
    except NotFoundError as e:
        raise_http(e)
    return {"created": created}


@router.patch("/{camp_day_id}/status", response_model=CampDayResponse)
async def update_camp_day_status(
    camp_day_id: str,
    payload: CampDayStatusUpdate,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
        return await CampDayService.update_camp_day_status(db, camp_day_id, payload.status)
    except NotFoundError as e:
        raise_http(e)


@router.post("/{camp_day_id}/start", response_model=CampDayResponse)
async def start_camp_day(
    camp_day_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
        return await CampDayService.start_camp_day(db, camp_day_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.post("/{camp_day_id}/end", response_model=CampDayResponse)
async def end_camp_day(
    camp_day_id: str,
    payload: EndCampDayRequest,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Close out the day: check out or flag campers still on site, mark no-shows absent"""
    try:
        await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
        return await CampDayService.end_camp_day(
            db,
            camp_day_id,
            current_user.id,
            auto_checkout_all=payload.auto_checkout_all,
            force=payload.force,
            notes=payload.notes,
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)
