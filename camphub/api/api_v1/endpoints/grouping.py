from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.user import User
from ....schemas.grouping import MoveCamperRequest, LateRegistrationRequest, GroupingReport
from ....services.grouping_service import GroupingService
from ...deps import require_staff, require_director, get_tenant_scope

router = APIRouter()


@router.post("/camp/{camp_id}/build-camper-data")
async def build_camper_data(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Refresh the per-camper grouping inputs from confirmed registrations"""
    try:
        rows = await GroupingService.build_camper_data(db, camp_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)
    return {"campers": len(rows)}


@router.post("/camp/{camp_id}/run")
async def run_auto_grouping(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await GroupingService.run_auto_grouping(db, camp_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.post("/camp/{camp_id}/move")
async def move_camper(
    camp_id: str,
    payload: MoveCamperRequest,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        row = await GroupingService.move_camper(
            db, camp_id, payload.camper_id, payload.target_group_id, payload.reason, tenant_id
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)
    return {
        "camper_id": row.id,
        "group_id": row.assigned_group_id,
        "assignment_type": row.assignment_type.value if row.assignment_type else None,
    }


@router.post("/camp/{camp_id}/finalize")
async def finalize_grouping(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        camp = await GroupingService.finalize_grouping(db, camp_id, current_user.id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)
    return {"camp_id": camp.id, "grouping_status": camp.grouping_status.value}


@router.post("/camp/{camp_id}/unfinalize")
async def unfinalize_grouping(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        camp = await GroupingService.unfinalize_grouping(db, camp_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)
    return {"camp_id": camp.id, "grouping_status": camp.grouping_status.value}


@router.post("/camp/{camp_id}/late-registration")
async def assign_late_registration(
    camp_id: str,
    payload: LateRegistrationRequest,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await GroupingService.assign_late_registration(db, camp_id, payload.registration_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.get("/camp/{camp_id}/report", response_model=GroupingReport)
async def get_grouping_report(
    camp_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await GroupingService.get_grouping_report(db, camp_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)
