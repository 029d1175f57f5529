from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.user import User, UserRole
from ....schemas.incentive import (
    CompensationPlanResponse, AttachPlanRequest, SessionMetricsUpdate, DaySnapshotRequest,
    DaySnapshotResponse, SessionCompensationResponse, CompensationBreakdown, StaffCompensationSummary
)
from ....services.camp_day_service import CampDayService
from ....services.camp_service import CampService
from ....services.incentive_service import IncentiveService
from ...deps import require_staff, require_director, require_licensee, require_hq_admin, get_tenant_scope

router = APIRouter()


@router.get("/plans", response_model=List[CompensationPlanResponse])
async def list_plans(
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await IncentiveService.list_active_plans(db)


@router.post("/plans/seed")
async def seed_plans(
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return {"created": await IncentiveService.seed_default_plans(db)}


@router.post("/attach", response_model=SessionCompensationResponse)
async def attach_plan(
    payload: AttachPlanRequest,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Attach a compensation plan to a staff member for one camp session"""
    try:
        return await IncentiveService.attach_plan_to_session(
            db, payload.camp_id, payload.staff_profile_id, payload.plan_code, tenant_id
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.post("/days/{camp_day_id}/snapshot", response_model=DaySnapshotResponse)
async def capture_day_snapshot(
    camp_day_id: str,
    payload: DaySnapshotRequest,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
        return await IncentiveService.capture_day_snapshot(
            db, camp_day_id, payload.staff_profile_id, payload.csat_score, payload.guest_speakers
        )
    except NotFoundError as e:
        raise_http(e)


@router.patch("/compensation/{compensation_id}/metrics", response_model=SessionCompensationResponse)
async def update_session_metrics(
    compensation_id: str,
    payload: SessionMetricsUpdate,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await IncentiveService.update_session_metrics(
            db, compensation_id, tenant_id=tenant_id, **payload.model_dump(exclude_unset=True)
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.post("/camp/{camp_id}/staff/{staff_id}/calculate", response_model=CompensationBreakdown)
async def calculate_session_compensation(
    camp_id: str,
    staff_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Compute and finalize the staff member's pay for the session"""
    try:
        await CampService.get_camp(db, camp_id, tenant_id)
        return await IncentiveService.calculate_session_compensation(
            db, camp_id, staff_id, finalized_by=current_user.id
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.get("/camp/{camp_id}", response_model=List[SessionCompensationResponse])
async def get_camp_compensation(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await IncentiveService.get_camp_compensation(db, camp_id, tenant_id)


@router.get("/staff/{staff_id}/summary", response_model=StaffCompensationSummary)
async def get_staff_compensation_summary(
    staff_id: str,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> Any:
    if staff_id != current_user.id and not current_user.has_role(UserRole.DIRECTOR):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own compensation"
        )
    return await IncentiveService.get_staff_compensation_summary(db, staff_id)
