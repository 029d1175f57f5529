from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.user import User
from ....schemas.attendance import CheckInRequest, AbsentRequest, AttendanceResponse, RosterEntry, AttendanceStats
from ....services.attendance_service import AttendanceService
from ....services.camp_day_service import CampDayService
from ...deps import require_staff, get_tenant_scope

router = APIRouter()


async def _day_in_scope(db: AsyncSession, camp_day_id: str, tenant_id: Optional[str]) -> None:
    try:
        await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.post("/{camp_day_id}/check-in", response_model=AttendanceResponse)
async def check_in(
    camp_day_id: str,
    payload: CheckInRequest,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await _day_in_scope(db, camp_day_id, tenant_id)
    try:
        return await AttendanceService.check_in(
            db, camp_day_id, payload.athlete_id, current_user.id, payload.method, payload.notes
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.post("/{camp_day_id}/check-out", response_model=AttendanceResponse)
async def check_out(
    camp_day_id: str,
    payload: CheckInRequest,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await _day_in_scope(db, camp_day_id, tenant_id)
    try:
        return await AttendanceService.check_out(
            db, camp_day_id, payload.athlete_id, current_user.id, payload.method, payload.notes
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.post("/{camp_day_id}/absent", response_model=AttendanceResponse)
async def mark_absent(
    camp_day_id: str,
    payload: AbsentRequest,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await _day_in_scope(db, camp_day_id, tenant_id)
    try:
        return await AttendanceService.mark_absent(db, camp_day_id, payload.athlete_id, payload.notes)
    except NotFoundError as e:
        raise_http(e)


@router.get("/{camp_day_id}/roster", response_model=List[RosterEntry])
async def get_roster(
    camp_day_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await _day_in_scope(db, camp_day_id, tenant_id)
    return await AttendanceService.get_roster(db, camp_day_id)


@router.get("/{camp_day_id}/stats", response_model=AttendanceStats)
async def get_attendance_stats(
    camp_day_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await _day_in_scope(db, camp_day_id, tenant_id)
    return await AttendanceService.get_attendance_stats(db, camp_day_id)
