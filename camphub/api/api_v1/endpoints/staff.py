"""
Camp staffing: directors invite existing staff onto a camp, staff accept or decline.
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError, ForbiddenError
from ....db.database import get_db
from ....models.staff import StaffRequestStatus
from ....models.user import User
from ....schemas.staff import (
    StaffAssignmentResponse, StaffRequestCreate, StaffRequestRespond, StaffRequestResponse
)
from ....services.staff_assignment_service import StaffAssignmentService
from ...deps import get_current_active_user, require_staff, require_director, get_tenant_scope

router = APIRouter()


@router.get("/camps/{camp_id}/assignments", response_model=List[StaffAssignmentResponse])
async def list_camp_assignments(
    camp_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await StaffAssignmentService.list_assignments(db, camp_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.delete("/assignments/{assignment_id}")
async def remove_assignment(
    assignment_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await StaffAssignmentService.remove_assignment(db, assignment_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)
    return {"message": "Staff assignment removed"}


@router.post("/camps/{camp_id}/requests", response_model=StaffRequestResponse)
async def create_staff_request(
    camp_id: str,
    payload: StaffRequestCreate,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await StaffAssignmentService.create_request(db, camp_id, tenant_id, current_user, payload)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.get("/camps/{camp_id}/requests", response_model=List[StaffRequestResponse])
async def list_camp_requests(
    camp_id: str,
    status: Optional[StaffRequestStatus] = None,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await StaffAssignmentService.list_requests_for_camp(db, camp_id, tenant_id, status)
    except NotFoundError as e:
        raise_http(e)


@router.get("/requests/mine", response_model=List[StaffRequestResponse])
async def list_my_requests(
    status: Optional[StaffRequestStatus] = None,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await StaffAssignmentService.list_requests_for_user(db, current_user.id, status)


@router.get("/requests/mine/pending-count")
async def my_pending_count(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return {"count": await StaffAssignmentService.pending_count_for_user(db, current_user.id)}


@router.post("/requests/{request_id}/respond", response_model=StaffRequestResponse)
async def respond_to_request(
    request_id: str,
    payload: StaffRequestRespond,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await StaffAssignmentService.respond(db, request_id, current_user.id, payload.accept)
    except (NotFoundError, ForbiddenError, BusinessRuleError) as e:
        raise_http(e)


@router.delete("/requests/{request_id}")
async def cancel_request(
    request_id: str,
    current_user: User = Depends(require_director),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await StaffAssignmentService.cancel_request(db, request_id, current_user.id)
    except (NotFoundError, ForbiddenError, BusinessRuleError) as e:
        raise_http(e)
    return {"message": "Request cancelled"}
