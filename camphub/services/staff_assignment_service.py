import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import BusinessRuleError, ConflictError, ForbiddenError, NotFoundError
from ..models.base import utcnow
from ..models.staff import CampStaffAssignment, StaffAssignmentRequest, StaffRequestStatus
from ..models.user import User
from ..schemas.staff import StaffRequestCreate
from .camp_service import CampService

logger = logging.getLogger(__name__)


def request_view(request: StaffAssignmentRequest) -> Dict[str, Any]:
    camp = request.camp
    return {
        "id": request.id,
        "camp_id": camp.id,
        "camp_name": camp.name,
        "camp_start_date": camp.start_date,
        "camp_end_date": camp.end_date,
        "tenant_id": camp.tenant_id,
        "requested_user_id": request.requested_user_id,
        "requested_user_name": request.requested_user.full_name,
        "requested_user_email": request.requested_user.email,
        "requested_by_user_id": request.requested_by_user_id,
        "requested_by_user_name": request.requested_by.full_name,
        "role": request.role,
        "status": request.status,
        "requested_at": request.requested_at,
        "responded_at": request.responded_at,
        "is_lead": bool(request.is_lead),
        "call_time": request.call_time,
        "end_time": request.end_time,
        "station_name": request.station_name,
        "notes": request.notes,
    }


def _with_people(stmt):
    return stmt.options(
        selectinload(StaffAssignmentRequest.camp),
        selectinload(StaffAssignmentRequest.requested_user),
        selectinload(StaffAssignmentRequest.requested_by),
    ).execution_options(populate_existing=True)


class StaffAssignmentService:
    """Director invites existing staff onto a camp; the invitee accepts or declines."""

    @staticmethod
    async def _get_request(db: AsyncSession, request_id: str) -> StaffAssignmentRequest:
        request = (await db.execute(
            _with_people(select(StaffAssignmentRequest).where(StaffAssignmentRequest.id == request_id))
        )).scalar_one_or_none()
        if not request:
            raise NotFoundError("Request not found")
        return request

    @staticmethod
    async def list_assignments(db: AsyncSession, camp_id: str, tenant_id: Optional[str]) -> List[CampStaffAssignment]:
        await CampService.get_camp(db, camp_id, tenant_id)
        result = await db.execute(
            select(CampStaffAssignment)
            .where(CampStaffAssignment.camp_id == camp_id)
            .order_by(CampStaffAssignment.role, CampStaffAssignment.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def remove_assignment(db: AsyncSession, assignment_id: str, tenant_id: Optional[str]) -> None:
        assignment = await db.get(CampStaffAssignment, assignment_id)
        if not assignment:
            raise NotFoundError("Staff assignment not found")
        camp = await CampService.get_camp(db, assignment.camp_id, tenant_id)
        if camp.is_locked:
            raise BusinessRuleError("Camp is locked and cannot be modified")
        await db.delete(assignment)
        await db.flush()
        logger.info(f"Staff assignment {assignment_id} removed from camp {camp.id}")

    @staticmethod
    async def create_request(
        db: AsyncSession,
        camp_id: str,
        tenant_id: Optional[str],
        requested_by: User,
        data: StaffRequestCreate,
    ) -> Dict[str, Any]:
        camp = await CampService.get_camp(db, camp_id, tenant_id)
        if camp.is_locked:
            raise BusinessRuleError("Camp is locked and cannot be modified")
        staff = (await db.execute(
            select(User).where(and_(User.id == data.user_id, User.tenant_id == camp.tenant_id))
        )).scalar_one_or_none()
        if not staff:
            raise NotFoundError("Staff member not found")

        assigned = (await db.execute(
            select(CampStaffAssignment.id).where(
                and_(CampStaffAssignment.camp_id == camp.id, CampStaffAssignment.user_id == staff.id)
            )
        )).scalar_one_or_none()
        if assigned:
            raise ConflictError("This user is already assigned to this camp")

        existing = (await db.execute(
            select(StaffAssignmentRequest).where(
                and_(
                    StaffAssignmentRequest.camp_id == camp.id,
                    StaffAssignmentRequest.requested_user_id == staff.id,
                )
            )
        )).scalar_one_or_none()
        if existing:
            if existing.status == StaffRequestStatus.PENDING:
                raise ConflictError("A request is already pending for this user")
            # a declined (or stale accepted) request makes way for the new one
            await db.delete(existing)
            await db.flush()

        request = StaffAssignmentRequest(
            camp_id=camp.id,
            requested_user_id=staff.id,
            requested_by_user_id=requested_by.id,
            role=data.role,
            is_lead=data.is_lead,
            call_time=data.call_time,
            end_time=data.end_time,
            station_name=data.station_name,
            notes=data.notes,
        )
        db.add(request)
        await db.flush()
        logger.info(f"Staff request {request.id}: {staff.email} as {data.role.value} for camp {camp.id}")
        return request_view(await StaffAssignmentService._get_request(db, request.id))

    @staticmethod
    async def list_requests_for_user(
        db: AsyncSession, user_id: str, status: Optional[StaffRequestStatus] = None
    ) -> List[Dict[str, Any]]:
        stmt = select(StaffAssignmentRequest).where(StaffAssignmentRequest.requested_user_id == user_id)
        if status:
            stmt = stmt.where(StaffAssignmentRequest.status == status)
        result = await db.execute(_with_people(stmt.order_by(StaffAssignmentRequest.requested_at.desc())))
        return [request_view(r) for r in result.scalars().all()]

    @staticmethod
    async def list_requests_for_camp(
        db: AsyncSession, camp_id: str, tenant_id: Optional[str], status: Optional[StaffRequestStatus] = None
    ) -> List[Dict[str, Any]]:
        await CampService.get_camp(db, camp_id, tenant_id)
        stmt = select(StaffAssignmentRequest).where(StaffAssignmentRequest.camp_id == camp_id)
        if status:
            stmt = stmt.where(StaffAssignmentRequest.status == status)
        result = await db.execute(_with_people(stmt.order_by(StaffAssignmentRequest.requested_at.desc())))
        return [request_view(r) for r in result.scalars().all()]

    @staticmethod
    async def respond(db: AsyncSession, request_id: str, user_id: str, accept: bool) -> Dict[str, Any]:
        """Only the invited user may answer; accepting creates the camp assignment."""
        request = await StaffAssignmentService._get_request(db, request_id)
        if request.requested_user_id != user_id:
            raise ForbiddenError("You are not authorized to respond to this request")
        if request.status != StaffRequestStatus.PENDING:
            raise BusinessRuleError("This request has already been responded to")

        request.status = StaffRequestStatus.ACCEPTED if accept else StaffRequestStatus.DECLINED
        request.responded_at = utcnow()
        if accept:
            db.add(CampStaffAssignment(
                camp_id=request.camp_id,
                user_id=request.requested_user_id,
                role=request.role,
                is_lead=request.is_lead,
                call_time=request.call_time,
                end_time=request.end_time,
                station_name=request.station_name,
                notes=request.notes,
            ))
        await db.flush()
        logger.info(f"Staff request {request.id} {request.status.value}")
        return request_view(request)

    @staticmethod
    async def cancel_request(db: AsyncSession, request_id: str, user_id: str) -> None:
        request = await StaffAssignmentService._get_request(db, request_id)
        if request.requested_by_user_id != user_id:
            raise ForbiddenError("You are not authorized to cancel this request")
        if request.status != StaffRequestStatus.PENDING:
            raise BusinessRuleError("Only pending requests can be cancelled")
        await db.delete(request)
        await db.flush()

    @staticmethod
    async def pending_count_for_user(db: AsyncSession, user_id: str) -> int:
        return (await db.execute(
            select(func.count(StaffAssignmentRequest.id)).where(
                and_(
                    StaffAssignmentRequest.requested_user_id == user_id,
                    StaffAssignmentRequest.status == StaffRequestStatus.PENDING,
                )
            )
        )).scalar() or 0
