import logging
from datetime import date, datetime
from typing import List, Optional, Union

from sqlalchemy import select, and_, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import BusinessRuleError, NotFoundError
from ..models.attendance import CampAttendance, AttendanceStatus
from ..models.base import utcnow
from ..models.camp import Camp, CampDay, CampDayStatus
from ..models.grouping import CamperSessionData
from ..models.registration import Registration, RegistrationStatus

logger = logging.getLogger(__name__)


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class CampDayService:
    """Per-date camp days and the start/end-of-day workflow"""

    @staticmethod
    async def get_camp_day(db: AsyncSession, camp_day_id: str, tenant_id: Optional[str] = None) -> CampDay:
        stmt = select(CampDay).where(CampDay.id == camp_day_id)
        if tenant_id:
            stmt = stmt.join(Camp, Camp.id == CampDay.camp_id).where(Camp.tenant_id == tenant_id)
        day = (await db.execute(stmt)).scalar_one_or_none()
        if not day:
            raise NotFoundError("Camp day not found")
        return day

    @staticmethod
    async def list_camp_days(db: AsyncSession, camp_id: str) -> List[CampDay]:
        result = await db.execute(
            select(CampDay).where(CampDay.camp_id == camp_id).order_by(CampDay.day_number)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_or_create_camp_day(
        db: AsyncSession, camp_id: str, day: Union[date, datetime, str], tenant_id: Optional[str] = None
    ) -> CampDay:
        stmt = select(Camp).where(Camp.id == camp_id)
        if tenant_id:
            stmt = stmt.where(Camp.tenant_id == tenant_id)
        camp = (await db.execute(stmt)).scalar_one_or_none()
        if not camp:
            raise NotFoundError("Camp not found")

        on = _as_date(day)
        if on < camp.start_date or on > camp.end_date:
            raise BusinessRuleError("Date is outside camp date range")

        result = await db.execute(
            select(CampDay).where(and_(CampDay.camp_id == camp_id, CampDay.date == on))
        )
        camp_day = result.scalar_one_or_none()
        if camp_day:
            return camp_day

        day_number = (on - camp.start_date).days + 1
        camp_day = CampDay(
            camp_id=camp_id,
            date=on,
            day_number=day_number,
            title=f"Day {day_number}",
            status=CampDayStatus.NOT_STARTED,
        )
        db.add(camp_day)
        await db.flush()
        return camp_day

    @staticmethod
    async def initialize_attendance(db: AsyncSession, camp_day_id: str) -> int:
        """Create not_arrived rows for confirmed campers without one; returns rows created"""
        camp_day = await CampDayService.get_camp_day(db, camp_day_id)

        tracked = set((await db.execute(
            select(CampAttendance.athlete_id).where(CampAttendance.camp_day_id == camp_day_id)
        )).scalars().all())

        registrations = (await db.execute(
            select(Registration).where(
                and_(Registration.camp_id == camp_day.camp_id, Registration.status == RegistrationStatus.CONFIRMED)
            )
        )).scalars().all()

        groups = dict((await db.execute(
            select(CamperSessionData.athlete_id, CamperSessionData.assigned_group_id)
            .where(CamperSessionData.camp_id == camp_day.camp_id)
        )).all())

        created = 0
        for reg in registrations:
            if reg.athlete_id in tracked:
                continue
            db.add(CampAttendance(
                camp_day_id=camp_day_id,
                athlete_id=reg.athlete_id,
                parent_profile_id=reg.parent_id,
                registration_id=reg.id,
                group_id=groups.get(reg.athlete_id),
                status=AttendanceStatus.NOT_ARRIVED,
            ))
            tracked.add(reg.athlete_id)
            created += 1
        await db.flush()
        return created

    @staticmethod
    async def update_camp_day_status(db: AsyncSession, camp_day_id: str, status: CampDayStatus) -> CampDay:
        camp_day = await CampDayService.get_camp_day(db, camp_day_id)
        camp_day.status = status
        await db.flush()
        return camp_day

    @staticmethod
    async def start_camp_day(db: AsyncSession, camp_day_id: str) -> CampDay:
        camp_day = await CampDayService.get_camp_day(db, camp_day_id)
        camp = (await db.execute(select(Camp).where(Camp.id == camp_day.camp_id))).scalar_one()
        if camp.is_locked:
            raise BusinessRuleError("Camp is locked and cannot be modified")
        if camp_day.status == CampDayStatus.FINISHED:
            raise BusinessRuleError("Day has already been completed")
        await CampDayService.initialize_attendance(db, camp_day_id)
        camp_day.status = CampDayStatus.IN_PROGRESS
        await db.flush()
        logger.info(f"Camp day {camp_day.day_number} started for camp {camp.id}")
        return camp_day

    @staticmethod
    async def end_camp_day(
        db: AsyncSession,
        camp_day_id: str,
        user_id: str,
        auto_checkout_all: bool = True,
        force: bool = False,
        notes: Optional[str] = None,
    ) -> CampDay:
        camp_day = await CampDayService.get_camp_day(db, camp_day_id)
        camp = (await db.execute(select(Camp).where(Camp.id == camp_day.camp_id))).scalar_one()

        if camp.is_locked:
            raise BusinessRuleError("Camp is locked and cannot be modified")
        if camp_day.status == CampDayStatus.FINISHED:
            raise BusinessRuleError("Day has already been completed")
        if camp_day.status == CampDayStatus.NOT_STARTED:
            raise BusinessRuleError("Day has not been started")

        on_site = len((await db.execute(
            select(CampAttendance.id).where(
                and_(CampAttendance.camp_day_id == camp_day_id, CampAttendance.status == AttendanceStatus.CHECKED_IN)
            )
        )).scalars().all())
        if on_site and not auto_checkout_all and not force:
            noun = "campers are" if on_site != 1 else "camper is"
            raise BusinessRuleError(f"{on_site} {noun} still on-site. Enable auto-checkout or force end.")

        now = utcnow()
        if auto_checkout_all and on_site:
            await db.execute(
                update(CampAttendance)
                .where(and_(CampAttendance.camp_day_id == camp_day_id, CampAttendance.status == AttendanceStatus.CHECKED_IN))
                .values(status=AttendanceStatus.CHECKED_OUT, check_out_time=now, check_out_by=user_id)
                .execution_options(synchronize_session="fetch")
            )
        await db.execute(
            update(CampAttendance)
            .where(and_(CampAttendance.camp_day_id == camp_day_id, CampAttendance.status == AttendanceStatus.NOT_ARRIVED))
            .values(status=AttendanceStatus.ABSENT)
            .execution_options(synchronize_session="fetch")
        )

        camp_day.status = CampDayStatus.FINISHED
        camp_day.completed_at = now
        camp_day.completed_by = user_id
        if notes:
            camp_day.notes = notes
        await db.flush()
        logger.info(f"Camp day {camp_day.day_number} completed for camp {camp.id} by {user_id}")
        return camp_day
