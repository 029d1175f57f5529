import logging
from typing import List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import BusinessRuleError, NotFoundError
from ..core.money import ratio_percent
from ..models.attendance import CampAttendance, AttendanceStatus, CheckMethod
from ..models.base import utcnow
from ..models.camp import CampDayStatus
from ..models.grouping import CamperSessionData
from ..models.registration import Registration, RegistrationStatus
from ..schemas.attendance import RosterEntry, AttendanceStats
from .camp_day_service import CampDayService

logger = logging.getLogger(__name__)

_STATUS_ORDER = {
    AttendanceStatus.CHECKED_IN: 0,
    AttendanceStatus.NOT_ARRIVED: 1,
    AttendanceStatus.CHECKED_OUT: 2,
    AttendanceStatus.ABSENT: 3,
}


async def _find(db: AsyncSession, camp_day_id: str, athlete_id: str) -> Optional[CampAttendance]:
    result = await db.execute(
        select(CampAttendance).where(
            and_(CampAttendance.camp_day_id == camp_day_id, CampAttendance.athlete_id == athlete_id)
        )
    )
    return result.scalar_one_or_none()


class AttendanceService:

    @staticmethod
    async def check_in(
        db: AsyncSession,
        camp_day_id: str,
        athlete_id: str,
        user_id: str,
        method: CheckMethod = CheckMethod.MANUAL,
        notes: Optional[str] = None,
    ) -> CampAttendance:
        camp_day = await CampDayService.get_camp_day(db, camp_day_id)
        record = await _find(db, camp_day_id, athlete_id)
        if record and record.status == AttendanceStatus.CHECKED_IN:
            return record

        if not record:
            registration = (await db.execute(
                select(Registration).where(
                    and_(
                        Registration.camp_id == camp_day.camp_id,
                        Registration.athlete_id == athlete_id,
                        Registration.status == RegistrationStatus.CONFIRMED,
                    )
                )
            )).scalars().first()
            if not registration:
                raise NotFoundError("No confirmed registration for this athlete")

            group_id = (await db.execute(
                select(CamperSessionData.assigned_group_id).where(
                    and_(CamperSessionData.camp_id == camp_day.camp_id, CamperSessionData.athlete_id == athlete_id)
                )
            )).scalar_one_or_none()
            record = CampAttendance(
                camp_day_id=camp_day_id,
                athlete_id=athlete_id,
                parent_profile_id=registration.parent_id,
                registration_id=registration.id,
                group_id=group_id,
            )
            db.add(record)

        record.status = AttendanceStatus.CHECKED_IN
        record.check_in_time = utcnow()
        record.check_in_method = method
        record.check_in_by = user_id
        record.check_in_notes = notes

        if camp_day.status == CampDayStatus.NOT_STARTED:
            camp_day.status = CampDayStatus.IN_PROGRESS
        await db.flush()
        logger.info(f"Athlete {athlete_id} checked in for day {camp_day_id}")
        return record

    @staticmethod
    async def check_out(
        db: AsyncSession,
        camp_day_id: str,
        athlete_id: str,
        user_id: str,
        method: CheckMethod = CheckMethod.MANUAL,
        notes: Optional[str] = None,
    ) -> CampAttendance:
        record = await _find(db, camp_day_id, athlete_id)
        if not record:
            raise NotFoundError("Attendance record not found")
        if record.status != AttendanceStatus.CHECKED_IN:
            raise BusinessRuleError("Athlete is not currently checked in")

        record.status = AttendanceStatus.CHECKED_OUT
        record.check_out_time = utcnow()
        record.check_out_method = method
        record.check_out_by = user_id
        record.check_out_notes = notes
        await db.flush()
        return record

    @staticmethod
    async def mark_absent(
        db: AsyncSession, camp_day_id: str, athlete_id: str, notes: Optional[str] = None
    ) -> CampAttendance:
        record = await _find(db, camp_day_id, athlete_id)
        if not record:
            raise NotFoundError("Attendance record not found")
        record.status = AttendanceStatus.ABSENT
        if notes:
            record.notes = f"{record.notes or ''}\n[Absent] {notes}".strip()
        await db.flush()
        return record

    @staticmethod
    async def get_roster(db: AsyncSession, camp_day_id: str) -> List[RosterEntry]:
        result = await db.execute(
            select(CampAttendance)
            .where(CampAttendance.camp_day_id == camp_day_id)
            .options(selectinload(CampAttendance.athlete), selectinload(CampAttendance.group))
        )
        records = sorted(
            result.scalars().all(),
            key=lambda r: (_STATUS_ORDER[r.status], r.athlete.last_name.lower(), r.athlete.first_name.lower()),
        )
        return [
            RosterEntry(
                attendance_id=r.id,
                athlete_id=r.athlete_id,
                athlete_name=r.athlete.full_name,
                grade=r.athlete.grade,
                group_id=r.group_id,
                group_name=r.group.name if r.group else None,
                group_color=r.group.color if r.group else None,
                status=r.status,
                check_in_time=r.check_in_time,
                check_out_time=r.check_out_time,
            )
            for r in records
        ]

    @staticmethod
    async def get_attendance_stats(db: AsyncSession, camp_day_id: str) -> AttendanceStats:
        statuses = (await db.execute(
            select(CampAttendance.status).where(CampAttendance.camp_day_id == camp_day_id)
        )).scalars().all()
        counts = {status: 0 for status in AttendanceStatus}
        for status in statuses:
            counts[status] += 1
        total = len(statuses)
        present = counts[AttendanceStatus.CHECKED_IN] + counts[AttendanceStatus.CHECKED_OUT]
        return AttendanceStats(
            total=total,
            not_arrived=counts[AttendanceStatus.NOT_ARRIVED],
            checked_in=counts[AttendanceStatus.CHECKED_IN],
            checked_out=counts[AttendanceStatus.CHECKED_OUT],
            absent=counts[AttendanceStatus.ABSENT],
            attendance_rate=ratio_percent(present, total),
        )
