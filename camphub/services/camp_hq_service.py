import logging
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.money import ratio_percent
from ..models.attendance import CampAttendance, AttendanceStatus
from ..models.base import utcnow
from ..models.camp import CampDay, CampDayStatus
from ..models.grouping import CamperSessionData
from ..models.registration import Registration, RegistrationStatus
from .camp_service import CampService

logger = logging.getLogger(__name__)


def grouping_status_for(assigned: int, total: int) -> str:
    if total > 0 and assigned == total:
        return "finalized"
    if assigned > 0:
        return "reviewed"
    return "pending"


class CampHQService:
    """Director's single-screen view of a camp: schedule progress, today's attendance and next actions."""

    @staticmethod
    async def get_camp_hq_overview(
        db: AsyncSession, camp_id: str, tenant_id: Optional[str], today: Optional[date] = None
    ) -> Dict[str, Any]:
        today = today or utcnow().date()
        camp = await CampService.get_camp(db, camp_id, tenant_id)

        days_total = (camp.end_date - camp.start_date).days + 1
        days_completed = (await db.execute(
            select(func.count(CampDay.id)).where(
                and_(CampDay.camp_id == camp.id, CampDay.status == CampDayStatus.FINISHED)
            )
        )).scalar() or 0
        is_camp_day = camp.start_date <= today <= camp.end_date

        today_day = (await db.execute(
            select(CampDay).where(and_(CampDay.camp_id == camp.id, CampDay.date == today))
        )).scalar_one_or_none()

        counts = {status.value: 0 for status in AttendanceStatus}
        if today_day:
            rows = await db.execute(
                select(CampAttendance.status, func.count(CampAttendance.id))
                .where(CampAttendance.camp_day_id == today_day.id)
                .group_by(CampAttendance.status)
            )
            for status, count in rows.all():
                counts[status.value] = count

        registration_counts = dict((await db.execute(
            select(Registration.status, func.count(Registration.id))
            .where(Registration.camp_id == camp.id)
            .group_by(Registration.status)
        )).all())
        registered = (
            registration_counts.get(RegistrationStatus.CONFIRMED, 0)
            + registration_counts.get(RegistrationStatus.PENDING, 0)
        )
        waitlisted = registration_counts.get(RegistrationStatus.WAITLISTED, 0)

        capacity = camp.capacity if camp.capacity is not None else 60
        percent_full = ratio_percent(registered, capacity)

        total_campers = (await db.execute(
            select(func.count(CamperSessionData.id)).where(CamperSessionData.camp_id == camp.id)
        )).scalar() or 0
        assigned_campers = (await db.execute(
            select(func.count(CamperSessionData.id)).where(
                and_(CamperSessionData.camp_id == camp.id, CamperSessionData.assigned_group_id.is_not(None))
            )
        )).scalar() or 0
        grouping_status = grouping_status_for(assigned_campers, total_campers)

        today_status = today_day.status if today_day else CampDayStatus.NOT_STARTED
        quick_actions = []
        if is_camp_day and today_status == CampDayStatus.NOT_STARTED:
            quick_actions.append("start_day")
        if today_status == CampDayStatus.IN_PROGRESS:
            quick_actions.append("end_day")
        if grouping_status != "finalized":
            quick_actions.append("run_grouping")
        quick_actions.append("view_roster")

        return {
            "camp": {
                "id": camp.id,
                "name": camp.name,
                "start_date": camp.start_date,
                "end_date": camp.end_date,
                "status": camp.status.value,
                "is_locked": bool(camp.is_locked),
            },
            "schedule": {
                "days_total": days_total,
                "days_completed": days_completed,
                "days_remaining": max(0, days_total - days_completed),
                "is_camp_day": is_camp_day,
                "day_number": (today - camp.start_date).days + 1 if is_camp_day else None,
                "today_camp_day_id": today_day.id if today_day else None,
                "today_status": today_status.value,
            },
            "attendance": {
                "checked_in": counts[AttendanceStatus.CHECKED_IN.value],
                "checked_out": counts[AttendanceStatus.CHECKED_OUT.value],
                "not_arrived": counts[AttendanceStatus.NOT_ARRIVED.value],
                "absent": counts[AttendanceStatus.ABSENT.value],
                "on_site": counts[AttendanceStatus.CHECKED_IN.value],
            },
            "enrollment": {
                "capacity": capacity,
                "min_age": camp.min_age if camp.min_age is not None else 5,
                "max_age": camp.max_age if camp.max_age is not None else 14,
                "registered": registered,
                "waitlisted": waitlisted,
                "percent_full": percent_full,
            },
            "grouping": {
                "status": grouping_status,
                "total_campers": total_campers,
                "assigned_campers": assigned_campers,
            },
            "quick_actions": quick_actions,
        }
