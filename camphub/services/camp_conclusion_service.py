import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import BusinessRuleError
from ..core.money import quantize_dollars, ratio_percent, round_half_up
from ..models.attendance import CampAttendance, AttendanceStatus
from ..models.base import utcnow
from ..models.camp import Camp, CampDay, CampDayStatus, CampStatus
from ..models.incentive import CampSessionCompensation
from ..models.registration import Registration, RegistrationStatus
from ..models.staff import CampStaffAssignment, StaffRole
from ..models.user import User
from .camp_service import CampService

logger = logging.getLogger(__name__)

CONCLUDED_LOCK_REASON = "Camp concluded"
DEFAULT_LOCK_REASON = "Locked by administrator"
ARCHIVED_LOCK_REASON = "Archived"


def _days_total(camp: Camp) -> int:
    return (camp.end_date - camp.start_date).days + 1


async def _camp_days(db: AsyncSession, camp_id: str) -> List[CampDay]:
    result = await db.execute(
        select(CampDay)
        .where(CampDay.camp_id == camp_id)
        .options(selectinload(CampDay.attendance))
        .order_by(CampDay.date)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


class CampConclusionService:
    """End-of-session wrap-up: the final numbers, the pre-flight check, and the lock that freezes the camp."""

    @staticmethod
    async def get_overview(db: AsyncSession, camp_id: str, tenant_id: Optional[str]) -> Dict[str, Any]:
        camp = await CampService.get_camp(db, camp_id, tenant_id)
        days = await _camp_days(db, camp.id)
        registrations = list((await db.execute(
            select(Registration).where(Registration.camp_id == camp.id)
        )).scalars().all())
        confirmed = [r for r in registrations if r.status == RegistrationStatus.CONFIRMED]
        registered = len(confirmed)

        # Days without an attendance sheet expect every confirmed camper
        breakdown = []
        total_expected = total_attended = 0
        for day in days:
            statuses = [a.status for a in day.attendance]
            attended = sum(1 for s in statuses if s in (AttendanceStatus.CHECKED_IN, AttendanceStatus.CHECKED_OUT))
            expected = len(statuses) or registered
            total_expected += expected
            total_attended += attended
            breakdown.append({
                "date": day.date,
                "day_number": day.day_number,
                "expected": expected,
                "attended": attended,
                "absent": sum(1 for s in statuses if s == AttendanceStatus.ABSENT),
                "attendance_rate": ratio_percent(attended, expected),
            })

        registration_revenue = sum((r.total_price_cents or 0) - (r.addons_total_cents or 0) for r in confirmed)
        addon_revenue = sum(r.addons_total_cents or 0 for r in confirmed)
        refunds = sum(r.refund_amount_cents or 0 for r in registrations)

        assignments = list((await db.execute(
            select(CampStaffAssignment).where(CampStaffAssignment.camp_id == camp.id)
        )).scalars().all())
        by_role = {role: 0 for role in StaffRole}
        for assignment in assignments:
            by_role[StaffRole(assignment.role)] += 1

        compensations = (await db.execute(
            select(CampSessionCompensation, User)
            .join(User, User.id == CampSessionCompensation.staff_profile_id)
            .where(CampSessionCompensation.camp_id == camp.id)
            .options(selectinload(CampSessionCompensation.plan))
        )).all()
        staff_summaries = []
        totals = {key: 0 for key in (
            "fixed", "variable", "total", "enrollment", "csat", "budget", "guest_speaker"
        )}
        for comp, staff in compensations:
            totals["fixed"] += comp.fixed_stipend_total or 0
            totals["variable"] += comp.total_variable_bonus or 0
            totals["total"] += comp.total_compensation or 0
            totals["enrollment"] += comp.enrollment_bonus_earned or 0
            totals["csat"] += comp.csat_bonus_earned or 0
            totals["budget"] += comp.budget_efficiency_bonus_earned or 0
            totals["guest_speaker"] += comp.guest_speaker_bonus_earned or 0
            staff_summaries.append({
                "staff_id": staff.id,
                "staff_name": staff.full_name,
                "plan_name": comp.plan.name if comp.plan else None,
                "fixed_stipend": quantize_dollars(comp.fixed_stipend_total or 0),
                "variable_bonus": quantize_dollars(comp.total_variable_bonus or 0),
                "total_compensation": quantize_dollars(comp.total_compensation or 0),
                "is_finalized": bool(comp.is_finalized),
            })

        completed = sum(1 for d in days if d.status == CampDayStatus.FINISHED)
        in_progress = sum(1 for d in days if d.status == CampDayStatus.IN_PROGRESS)
        days_total = _days_total(camp)
        capacity = camp.capacity if camp.capacity is not None else 60

        return {
            "camp": {
                "id": camp.id,
                "name": camp.name,
                "start_date": camp.start_date,
                "end_date": camp.end_date,
                "status": camp.status.value,
                "is_locked": bool(camp.is_locked),
                "lock_reason": camp.lock_reason,
                "concluded_at": camp.concluded_at,
                "tenant_id": camp.tenant_id,
            },
            "attendance": {
                "total_expected": total_expected,
                "total_attended": total_attended,
                "average_daily_attendance": round_half_up(total_attended / len(days)) if days else 0,
                "attendance_rate": ratio_percent(total_attended, total_expected),
                "daily_breakdown": breakdown,
            },
            "capacity": {
                "registered": registered,
                "capacity": capacity,
                "utilization_rate": ratio_percent(registered, capacity),
            },
            "revenue": {
                "gross_revenue_cents": registration_revenue + addon_revenue,
                "registration_revenue_cents": registration_revenue,
                "addon_revenue_cents": addon_revenue,
                "refunds_cents": refunds,
                "net_revenue_cents": registration_revenue + addon_revenue - refunds,
            },
            "staff": {
                "total_assigned": len(assignments),
                "directors": by_role[StaffRole.DIRECTOR],
                "coaches": by_role[StaffRole.COACH],
                "assistants": by_role[StaffRole.ASSISTANT],
                "cits": by_role[StaffRole.CIT],
                "volunteers": by_role[StaffRole.VOLUNTEER],
            },
            "incentives": {
                "total_compensation": quantize_dollars(totals["total"]),
                "total_fixed_stipend": quantize_dollars(totals["fixed"]),
                "total_variable_bonuses": quantize_dollars(totals["variable"]),
                "bonuses_breakdown": {
                    "enrollment_bonus": quantize_dollars(totals["enrollment"]),
                    "csat_bonus": quantize_dollars(totals["csat"]),
                    "budget_efficiency_bonus": quantize_dollars(totals["budget"]),
                    "guest_speaker_bonus": quantize_dollars(totals["guest_speaker"]),
                },
                "staff_summaries": staff_summaries,
            },
            "days_summary": {
                "total": days_total,
                "completed": completed,
                "in_progress": in_progress,
                "not_started": max(0, days_total - completed - in_progress),
            },
        }

    @staticmethod
    async def validate(
        db: AsyncSession, camp_id: str, tenant_id: Optional[str], today: Optional[date] = None
    ) -> Dict[str, Any]:
        """Blockers stop a conclusion outright; warnings only need acknowledging."""
        today = today or utcnow().date()
        camp = await CampService.get_camp(db, camp_id, tenant_id)
        days = await _camp_days(db, camp.id)

        blockers = []
        if camp.status == CampStatus.COMPLETED:
            blockers.append("Camp is already completed")
        if camp.status == CampStatus.CANCELLED:
            blockers.append("Camp has been cancelled")
        if camp.is_locked:
            blockers.append("Camp is locked")

        warnings = []
        if today < camp.end_date:
            warnings.append(f"Camp end date ({camp.end_date.isoformat()}) has not passed yet")
        started = sum(1 for d in days if d.status != CampDayStatus.NOT_STARTED)
        never_started = _days_total(camp) - started
        if never_started > 0:
            warnings.append(f"{never_started} day(s) were never started")
        in_progress = sum(1 for d in days if d.status == CampDayStatus.IN_PROGRESS)
        if in_progress:
            warnings.append(f"{in_progress} day(s) are still in progress")
        on_site = sum(1 for d in days for a in d.attendance if a.status == AttendanceStatus.CHECKED_IN)
        if on_site:
            warnings.append(f"{on_site} camper(s) were never checked out across all days")

        return {"can_conclude": not blockers, "warnings": warnings, "blockers": blockers}

    @staticmethod
    async def conclude(
        db: AsyncSession,
        camp_id: str,
        tenant_id: Optional[str],
        user_id: str,
        lock_camp: bool = True,
        force: bool = False,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Mark the camp completed.

        Open days are closed, campers who never arrived become absent, and the
        camp is locked unless ``lock_camp`` is off. ``force`` skips the blocker
        check. Warnings still outstanding afterwards come back with the result.
        """
        if not force:
            check = await CampConclusionService.validate(db, camp_id, tenant_id, today)
            if not check["can_conclude"]:
                raise BusinessRuleError(f"Cannot conclude camp: {', '.join(check['blockers'])}")

        camp = await CampService.get_camp(db, camp_id, tenant_id)
        now = utcnow()
        camp.status = CampStatus.COMPLETED
        camp.concluded_at = now
        camp.concluded_by = user_id
        camp.is_locked = lock_camp
        camp.lock_reason = CONCLUDED_LOCK_REASON if lock_camp else None

        await db.execute(
            update(CampDay)
            .where(and_(CampDay.camp_id == camp.id, CampDay.status == CampDayStatus.IN_PROGRESS))
            .values(status=CampDayStatus.FINISHED, completed_at=now, completed_by=user_id)
            .execution_options(synchronize_session="fetch")
        )
        day_ids = select(CampDay.id).where(CampDay.camp_id == camp.id)
        await db.execute(
            update(CampAttendance)
            .where(and_(
                CampAttendance.camp_day_id.in_(day_ids),
                CampAttendance.status == AttendanceStatus.NOT_ARRIVED,
            ))
            .values(status=AttendanceStatus.ABSENT)
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()
        logger.info(f"Camp {camp.id} concluded by {user_id} (locked={lock_camp})")

        remaining = await CampConclusionService.validate(db, camp.id, tenant_id, today)
        return {
            "success": True,
            "camp": {
                "id": camp.id,
                "name": camp.name,
                "status": camp.status.value,
                "is_locked": bool(camp.is_locked),
                "concluded_at": camp.concluded_at,
            },
            "warnings": remaining["warnings"],
        }

    @staticmethod
    async def lock(db: AsyncSession, camp_id: str, tenant_id: Optional[str], reason: Optional[str] = None) -> Camp:
        camp = await CampService.get_camp(db, camp_id, tenant_id)
        camp.is_locked = True
        camp.lock_reason = reason or DEFAULT_LOCK_REASON
        await db.flush()
        logger.info(f"Camp {camp.id} locked: {camp.lock_reason}")
        return camp

    @staticmethod
    async def unlock(db: AsyncSession, camp_id: str, tenant_id: Optional[str]) -> Camp:
        camp = await CampService.get_camp(db, camp_id, tenant_id)
        camp.is_locked = False
        camp.lock_reason = None
        await db.flush()
        logger.info(f"Camp {camp.id} unlocked")
        return camp

    @staticmethod
    async def archive(db: AsyncSession, camp_id: str, tenant_id: Optional[str], user_id: str) -> Camp:
        camp = await CampService.get_camp(db, camp_id, tenant_id)
        camp.archived_at = utcnow()
        camp.archived_by = user_id
        camp.is_locked = True
        camp.lock_reason = ARCHIVED_LOCK_REASON
        await db.flush()
        logger.info(f"Camp {camp.id} archived by {user_id}")
        return camp
