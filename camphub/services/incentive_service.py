import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import BusinessRuleError, NotFoundError
from ..core.money import quantize_dollars
from ..models.attendance import CampAttendance, AttendanceStatus
from ..models.base import utcnow
from ..models.camp import Camp, CampDay
from ..models.incentive import CompensationPlan, PlanCode, CampSessionCompensation, CampDaySnapshot
from ..models.registration import Registration, RegistrationStatus
from ..models.user import User
from . import email_templates
from .email_service import notify

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

PLAN_FIELDS = (
    "pre_camp_stipend_amount",
    "on_site_stipend_amount",
    "enrollment_threshold",
    "enrollment_bonus_per_camper",
    "csat_required_score",
    "csat_bonus_amount",
    "budget_efficiency_rate",
    "guest_speaker_required_count",
    "guest_speaker_bonus_amount",
)

DEFAULT_PLANS: List[Dict[str, Any]] = [
    {
        "plan_code": PlanCode.HIGH, "name": "High Performance",
        "pre_camp_stipend_amount": Decimal("500"), "on_site_stipend_amount": Decimal("1500"),
        "enrollment_threshold": 40, "enrollment_bonus_per_camper": Decimal("25"),
        "csat_required_score": Decimal("4.5"), "csat_bonus_amount": Decimal("250"),
        "budget_efficiency_rate": Decimal("0.25"),
        "guest_speaker_required_count": 2, "guest_speaker_bonus_amount": Decimal("100"),
    },
    {
        "plan_code": PlanCode.MID, "name": "Standard",
        "pre_camp_stipend_amount": Decimal("400"), "on_site_stipend_amount": Decimal("1200"),
        "enrollment_threshold": 35, "enrollment_bonus_per_camper": Decimal("20"),
        "csat_required_score": Decimal("4.3"), "csat_bonus_amount": Decimal("200"),
        "budget_efficiency_rate": Decimal("0.20"),
        "guest_speaker_required_count": 2, "guest_speaker_bonus_amount": Decimal("75"),
    },
    {
        "plan_code": PlanCode.ENTRY, "name": "Entry",
        "pre_camp_stipend_amount": Decimal("300"), "on_site_stipend_amount": Decimal("900"),
        "enrollment_threshold": 30, "enrollment_bonus_per_camper": Decimal("15"),
        "csat_required_score": Decimal("4.0"), "csat_bonus_amount": Decimal("150"),
        "budget_efficiency_rate": Decimal("0.15"),
        "guest_speaker_required_count": 1, "guest_speaker_bonus_amount": Decimal("50"),
    },
    {
        "plan_code": PlanCode.FIXED, "name": "Fixed Stipend",
        "pre_camp_stipend_amount": Decimal("500"), "on_site_stipend_amount": Decimal("1500"),
    },
]


def _dec(value) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def compute_compensation(
    comp: CampSessionCompensation, enrolled: int, guest_speakers: int
) -> Dict[str, Decimal]:
    """Bonus arithmetic over the snapshotted plan parameters and session metrics"""
    pre = _dec(comp.pre_camp_stipend_amount) or ZERO
    on_site = _dec(comp.on_site_stipend_amount) or ZERO
    fixed = pre + on_site

    enrollment_bonus = ZERO
    threshold = comp.enrollment_threshold or 0
    per_camper = _dec(comp.enrollment_bonus_per_camper) or ZERO
    if enrolled > threshold and per_camper > 0:
        enrollment_bonus = (enrolled - threshold) * per_camper

    csat_bonus = ZERO
    required = _dec(comp.csat_required_score)
    score = _dec(comp.csat_avg_score)
    if required is not None and score is not None and score >= required:
        csat_bonus = _dec(comp.csat_bonus_amount) or ZERO

    budget_bonus = ZERO
    savings = ZERO
    preapproved = _dec(comp.budget_preapproved_total) or ZERO
    actual = _dec(comp.budget_actual_total) or ZERO
    rate = _dec(comp.budget_efficiency_rate) or ZERO
    if preapproved > 0:
        savings = max(preapproved - actual, ZERO)
        budget_bonus = savings * rate

    guest_bonus = ZERO
    guest_required = comp.guest_speaker_required_count or 0
    if guest_required > 0 and guest_speakers >= guest_required:
        guest_bonus = _dec(comp.guest_speaker_bonus_amount) or ZERO

    variable = enrollment_bonus + csat_bonus + budget_bonus + guest_bonus
    return {
        "budget_savings_amount": quantize_dollars(savings),
        "fixed_stipend_total": quantize_dollars(fixed),
        "enrollment_bonus_earned": quantize_dollars(enrollment_bonus),
        "csat_bonus_earned": quantize_dollars(csat_bonus),
        "budget_efficiency_bonus_earned": quantize_dollars(budget_bonus),
        "guest_speaker_bonus_earned": quantize_dollars(guest_bonus),
        "total_variable_bonus": quantize_dollars(variable),
        "total_compensation": quantize_dollars(fixed + variable),
    }


class IncentiveService:
    """Director compensation plans, daily snapshots and end-of-session payout"""

    @staticmethod
    async def list_active_plans(db: AsyncSession) -> List[CompensationPlan]:
        result = await db.execute(
            select(CompensationPlan).where(CompensationPlan.is_active.is_(True)).order_by(CompensationPlan.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_plan_by_code(db: AsyncSession, plan_code: PlanCode) -> Optional[CompensationPlan]:
        result = await db.execute(select(CompensationPlan).where(CompensationPlan.plan_code == plan_code))
        return result.scalar_one_or_none()

    @staticmethod
    async def seed_default_plans(db: AsyncSession) -> int:
        created = 0
        for plan in DEFAULT_PLANS:
            if await IncentiveService.get_plan_by_code(db, plan["plan_code"]):
                continue
            db.add(CompensationPlan(**plan, is_active=True))
            created += 1
        await db.flush()
        if created:
            logger.info(f"Seeded {created} compensation plan(s)")
        return created

    @staticmethod
    async def _get_compensation(db: AsyncSession, camp_id: str, staff_id: str) -> Optional[CampSessionCompensation]:
        result = await db.execute(
            select(CampSessionCompensation).where(
                and_(
                    CampSessionCompensation.camp_id == camp_id,
                    CampSessionCompensation.staff_profile_id == staff_id,
                )
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _get_staff_member(db: AsyncSession, staff_id: str, tenant_id: str) -> User:
        """Staff must belong to the camp's licensee; anyone else reads as missing."""
        staff = (await db.execute(
            select(User).where(and_(User.id == staff_id, User.tenant_id == tenant_id))
        )).scalar_one_or_none()
        if not staff:
            raise NotFoundError("Staff member not found")
        return staff

    @staticmethod
    async def attach_plan_to_session(
        db: AsyncSession, camp_id: str, staff_id: str, plan_code: PlanCode, tenant_id: Optional[str] = None
    ) -> CampSessionCompensation:
        plan = await IncentiveService.get_plan_by_code(db, plan_code)
        if not plan or not plan.is_active:
            raise NotFoundError(f"Compensation plan {PlanCode(plan_code).value} not found")
        stmt = select(Camp).where(Camp.id == camp_id)
        if tenant_id:
            stmt = stmt.where(Camp.tenant_id == tenant_id)
        camp = (await db.execute(stmt)).scalar_one_or_none()
        if not camp:
            raise NotFoundError("Camp not found")
        await IncentiveService._get_staff_member(db, staff_id, camp.tenant_id)

        comp = await IncentiveService._get_compensation(db, camp_id, staff_id)
        if comp and comp.is_finalized:
            raise BusinessRuleError("Compensation already finalized")
        if not comp:
            comp = CampSessionCompensation(tenant_id=camp.tenant_id, camp_id=camp_id, staff_profile_id=staff_id)
            db.add(comp)

        comp.plan_id = plan.id
        for field in PLAN_FIELDS:
            setattr(comp, field, getattr(plan, field))
        await db.flush()
        logger.info(f"Plan {plan.plan_code} attached to staff {staff_id} for camp {camp_id}")
        return comp

    @staticmethod
    async def capture_day_snapshot(
        db: AsyncSession,
        camp_day_id: str,
        staff_id: str,
        csat_score: Optional[Decimal] = None,
        guest_speakers: Optional[int] = None,
    ) -> CampDaySnapshot:
        day = (await db.execute(select(CampDay).where(CampDay.id == camp_day_id))).scalar_one_or_none()
        if not day:
            raise NotFoundError("Camp day not found")
        camp = await db.get(Camp, day.camp_id)
        await IncentiveService._get_staff_member(db, staff_id, camp.tenant_id)

        rows = (await db.execute(
            select(CampAttendance).where(CampAttendance.camp_day_id == camp_day_id)
        )).scalars().all()

        snapshot = (await db.execute(
            select(CampDaySnapshot).where(
                and_(CampDaySnapshot.camp_day_id == camp_day_id, CampDaySnapshot.staff_profile_id == staff_id)
            )
        )).scalar_one_or_none()
        if not snapshot:
            snapshot = CampDaySnapshot(camp_day_id=camp_day_id, camp_id=day.camp_id, staff_profile_id=staff_id)
            db.add(snapshot)

        snapshot.enrolled_count = len(rows)
        snapshot.checked_in_count = sum(1 for r in rows if r.status == AttendanceStatus.CHECKED_IN)
        snapshot.checked_out_count = sum(1 for r in rows if r.status == AttendanceStatus.CHECKED_OUT)
        snapshot.no_show_count = sum(
            1 for r in rows if r.check_in_time is None and r.status == AttendanceStatus.ABSENT
        )
        if csat_score is not None:
            snapshot.csat_score = csat_score
        if guest_speakers is not None:
            snapshot.guest_speakers_count = guest_speakers
        snapshot.captured_at = utcnow()
        await db.flush()
        return snapshot

    @staticmethod
    async def update_session_metrics(
        db: AsyncSession,
        compensation_id: str,
        *,
        csat_avg_score: Optional[Decimal] = None,
        budget_preapproved_total: Optional[Decimal] = None,
        budget_actual_total: Optional[Decimal] = None,
        guest_speaker_count: Optional[int] = None,
        tenant_id: Optional[str] = None,
    ) -> CampSessionCompensation:
        stmt = select(CampSessionCompensation).where(CampSessionCompensation.id == compensation_id)
        if tenant_id:
            stmt = stmt.where(CampSessionCompensation.tenant_id == tenant_id)
        comp = (await db.execute(stmt)).scalar_one_or_none()
        if not comp:
            raise NotFoundError("Compensation record not found")
        if comp.is_finalized:
            raise BusinessRuleError("Compensation already finalized")

        if csat_avg_score is not None:
            comp.csat_avg_score = csat_avg_score
        if budget_preapproved_total is not None:
            comp.budget_preapproved_total = budget_preapproved_total
        if budget_actual_total is not None:
            comp.budget_actual_total = budget_actual_total
        if guest_speaker_count is not None:
            comp.guest_speaker_count = guest_speaker_count
        if comp.budget_preapproved_total is not None and comp.budget_actual_total is not None:
            comp.budget_savings_amount = max(
                _dec(comp.budget_preapproved_total) - _dec(comp.budget_actual_total), ZERO
            )
        await db.flush()
        return comp

    @staticmethod
    async def calculate_session_compensation(
        db: AsyncSession, camp_id: str, staff_id: str, finalized_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Compute and finalize a staff member's compensation for a camp"""
        comp = await IncentiveService._get_compensation(db, camp_id, staff_id)
        if not comp:
            raise NotFoundError("No compensation record found")
        if comp.is_finalized:
            raise BusinessRuleError("Compensation already finalized")

        enrolled = (await db.execute(
            select(func.count(Registration.id)).where(
                and_(
                    Registration.camp_id == camp_id,
                    Registration.status.in_([RegistrationStatus.CONFIRMED, RegistrationStatus.PENDING]),
                )
            )
        )).scalar() or 0

        guest_speakers = comp.guest_speaker_count
        if guest_speakers is None:
            guest_speakers = (await db.execute(
                select(func.coalesce(func.sum(CampDaySnapshot.guest_speakers_count), 0)).where(
                    and_(CampDaySnapshot.camp_id == camp_id, CampDaySnapshot.staff_profile_id == staff_id)
                )
            )).scalar() or 0

        breakdown = compute_compensation(comp, enrolled, guest_speakers)
        comp.total_enrolled_campers = enrolled
        comp.guest_speaker_count = guest_speakers
        for key, value in breakdown.items():
            setattr(comp, key, value)
        comp.is_finalized = True
        comp.finalized_at = utcnow()
        comp.finalized_by = finalized_by
        await db.flush()
        logger.info(f"Compensation finalized for staff {staff_id} camp {camp_id}: {breakdown['total_compensation']}")

        plan = (await db.execute(select(CompensationPlan).where(CompensationPlan.id == comp.plan_id))).scalar_one()
        result = {
            "compensation_id": comp.id,
            "plan_code": plan.plan_code,
            "total_enrolled_campers": enrolled,
            **{k: v for k, v in breakdown.items() if k != "budget_savings_amount"},
        }

        staff = (await db.execute(select(User).where(User.id == staff_id))).scalar_one_or_none()
        camp = (await db.execute(select(Camp).where(Camp.id == camp_id))).scalar_one_or_none()
        if staff and camp:
            await notify(
                db,
                tenant_id=comp.tenant_id,
                to_email=staff.email,
                template=email_templates.compensation_finalized(
                    staff_name=staff.first_name, camp_name=camp.name, breakdown=result
                ),
            )
        return result

    @staticmethod
    async def get_staff_compensation_summary(db: AsyncSession, staff_id: str) -> Dict[str, Any]:
        result = await db.execute(
            select(CampSessionCompensation)
            .where(CampSessionCompensation.staff_profile_id == staff_id)
            .order_by(CampSessionCompensation.created_at.desc())
        )
        sessions = list(result.scalars().all())
        finalized = [s for s in sessions if s.is_finalized]
        return {
            "staff_profile_id": staff_id,
            "sessions": sessions,
            "total_sessions": len(sessions),
            "finalized_sessions": len(finalized),
            "pending_sessions": len(sessions) - len(finalized),
            "total_earned": quantize_dollars(sum((_dec(s.total_compensation) or ZERO) for s in finalized)),
        }

    @staticmethod
    async def get_camp_compensation(db: AsyncSession, camp_id: str, tenant_id: Optional[str] = None) -> List[CampSessionCompensation]:
        conditions = [CampSessionCompensation.camp_id == camp_id]
        if tenant_id:
            conditions.append(CampSessionCompensation.tenant_id == tenant_id)
        result = await db.execute(select(CampSessionCompensation).where(and_(*conditions)))
        return list(result.scalars().all())
