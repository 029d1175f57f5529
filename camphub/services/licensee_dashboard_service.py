import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import BusinessRuleError
from ..core.money import quantize_dollars, ratio_percent, round_half_up
from ..models.base import utcnow
from ..models.camp import Camp, CampStatus
from ..models.incentive import CampSessionCompensation
from ..models.registration import Registration, RegistrationStatus
from ..models.royalty import RoyaltyInvoice
from ..models.staff import CampStaffAssignment, StaffAssignmentRequest, StaffRequestStatus, StaffRole
from ..models.user import User, UserRole
from .licensee_service import LicenseeService
from .royalty_service import RoyaltyService, default_season

logger = logging.getLogger(__name__)

PERIODS = ("season", "ytd", "last_30_days")
HELD_STATUSES = [CampStatus.COMPLETED, CampStatus.IN_PROGRESS]
UPCOMING_STATUSES = [
    CampStatus.DRAFT, CampStatus.PUBLISHED, CampStatus.REGISTRATION_OPEN, CampStatus.REGISTRATION_CLOSED
]
CSAT_WARNING_THRESHOLD = 4.2
CAMP_LIST_LIMIT = 5

_DISPLAY_STATUS = {
    CampStatus.COMPLETED: "completed",
    CampStatus.IN_PROGRESS: "running",
    CampStatus.PUBLISHED: "registration",
    CampStatus.REGISTRATION_OPEN: "registration",
    CampStatus.REGISTRATION_CLOSED: "registration",
}


def period_dates(period: str, today: date) -> Tuple[date, date]:
    if period == "last_30_days":
        return today - timedelta(days=30), today
    if period == "ytd":
        return date(today.year, 1, 1), today
    return default_season(today)


def _delta_percent(current: float, previous: float) -> Optional[float]:
    return ratio_percent(current - previous, previous, places=1) if previous else None


class LicenseeDashboardService:
    """The licensee owner's home screen, built from camps, registrations, staff and royalties."""

    @staticmethod
    async def _sales_window(db: AsyncSession, tenant_id: str, start: date, end: date, end_inclusive: bool = True):
        end_clause = Camp.start_date <= end if end_inclusive else Camp.start_date < end
        camps = (await db.execute(
            select(Camp.id, Camp.status).where(
                and_(Camp.tenant_id == tenant_id, Camp.start_date >= start, end_clause)
            )
        )).all()
        camp_ids = [camp_id for camp_id, _ in camps]
        count, revenue, addons = (await db.execute(
            select(
                func.count(Registration.id),
                func.coalesce(func.sum(Registration.total_price_cents), 0),
                func.coalesce(func.sum(Registration.addons_total_cents), 0),
            ).where(and_(Registration.camp_id.in_(camp_ids), Registration.status == RegistrationStatus.CONFIRMED))
        )).one()
        held = sum(1 for _, status in camps if status in HELD_STATUSES)
        return held, count, int(revenue), int(addons)

    @staticmethod
    async def get_territory(db: AsyncSession, tenant_id: str) -> Dict[str, Any]:
        tenant = await LicenseeService.get_licensee(db, tenant_id)
        territory = ", ".join(part for part in (tenant.city, tenant.state) if part)
        return {
            "id": tenant.id,
            "name": tenant.name,
            "territory_name": territory or "Unassigned Territory",
            "primary_contact_email": tenant.contact_email,
            "primary_contact_phone": tenant.contact_phone,
            "license_status": tenant.license_status.value,
            "license_start_date": tenant.license_start_date,
            "license_end_date": tenant.license_end_date,
            "created_at": tenant.created_at,
        }

    @staticmethod
    async def get_sales_kpis(
        db: AsyncSession, tenant_id: str, period: str = "season", today: Optional[date] = None
    ) -> Dict[str, Any]:
        """Confirmed sales for camps starting in the period, against the equal-length period before it."""
        if period not in PERIODS:
            raise BusinessRuleError(f"Unknown period '{period}'")
        today = today or utcnow().date()
        start, end = period_dates(period, today)
        previous_start = start - (end - start)

        held, registrations, revenue, addons = await LicenseeDashboardService._sales_window(db, tenant_id, start, end)
        prev_held, prev_registrations, prev_revenue, _ = await LicenseeDashboardService._sales_window(
            db, tenant_id, previous_start, start, end_inclusive=False
        )
        avg_enrollment = round_half_up(registrations / held, 1) if held else 0
        prev_avg_enrollment = prev_registrations / prev_held if prev_held else 0

        return {
            "period": period,
            "period_start": start,
            "period_end": end,
            "total_gross_revenue_cents": revenue,
            "revenue_delta_percent": _delta_percent(revenue, prev_revenue),
            "sessions_held": held,
            "sessions_delta": held - prev_held if prev_held else None,
            "total_registrations": registrations,
            "avg_enrollment_per_session": avg_enrollment,
            "enrollment_delta_percent": _delta_percent(registrations / held if held else 0, prev_avg_enrollment),
            "upsell_revenue_cents": addons,
        }

    @staticmethod
    async def _closeout_backlog(db: AsyncSession, tenant_id: str, start: date, end: date) -> int:
        """Completed camps in the window with no finalized compensation yet."""
        completed = (await db.execute(
            select(Camp.id).where(
                and_(
                    Camp.tenant_id == tenant_id,
                    Camp.status == CampStatus.COMPLETED,
                    Camp.start_date >= start,
                    Camp.start_date <= end,
                )
            )
        )).scalars().all()
        closed = set((await db.execute(
            select(CampSessionCompensation.camp_id).where(
                and_(CampSessionCompensation.camp_id.in_(completed), CampSessionCompensation.is_finalized.is_(True))
            )
        )).scalars().all())
        return sum(1 for camp_id in completed if camp_id not in closed)

    @staticmethod
    async def get_financial_kpis(db: AsyncSession, tenant_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        start, end = default_season(today or utcnow().date())
        summary = await RoyaltyService.get_licensee_royalty_summary(db, tenant_id, start, end)
        totals = summary["totals"]
        campers = sum(row["camper_count"] for row in summary["camps"])
        return {
            "total_royalty_due_cents": totals["total_royalty_due_cents"],
            "total_royalty_paid_cents": totals["total_royalty_paid_cents"],
            "total_outstanding_cents": totals["total_outstanding_cents"],
            "royalty_compliance_rate": totals["compliance_rate"],
            "sessions_needing_closeout": await LicenseeDashboardService._closeout_backlog(db, tenant_id, start, end),
            "average_revenue_per_camper_cents": (
                round_half_up(totals["total_gross_revenue_cents"] / campers) if campers else 0
            ),
        }

    @staticmethod
    async def get_quality_kpis(db: AsyncSession, tenant_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        start, end = default_season(today or utcnow().date())
        camp_filter = and_(
            Camp.tenant_id == tenant_id,
            Camp.start_date >= start,
            Camp.start_date <= end,
            Camp.status.in_(HELD_STATUSES),
        )
        measured = (await db.execute(select(func.count(Camp.id)).where(camp_filter))).scalar() or 0
        scores = (await db.execute(
            select(CampSessionCompensation.csat_avg_score)
            .join(Camp, Camp.id == CampSessionCompensation.camp_id)
            .where(and_(camp_filter, CampSessionCompensation.csat_avg_score.is_not(None)))
        )).scalars().all()

        avg_csat = round_half_up(sum(float(s) for s in scores) / len(scores), 2) if scores else None
        warnings = []
        if avg_csat is not None and avg_csat < CSAT_WARNING_THRESHOLD:
            warnings.append(f"CSAT score below {CSAT_WARNING_THRESHOLD} threshold")
        return {
            "avg_csat_score": avg_csat,
            "csat_responses": len(scores),
            "total_sessions_measured": measured,
            "warnings": warnings,
        }

    @staticmethod
    async def list_camps(
        db: AsyncSession, tenant_id: str, which: str, today: Optional[date] = None, limit: int = CAMP_LIST_LIMIT
    ) -> List[Dict[str, Any]]:
        """``active`` (running now), ``upcoming`` (not started yet) or ``completed`` camps, soonest first."""
        today = today or utcnow().date()
        conditions = [Camp.tenant_id == tenant_id]
        if which == "active":
            conditions.append(Camp.status == CampStatus.IN_PROGRESS)
        elif which == "upcoming":
            conditions.extend([Camp.start_date > today, Camp.status.in_(UPCOMING_STATUSES)])
        elif which == "completed":
            conditions.append(Camp.status == CampStatus.COMPLETED)
        else:
            raise BusinessRuleError(f"Unknown camp list '{which}'")

        camps = list((await db.execute(
            select(Camp).where(and_(*conditions)).order_by(Camp.start_date.asc()).limit(limit)
        )).scalars().all())
        camp_ids = [c.id for c in camps]

        enrolled = dict((await db.execute(
            select(Registration.camp_id, func.count(Registration.id))
            .where(and_(Registration.camp_id.in_(camp_ids), Registration.status == RegistrationStatus.CONFIRMED))
            .group_by(Registration.camp_id)
        )).all())
        directors: Dict[str, str] = {}
        for camp_id, user in (await db.execute(
            select(CampStaffAssignment.camp_id, User)
            .join(User, User.id == CampStaffAssignment.user_id)
            .where(and_(CampStaffAssignment.camp_id.in_(camp_ids), CampStaffAssignment.role == StaffRole.DIRECTOR))
            .order_by(CampStaffAssignment.is_lead.desc(), CampStaffAssignment.created_at)
        )).all():
            directors.setdefault(camp_id, user.full_name)
        invoices: Dict[str, RoyaltyInvoice] = {}
        for invoice in (await db.execute(
            select(RoyaltyInvoice).where(RoyaltyInvoice.camp_id.in_(camp_ids)).order_by(RoyaltyInvoice.created_at.desc())
        )).scalars().all():
            invoices.setdefault(invoice.camp_id, invoice)

        summaries = []
        for camp in camps:
            royalty_status = None
            if camp.status == CampStatus.COMPLETED:
                invoice = invoices.get(camp.id)
                royalty_status = invoice.status.value if invoice else "not_generated"
            summaries.append({
                "id": camp.id,
                "name": camp.name,
                "slug": camp.slug,
                "start_date": camp.start_date,
                "end_date": camp.end_date,
                "enrolled_count": enrolled.get(camp.id, 0),
                "capacity": camp.capacity,
                "status": _DISPLAY_STATUS.get(camp.status, "planning"),
                "has_director": camp.id in directors,
                "director_name": directors.get(camp.id),
                "royalty_status": royalty_status,
            })
        return summaries

    @staticmethod
    async def get_staff_summary(db: AsyncSession, tenant_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        start, end = default_season(today or utcnow().date())
        staff = (await db.execute(
            select(User.id, User.role).where(
                and_(
                    User.tenant_id == tenant_id,
                    User.is_active.is_(True),
                    User.role.in_([UserRole.DIRECTOR, UserRole.COACH, UserRole.CIT_VOLUNTEER]),
                )
            )
        )).all()
        working = set((await db.execute(
            select(CampStaffAssignment.user_id)
            .join(Camp, Camp.id == CampStaffAssignment.camp_id)
            .where(and_(Camp.tenant_id == tenant_id, Camp.start_date >= start, Camp.start_date <= end))
        )).scalars().all())

        summary = {key: {"count": 0, "active_this_season": 0} for key in ("directors", "coaches", "cits")}
        keys = {UserRole.DIRECTOR: "directors", UserRole.COACH: "coaches", UserRole.CIT_VOLUNTEER: "cits"}
        for user_id, role in staff:
            bucket = summary[keys[UserRole(role)]]
            bucket["count"] += 1
            if user_id in working:
                bucket["active_this_season"] += 1
        summary["total_staff"] = len(staff)
        return summary

    @staticmethod
    async def get_tasks_and_alerts(db: AsyncSession, tenant_id: str, today: Optional[date] = None) -> Dict[str, int]:
        start, end = default_season(today or utcnow().date())
        closeout = await LicenseeDashboardService._closeout_backlog(db, tenant_id, start, end)
        to_finalize = (await db.execute(
            select(func.count(CampSessionCompensation.id))
            .join(Camp, Camp.id == CampSessionCompensation.camp_id)
            .where(
                and_(
                    Camp.tenant_id == tenant_id,
                    Camp.status == CampStatus.COMPLETED,
                    CampSessionCompensation.is_finalized.is_(False),
                )
            )
        )).scalar() or 0
        pending_requests = (await db.execute(
            select(func.count(StaffAssignmentRequest.id))
            .join(Camp, Camp.id == StaffAssignmentRequest.camp_id)
            .where(and_(Camp.tenant_id == tenant_id, StaffAssignmentRequest.status == StaffRequestStatus.PENDING))
        )).scalar() or 0
        return {
            "sessions_needing_closeout": closeout,
            "incentives_to_finalize": to_finalize,
            "staff_requests_pending": pending_requests,
            "total_alerts": closeout + to_finalize + pending_requests,
        }

    @staticmethod
    async def get_incentive_overview(db: AsyncSession, tenant_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        start, end = default_season(today or utcnow().date())
        compensations = (await db.execute(
            select(CampSessionCompensation)
            .join(Camp, Camp.id == CampSessionCompensation.camp_id)
            .where(and_(Camp.tenant_id == tenant_id, Camp.start_date >= start, Camp.start_date <= end))
        )).scalars().all()

        finalized = pending = 0
        for comp in compensations:
            total = (comp.fixed_stipend_total or 0) + (comp.total_variable_bonus or 0)
            if comp.is_finalized:
                finalized += total
            else:
                pending += total
        sessions = len(compensations)
        return {
            "total_finalized": quantize_dollars(finalized),
            "total_pending": quantize_dollars(pending),
            "staff_with_compensation": len({c.staff_profile_id for c in compensations}),
            "avg_compensation_per_session": quantize_dollars((finalized + pending) / sessions) if sessions else quantize_dollars(0),
        }

    @staticmethod
    async def get_dashboard(
        db: AsyncSession, tenant_id: str, period: str = "season", today: Optional[date] = None
    ) -> Dict[str, Any]:
        today = today or utcnow().date()
        territory = await LicenseeDashboardService.get_territory(db, tenant_id)
        try:
            dashboard = {
                "territory": territory,
                "sales_kpis": await LicenseeDashboardService.get_sales_kpis(db, tenant_id, period, today),
                "financial_kpis": await LicenseeDashboardService.get_financial_kpis(db, tenant_id, today),
                "quality_kpis": await LicenseeDashboardService.get_quality_kpis(db, tenant_id, today),
                "active_camps": await LicenseeDashboardService.list_camps(db, tenant_id, "active", today),
                "upcoming_camps": await LicenseeDashboardService.list_camps(db, tenant_id, "upcoming", today),
                "staff_summary": await LicenseeDashboardService.get_staff_summary(db, tenant_id, today),
                "tasks_alerts": await LicenseeDashboardService.get_tasks_and_alerts(db, tenant_id, today),
                "incentive_overview": await LicenseeDashboardService.get_incentive_overview(db, tenant_id, today),
            }
        except BusinessRuleError:
            raise
        except Exception as e:
            logger.error(f"Failed to build licensee dashboard for {tenant_id}: {e}")
            raise
        return dashboard
