import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, and_, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.money import percent_of, ratio_percent
from ..models.base import utcnow
from ..models.camp import Camp, CampStatus
from ..models.registration import Registration, RegistrationStatus, PaymentStatus, Athlete
from ..models.tenant import Tenant, LicenseStatus

logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 30
UPCOMING_STATUSES = [CampStatus.PUBLISHED, CampStatus.REGISTRATION_OPEN, CampStatus.REGISTRATION_CLOSED]
REVENUE_PAYMENT_STATUSES = [PaymentStatus.PAID, PaymentStatus.PARTIAL, PaymentStatus.REFUNDED]


def default_range(start: Optional[date] = None, end: Optional[date] = None) -> Tuple[date, date]:
    end = end or utcnow().date()
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS)
    return start, end


def _bounds(start: date, end: date) -> Tuple[datetime, datetime]:
    """Inclusive date range as a half-open datetime window."""
    return datetime.combine(start, datetime.min.time()), datetime.combine(end + timedelta(days=1), datetime.min.time())


def relative_time(then: datetime, now: datetime) -> str:
    seconds = (now - then).total_seconds()
    minutes = int(seconds // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} min ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = hours // 24
    if days < 7:
        return f"{days} day{'s' if days != 1 else ''} ago"
    return f"{then.strftime('%b')} {then.day}"


def change_percent(current: float, previous: float) -> float:
    if previous:
        return ratio_percent(current - previous, previous, places=1)
    return 100 if current > 0 else 0


def revenue_share(gross_cents: int) -> Dict[str, int]:
    hq = percent_of(gross_cents, settings.HQ_REVENUE_SHARE_PERCENT)
    return {"gross": gross_cents, "hq": hq, "licensee": gross_cents - hq}


def processing_fees(gross_cents: int, transactions: int) -> int:
    return percent_of(gross_cents, settings.STRIPE_FEE_PERCENT) + settings.STRIPE_FEE_FIXED_CENTS * transactions


class AdminDashboardService:
    """Cross-tenant metrics for HQ; none of these queries are tenant scoped."""

    @staticmethod
    async def _registration_metrics(db: AsyncSession, start: date, end: date) -> Dict[str, int]:
        window_start, window_end = _bounds(start, end)
        row = (await db.execute(
            select(
                func.count(Registration.id),
                func.coalesce(func.sum(Registration.base_price_cents + Registration.addons_total_cents), 0),
                func.coalesce(func.sum(Registration.total_price_cents), 0),
                func.coalesce(func.sum(Registration.discount_cents + Registration.promo_discount_cents), 0),
                func.coalesce(func.sum(Registration.tax_cents), 0),
                func.coalesce(func.sum(Registration.addons_total_cents), 0),
                func.count(func.distinct(Registration.athlete_id)),
            ).where(
                and_(
                    Registration.status == RegistrationStatus.CONFIRMED,
                    Registration.created_at >= window_start,
                    Registration.created_at < window_end,
                )
            )
        )).one()
        return {
            "registrations": row[0],
            "gross_revenue": int(row[1]),
            "net_revenue": int(row[2]),
            "discounts": int(row[3]),
            "tax_collected": int(row[4]),
            "addon_revenue": int(row[5]),
            "unique_athletes": row[6],
        }

    @staticmethod
    async def get_overview(db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None) -> Dict[str, Any]:
        start, end = default_range(start, end)
        today = utcnow().date()
        try:
            tenant_counts = dict((await db.execute(
                select(Tenant.license_status, func.count(Tenant.id)).group_by(Tenant.license_status)
            )).all())
            metrics = await AdminDashboardService._registration_metrics(db, start, end)

            active_camp_filter = and_(
                Camp.start_date <= today,
                Camp.end_date >= today,
                Camp.status.not_in([CampStatus.DRAFT, CampStatus.CANCELLED]),
            )
            active_camps = (await db.execute(select(func.count(Camp.id)).where(active_camp_filter))).scalar() or 0
            today_campers = (await db.execute(
                select(func.count(Registration.id))
                .join(Camp, Camp.id == Registration.camp_id)
                .where(and_(active_camp_filter, Registration.status == RegistrationStatus.CONFIRMED))
            )).scalar() or 0

            month_metrics = await AdminDashboardService._registration_metrics(db, today.replace(day=1), today)
        except Exception as e:
            logger.error(f"Failed to build HQ overview: {e}")
            raise

        return {
            "period": {"start": start, "end": end},
            "active_licensees": tenant_counts.get(LicenseStatus.ACTIVE, 0),
            "total_licensees": sum(tenant_counts.values()),
            **metrics,
            "active_camps": active_camps,
            "today_campers": today_campers,
            "revenue_share_this_month": revenue_share(month_metrics["gross_revenue"]),
        }

    @staticmethod
    async def get_licensee_performance(
        db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        start, end = default_range(start, end)
        window_start, window_end = _bounds(start, end)
        today = utcnow().date()

        tenants = (await db.execute(
            select(Tenant).where(Tenant.license_status.in_([LicenseStatus.ACTIVE, LicenseStatus.SUSPENDED]))
        )).scalars().all()

        registration_rows = await db.execute(
            select(
                Registration.tenant_id,
                func.count(Registration.id),
                func.coalesce(func.sum(Registration.total_price_cents), 0),
                func.count(func.distinct(Registration.athlete_id)),
            )
            .where(
                and_(
                    Registration.status == RegistrationStatus.CONFIRMED,
                    Registration.created_at >= window_start,
                    Registration.created_at < window_end,
                )
            )
            .group_by(Registration.tenant_id)
        )
        by_tenant = {row[0]: row[1:] for row in registration_rows.all()}

        upcoming_rows = await db.execute(
            select(Camp.tenant_id, func.count(Camp.id))
            .where(and_(Camp.status.in_(UPCOMING_STATUSES), Camp.start_date >= today))
            .group_by(Camp.tenant_id)
        )
        upcoming = dict(upcoming_rows.all())

        performance = []
        for tenant in tenants:
            registrations, revenue, athletes = by_tenant.get(tenant.id, (0, 0, 0))
            performance.append({
                "tenant_id": tenant.id,
                "name": tenant.name,
                "slug": tenant.slug,
                "license_status": tenant.license_status.value,
                "registrations": registrations,
                "revenue": int(revenue),
                "unique_athletes": athletes,
                "upcoming_camps": upcoming.get(tenant.id, 0),
            })
        performance.sort(key=lambda p: p["revenue"], reverse=True)
        return performance

    @staticmethod
    async def get_recent_activity(db: AsyncSession, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        now = now or utcnow()
        activity = []

        registrations = await db.execute(
            select(Registration, Athlete, Camp)
            .join(Athlete, Athlete.id == Registration.athlete_id)
            .join(Camp, Camp.id == Registration.camp_id)
            .where(Registration.status != RegistrationStatus.CANCELLED)
            .order_by(desc(Registration.created_at))
            .limit(5)
        )
        for registration, athlete, camp in registrations.all():
            activity.append({
                "type": "registration",
                "title": "New registration",
                "description": f"{athlete.full_name} registered for {camp.name}",
                "tenant_id": registration.tenant_id,
                "timestamp": registration.created_at,
            })

        tenants = await db.execute(select(Tenant).order_by(desc(Tenant.created_at)).limit(3))
        for tenant in tenants.scalars().all():
            activity.append({
                "type": "licensee",
                "title": "New licensee",
                "description": f"{tenant.name} joined",
                "tenant_id": tenant.id,
                "timestamp": tenant.created_at,
            })

        camps = await db.execute(select(Camp).order_by(desc(Camp.created_at)).limit(3))
        for camp in camps.scalars().all():
            activity.append({
                "type": "camp",
                "title": "Camp created",
                "description": f"{camp.name} scheduled for {camp.start_date.isoformat()}",
                "tenant_id": camp.tenant_id,
                "timestamp": camp.created_at,
            })

        activity.sort(key=lambda item: item["timestamp"], reverse=True)
        recent = activity[:5]
        for item in recent:
            item["relative_time"] = relative_time(item["timestamp"], now)
        return recent

    @staticmethod
    async def get_registration_details(db: AsyncSession, limit: int = 20) -> List[Dict[str, Any]]:
        rows = await db.execute(
            select(Registration, Athlete, Camp, Tenant)
            .join(Athlete, Athlete.id == Registration.athlete_id)
            .join(Camp, Camp.id == Registration.camp_id)
            .join(Tenant, Tenant.id == Registration.tenant_id)
            .where(Registration.status == RegistrationStatus.CONFIRMED)
            .order_by(desc(Registration.created_at))
            .limit(limit)
        )
        details = []
        for registration, athlete, camp, tenant in rows.all():
            charge = max(
                0,
                registration.base_price_cents
                - (registration.discount_cents or 0)
                - (registration.promo_discount_cents or 0),
            )
            details.append({
                "registration_id": registration.id,
                "athlete_name": athlete.full_name,
                "camp_name": camp.name,
                "licensee_name": tenant.name,
                "registration_charge": charge,
                "addons": registration.addons_total_cents or 0,
                "tax": registration.tax_cents or 0,
                "total": registration.total_price_cents,
                "payment_status": registration.payment_status.value,
                "created_at": registration.created_at,
            })
        return details

    @staticmethod
    async def _revenue_since(db: AsyncSession, since: Optional[datetime]) -> Dict[str, Any]:
        conditions = [
            Registration.payment_status.in_(REVENUE_PAYMENT_STATUSES),
            Registration.status != RegistrationStatus.CANCELLED,
        ]
        if since is not None:
            conditions.append(Registration.created_at >= since)
        row = (await db.execute(
            select(
                func.coalesce(func.sum(Registration.total_price_cents), 0),
                func.coalesce(func.sum(Registration.refund_amount_cents), 0),
                func.count(Registration.id),
            ).where(and_(*conditions))
        )).one()
        gross, refunded, transactions = int(row[0]), int(row[1]), row[2]
        fees = processing_fees(gross, transactions)
        return {
            "gross": gross,
            "refunded": refunded,
            "fees": fees,
            "net": gross - refunded - fees,
            "transactions": transactions,
        }

    @staticmethod
    async def get_total_revenue(db: AsyncSession) -> Dict[str, Any]:
        now = utcnow()
        periods = {
            "all_time": None,
            "last_30_days": now - timedelta(days=30),
            "last_90_days": now - timedelta(days=90),
            "year_to_date": datetime(now.year, 1, 1),
        }
        result = {}
        for name, since in periods.items():
            result[name] = await AdminDashboardService._revenue_since(db, since)
        result["source"] = "database"
        return result

    @staticmethod
    async def get_comparison(db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None) -> Dict[str, Any]:
        start, end = default_range(start, end)
        length = end - start
        previous_end = start - timedelta(days=1)
        previous_start = previous_end - length

        current = await AdminDashboardService._registration_metrics(db, start, end)
        previous = await AdminDashboardService._registration_metrics(db, previous_start, previous_end)

        metrics = {}
        for key, source in (("registrations", "registrations"), ("revenue", "net_revenue"), ("unique_athletes", "unique_athletes")):
            metrics[key] = {
                "current": current[source],
                "previous": previous[source],
                "change_percent": change_percent(current[source], previous[source]),
            }
        return {
            "current_period": {"start": start, "end": end},
            "previous_period": {"start": previous_start, "end": previous_end},
            "metrics": metrics,
        }
