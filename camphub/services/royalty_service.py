import logging
import re
import time
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from ..core.money import dollars_to_cents, ratio_percent, round_cents
from ..models.base import utcnow
from ..models.camp import Camp, CampStatus
from ..models.registration import Registration, RegistrationAddon, RegistrationStatus
from ..models.royalty import RoyaltyInvoice, RoyaltyLineItem, RoyaltyInvoiceStatus, RoyaltyPeriodType
from ..models.staff import CampStaffAssignment, StaffRole
from ..models.tenant import Tenant
from ..models.user import User
from . import email_templates, notification_service

logger = logging.getLogger(__name__)

S = RoyaltyInvoiceStatus

ALLOWED_TRANSITIONS = {
    S.PENDING: {S.INVOICED, S.WAIVED},
    S.INVOICED: {S.PAID, S.OVERDUE, S.DISPUTED, S.WAIVED},
    S.PAID: set(),
    S.OVERDUE: {S.PAID, S.DISPUTED, S.WAIVED},
    S.DISPUTED: {S.INVOICED, S.PAID, S.WAIVED},
    S.WAIVED: set(),
}

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_invoice_number(tenant_slug: Optional[str], camp_id: Optional[str]) -> str:
    timestamp = to_base36(int(time.time() * 1000)).upper()
    tenant_code = re.sub(r"[^A-Z0-9]", "", (tenant_slug or "unknown")[:6].upper())
    camp_code = camp_id[:4].upper() if camp_id else "GEN"
    return f"ROY-{tenant_code}-{camp_code}-{timestamp}"


def royalty_rate_bps(tenant: Optional[Tenant]) -> int:
    if tenant and tenant.royalty_rate:
        return round_cents(Decimal(str(tenant.royalty_rate)) * 10000)
    return settings.DEFAULT_ROYALTY_RATE_BPS


def can_transition(current: RoyaltyInvoiceStatus, new: RoyaltyInvoiceStatus) -> bool:
    return current == new or new in ALLOWED_TRANSITIONS.get(current, set())


def _stamp(note: str) -> str:
    return f"[{utcnow().isoformat()}] {note}"


def default_season(today: date) -> Tuple[date, date]:
    return date(today.year, 3, 1), date(today.year, 9, 30)


class RoyaltyService:
    """Royalty invoicing from licensees to HQ"""

    @staticmethod
    async def get_invoice(db: AsyncSession, invoice_id: str, tenant_id: Optional[str] = None) -> RoyaltyInvoice:
        stmt = (
            select(RoyaltyInvoice)
            .options(selectinload(RoyaltyInvoice.line_items))
            .where(RoyaltyInvoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        if tenant_id:
            stmt = stmt.where(RoyaltyInvoice.tenant_id == tenant_id)
        invoice = (await db.execute(stmt)).scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Royalty invoice not found")
        return invoice

    @staticmethod
    async def generate_royalty_invoice_for_session(
        db: AsyncSession,
        camp_id: str,
        generated_by: Optional[str] = None,
        due_in_days: int = 30,
    ) -> RoyaltyInvoice:
        """Invoice the royalty owed on a camp session's confirmed revenue"""
        camp = (await db.execute(select(Camp).where(Camp.id == camp_id))).scalar_one_or_none()
        if not camp:
            raise NotFoundError("Camp not found")
        tenant = (await db.execute(select(Tenant).where(Tenant.id == camp.tenant_id))).scalar_one_or_none()

        existing = (await db.execute(
            select(RoyaltyInvoice)
            .options(selectinload(RoyaltyInvoice.line_items))
            .where(
                and_(
                    RoyaltyInvoice.camp_id == camp.id,
                    RoyaltyInvoice.status.not_in([S.PAID, S.WAIVED]),
                )
            )
            .order_by(RoyaltyInvoice.created_at.desc())
        )).scalars().first()
        if existing:
            if existing.status == S.PENDING:
                await db.delete(existing)
                await db.flush()
            else:
                raise ConflictError("An active royalty invoice already exists for this camp")

        result = await db.execute(
            select(Registration)
            .options(
                selectinload(Registration.athlete),
                selectinload(Registration.addons).selectinload(RegistrationAddon.addon),
            )
            .where(and_(Registration.camp_id == camp.id, Registration.status == RegistrationStatus.CONFIRMED))
        )
        registrations = list(result.scalars().all())

        registration_revenue = 0
        addon_revenue = 0
        line_items: List[RoyaltyLineItem] = []
        for reg in registrations:
            athlete_name = reg.athlete.full_name if reg.athlete else "Camper"
            reg_amount = reg.total_price_cents - reg.addons_total_cents
            registration_revenue += reg_amount
            line_items.append(RoyaltyLineItem(
                description=f"Registration: {athlete_name}",
                category="registration",
                quantity=1,
                unit_amount_cents=reg_amount,
                total_amount_cents=reg_amount,
                royalty_applies=True,
            ))
            for ra in reg.addons:
                addon_revenue += ra.price_cents
                quantity = ra.quantity or 1
                line_items.append(RoyaltyLineItem(
                    description=f"{ra.addon.name if ra.addon else 'Add-on'} - {athlete_name}",
                    category="addon",
                    quantity=quantity,
                    unit_amount_cents=round_cents(ra.price_cents / quantity),
                    total_amount_cents=ra.price_cents,
                    royalty_applies=True,
                ))

        gross = registration_revenue + addon_revenue
        refunds = 0
        net = gross - refunds
        bps = royalty_rate_bps(tenant)
        royalty_due = round_cents(Decimal(net) * bps / 10000)
        now = utcnow()

        invoice = RoyaltyInvoice(
            tenant_id=camp.tenant_id,
            camp_id=camp.id,
            invoice_number=generate_invoice_number(tenant.slug if tenant else None, camp.id),
            period_type=RoyaltyPeriodType.CAMP_SESSION,
            period_start=camp.start_date,
            period_end=camp.end_date,
            gross_revenue_cents=gross,
            registration_revenue_cents=registration_revenue,
            addon_revenue_cents=addon_revenue,
            merchandise_revenue_cents=0,
            refunds_total_cents=refunds,
            net_revenue_cents=net,
            royalty_rate_bps=bps,
            royalty_due_cents=royalty_due,
            adjustment_cents=0,
            total_due_cents=royalty_due,
            status=S.INVOICED,
            due_date=(now + timedelta(days=due_in_days)).date(),
            generated_at=now,
            generated_by=generated_by,
            line_items=line_items,
        )
        db.add(invoice)
        await db.flush()
        logger.info(f"Royalty invoice {invoice.invoice_number} generated for camp {camp.id}: {royalty_due} cents")

        await notification_service.send_to_licensee(
            db,
            camp.tenant_id,
            email_templates.royalty_invoice_issued(
                licensee_name=tenant.name if tenant else "Licensee",
                invoice_number=invoice.invoice_number,
                camp_name=camp.name,
                royalty_due_cents=royalty_due,
                due_date=invoice.due_date.strftime("%b %d, %Y"),
            ),
        )
        return await RoyaltyService.get_invoice(db, invoice.id)

    @staticmethod
    async def update_invoice_status(
        db: AsyncSession,
        invoice_id: str,
        status: RoyaltyInvoiceStatus,
        *,
        paid_amount_cents: Optional[int] = None,
        payment_method: Optional[str] = None,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> RoyaltyInvoice:
        invoice = await RoyaltyService.get_invoice(db, invoice_id, tenant_id)
        current = RoyaltyInvoiceStatus(invoice.status)
        if not can_transition(current, status):
            raise BusinessRuleError(f"Cannot transition from {current.value} to {status.value}")

        now = utcnow()
        invoice.status = status
        if status == S.PAID:
            invoice.paid_at = now
            invoice.paid_amount_cents = paid_amount_cents if paid_amount_cents is not None else invoice.total_due_cents
            invoice.payment_method = payment_method
            invoice.payment_reference = payment_reference
            invoice.paid_by = user_id
        if status == S.DISPUTED and notes:
            invoice.dispute_reason = notes
            invoice.disputed_at = now
        if current == S.DISPUTED and status != S.DISPUTED:
            invoice.resolved_at = now
        if notes and status != S.DISPUTED:
            invoice.notes = f"{invoice.notes}\n---\n{_stamp(notes)}" if invoice.notes else _stamp(notes)
        await db.flush()
        logger.info(f"Royalty invoice {invoice.invoice_number}: {current.value} -> {status.value}")

        if current != status:
            tenant = (await db.execute(select(Tenant).where(Tenant.id == invoice.tenant_id))).scalar_one_or_none()
            await notification_service.send_to_licensee(
                db,
                invoice.tenant_id,
                email_templates.royalty_status_changed(
                    licensee_name=tenant.name if tenant else "Licensee",
                    invoice_number=invoice.invoice_number,
                    old_status=current.value,
                    new_status=status.value,
                ),
            )
        return invoice

    @staticmethod
    async def add_adjustment(
        db: AsyncSession,
        invoice_id: str,
        amount_dollars: float,
        notes: str,
        user_id: Optional[str] = None,
    ) -> RoyaltyInvoice:
        invoice = await RoyaltyService.get_invoice(db, invoice_id)
        if invoice.status in (S.PAID, S.WAIVED):
            raise BusinessRuleError(f"Cannot adjust a {RoyaltyInvoiceStatus(invoice.status).value} invoice")

        invoice.adjustment_cents = (invoice.adjustment_cents or 0) + dollars_to_cents(amount_dollars)
        invoice.total_due_cents = invoice.royalty_due_cents + invoice.adjustment_cents

        sign = "+" if amount_dollars >= 0 else "-"
        note = f"Adjustment: {sign}${abs(amount_dollars):.2f} - {notes}"
        if user_id:
            note += f" (by {user_id})"
        stamped = _stamp(note)
        invoice.adjustment_notes = f"{invoice.adjustment_notes}\n{stamped}" if invoice.adjustment_notes else stamped
        await db.flush()
        return invoice

    @staticmethod
    async def get_camps_without_invoices(
        db: AsyncSession,
        start: Optional[date] = None,
        end: Optional[date] = None,
        tenant_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[Camp]:
        today = utcnow().date()
        start = start or date(today.year, 1, 1)
        end = end or today
        invoiced = select(RoyaltyInvoice.camp_id).where(RoyaltyInvoice.camp_id.is_not(None))
        conditions = [
            Camp.status.in_([CampStatus.COMPLETED, CampStatus.IN_PROGRESS]),
            Camp.end_date >= start,
            Camp.end_date <= end,
            Camp.id.not_in(invoiced),
        ]
        if tenant_id:
            conditions.append(Camp.tenant_id == tenant_id)
        result = await db.execute(
            select(Camp).where(and_(*conditions)).order_by(Camp.end_date.desc()).limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def bulk_generate_invoices(
        db: AsyncSession, camp_ids: List[str], generated_by: Optional[str] = None
    ) -> Dict[str, Any]:
        generated = 0
        errors = []
        for camp_id in camp_ids:
            try:
                async with db.begin_nested():
                    await RoyaltyService.generate_royalty_invoice_for_session(db, camp_id, generated_by)
                generated += 1
            except (LookupError, ValueError) as e:
                errors.append({"camp_id": camp_id, "error": str(e)})
        return {"generated": generated, "failed": len(errors), "errors": errors}

    @staticmethod
    async def mark_overdue_invoices(db: AsyncSession, today: Optional[date] = None) -> int:
        today = today or utcnow().date()
        result = await db.execute(
            select(RoyaltyInvoice).where(
                and_(RoyaltyInvoice.status == S.INVOICED, RoyaltyInvoice.due_date < today)
            )
        )
        invoices = list(result.scalars().all())
        for invoice in invoices:
            invoice.status = S.OVERDUE
        await db.flush()
        if invoices:
            logger.info(f"Marked {len(invoices)} royalty invoice(s) overdue")
        return len(invoices)

    @staticmethod
    async def list_invoices(
        db: AsyncSession,
        tenant_id: Optional[str] = None,
        status: Optional[RoyaltyInvoiceStatus] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[RoyaltyInvoice], int]:
        conditions = []
        if tenant_id:
            conditions.append(RoyaltyInvoice.tenant_id == tenant_id)
        if status:
            conditions.append(RoyaltyInvoice.status == status)

        count_stmt = select(func.count(RoyaltyInvoice.id))
        stmt = select(RoyaltyInvoice)
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))
        total = (await db.execute(count_stmt)).scalar() or 0
        result = await db.execute(
            stmt.order_by(RoyaltyInvoice.created_at.desc()).offset((page - 1) * size).limit(size)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def get_admin_summary(db: AsyncSession) -> Dict[str, Any]:
        result = await db.execute(
            select(
                RoyaltyInvoice.status,
                func.count(RoyaltyInvoice.id),
                func.coalesce(func.sum(RoyaltyInvoice.total_due_cents), 0),
                func.coalesce(func.sum(RoyaltyInvoice.paid_amount_cents), 0),
            ).group_by(RoyaltyInvoice.status)
        )
        by_status = {s.value: 0 for s in RoyaltyInvoiceStatus}
        total_invoiced = total_paid = total_outstanding = total_overdue = 0
        for status, count, due, paid in result.all():
            status = RoyaltyInvoiceStatus(status)
            by_status[status.value] = count
            if status != S.WAIVED:
                total_invoiced += int(due)
            total_paid += int(paid)
            if status in (S.INVOICED, S.OVERDUE, S.DISPUTED):
                total_outstanding += int(due)
            if status == S.OVERDUE:
                total_overdue += int(due)
        return {
            "total_invoiced": total_invoiced,
            "total_paid": total_paid,
            "total_outstanding": total_outstanding,
            "total_overdue": total_overdue,
            "by_status": by_status,
        }

    @staticmethod
    async def get_licensee_royalty_summary(
        db: AsyncSession,
        tenant_id: str,
        season_start: Optional[date] = None,
        season_end: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Royalty position of every session a licensee ran in a season.

        The season defaults to Mar 1 through Sep 30 of the current year and
        covers camps starting in it that are in progress or completed. Each row
        carries the royalty the session owes today and its latest invoice
        status ("not_generated" when nothing has been invoiced yet).
        Compliance is paid sessions over completed sessions, 100 when none
        have completed.
        """
        default_start, default_end = default_season(utcnow().date())
        season_start = season_start or default_start
        season_end = season_end or default_end
        tenant = (await db.execute(select(Tenant).where(Tenant.id == tenant_id))).scalar_one_or_none()
        bps = royalty_rate_bps(tenant)

        camps = list((await db.execute(
            select(Camp)
            .where(
                and_(
                    Camp.tenant_id == tenant_id,
                    Camp.start_date >= season_start,
                    Camp.start_date <= season_end,
                    Camp.status.in_([CampStatus.COMPLETED, CampStatus.IN_PROGRESS]),
                )
            )
            .order_by(Camp.start_date.desc())
        )).scalars().all())
        camp_ids = [c.id for c in camps]

        revenue = {
            camp_id: (count, int(total), int(addons))
            for camp_id, count, total, addons in (await db.execute(
                select(
                    Registration.camp_id,
                    func.count(Registration.id),
                    func.coalesce(func.sum(Registration.total_price_cents), 0),
                    func.coalesce(func.sum(Registration.addons_total_cents), 0),
                )
                .where(and_(Registration.camp_id.in_(camp_ids), Registration.status == RegistrationStatus.CONFIRMED))
                .group_by(Registration.camp_id)
            )).all()
        }

        latest: Dict[str, RoyaltyInvoice] = {}
        for invoice in (await db.execute(
            select(RoyaltyInvoice)
            .where(RoyaltyInvoice.camp_id.in_(camp_ids))
            .order_by(RoyaltyInvoice.created_at.desc())
        )).scalars().all():
            latest.setdefault(invoice.camp_id, invoice)

        directors: Dict[str, str] = {}
        for camp_id, user in (await db.execute(
            select(CampStaffAssignment.camp_id, User)
            .join(User, User.id == CampStaffAssignment.user_id)
            .where(and_(CampStaffAssignment.camp_id.in_(camp_ids), CampStaffAssignment.role == StaffRole.DIRECTOR))
            .order_by(CampStaffAssignment.is_lead.desc(), CampStaffAssignment.created_at)
        )).all():
            directors.setdefault(camp_id, user.full_name)

        rows = []
        totals = {"gross": 0, "net": 0, "due": 0, "paid": 0, "invoiced": 0, "paid_sessions": 0}
        for camp in camps:
            campers, total, addons = revenue.get(camp.id, (0, 0, 0))
            registration_revenue = total - addons
            gross = registration_revenue + addons
            refunds = 0
            net = gross - refunds
            royalty_due = round_cents(Decimal(net) * bps / 10000)
            invoice = latest.get(camp.id)

            totals["gross"] += gross
            totals["net"] += net
            totals["due"] += royalty_due
            if invoice:
                totals["invoiced"] += 1
                if invoice.status == S.PAID:
                    totals["paid_sessions"] += 1
                    totals["paid"] += invoice.paid_amount_cents or invoice.total_due_cents or 0

            rows.append({
                "camp_id": camp.id,
                "camp_name": camp.name,
                "camp_slug": camp.slug,
                "start_date": camp.start_date,
                "end_date": camp.end_date,
                "status": camp.status.value,
                "director_name": directors.get(camp.id),
                "camper_count": campers,
                "registration_revenue_cents": registration_revenue,
                "addon_revenue_cents": addons,
                "gross_revenue_cents": gross,
                "refunds_cents": refunds,
                "net_revenue_cents": net,
                "royalty_rate_bps": bps,
                "royalty_due_cents": royalty_due,
                "royalty_status": invoice.status.value if invoice else "not_generated",
                "invoice_id": invoice.id if invoice else None,
                "invoice_number": invoice.invoice_number if invoice else None,
                "invoice_generated_at": invoice.generated_at if invoice else None,
                "paid_at": invoice.paid_at if invoice else None,
            })

        completed = sum(1 for c in camps if c.status == CampStatus.COMPLETED)
        return {
            "period_start": season_start,
            "period_end": season_end,
            "royalty_rate_bps": bps,
            "totals": {
                "total_gross_revenue_cents": totals["gross"],
                "total_net_revenue_cents": totals["net"],
                "total_royalty_due_cents": totals["due"],
                "total_royalty_paid_cents": totals["paid"],
                "total_outstanding_cents": totals["due"] - totals["paid"],
                "sessions_count": len(camps),
                "sessions_invoiced": totals["invoiced"],
                "sessions_paid": totals["paid_sessions"],
                "compliance_rate": ratio_percent(totals["paid_sessions"], completed) if completed else 100,
            },
            "camps": rows,
        }
