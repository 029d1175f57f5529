import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, and_, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import BusinessRuleError, NotFoundError
from ..models.base import utcnow
from ..models.camp import Camp, Addon
from ..models.registration import (
    Athlete, ParentProfile, PromoCode, Registration, RegistrationAddon,
    RegistrationStatus, PaymentStatus
)
from ..models.tenant import Tenant
from ..schemas.registration import CheckoutRequest, ParentInfo, CamperInfo
from .pricing import CamperPrice, assign_addons, price_checkout
from .promo_service import PromoCodeService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

DEFAULT_DATE_OF_BIRTH = date(2010, 1, 1)

_PARENT_FIELDS = (
    "first_name", "last_name", "phone", "address_line_1", "address_line_2", "city", "state",
    "zip_code", "emergency_contact_name", "emergency_contact_phone", "emergency_contact_relationship",
)


class RegistrationService:
    """Parent checkout and registration lifecycle"""

    @staticmethod
    async def get_camp(db: AsyncSession, camp_id: str, tenant_id: Optional[str]) -> Camp:
        stmt = select(Camp).where(Camp.id == camp_id)
        if tenant_id:
            stmt = stmt.where(Camp.tenant_id == tenant_id)
        camp = (await db.execute(stmt)).scalar_one_or_none()
        if not camp:
            raise NotFoundError("Camp not found")
        return camp

    @staticmethod
    async def count_active(db: AsyncSession, camp_id: str) -> int:
        """Registrations holding or contending for a spot (everything not cancelled)."""
        result = await db.execute(
            select(func.count(Registration.id)).where(
                and_(Registration.camp_id == camp_id, Registration.status != RegistrationStatus.CANCELLED)
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def upsert_parent(db: AsyncSession, info: ParentInfo) -> ParentProfile:
        email = info.email.strip().lower()
        result = await db.execute(select(ParentProfile).where(ParentProfile.email == email))
        parent = result.scalar_one_or_none()
        if parent:
            for field in _PARENT_FIELDS:
                value = getattr(info, field)
                if value:
                    setattr(parent, field, value)
        else:
            parent = ParentProfile(email=email, **{f: getattr(info, f) for f in _PARENT_FIELDS})
            db.add(parent)
        await db.flush()
        return parent

    @staticmethod
    async def find_or_create_athlete(
        db: AsyncSession, parent: ParentProfile, camper: CamperInfo, tenant_id: str
    ) -> Athlete:
        athlete = None
        if camper.athlete_id:
            result = await db.execute(
                select(Athlete).where(and_(Athlete.id == camper.athlete_id, Athlete.parent_id == parent.id))
            )
            athlete = result.scalar_one_or_none()
        if athlete is None:
            result = await db.execute(
                select(Athlete).where(
                    and_(
                        Athlete.parent_id == parent.id,
                        func.lower(Athlete.first_name) == camper.first_name.strip().lower(),
                        func.lower(Athlete.last_name) == camper.last_name.strip().lower(),
                    )
                )
            )
            athlete = result.scalars().first()
        if athlete is None:
            athlete = Athlete(
                parent_id=parent.id,
                tenant_id=tenant_id,
                first_name=camper.first_name.strip(),
                last_name=camper.last_name.strip(),
                date_of_birth=camper.date_of_birth or DEFAULT_DATE_OF_BIRTH,
            )
            db.add(athlete)

        for field, value in (
            ("grade", camper.grade),
            ("school", camper.school),
            ("t_shirt_size", camper.shirt_size),
            ("medical_notes", camper.medical_notes),
            ("allergies", camper.allergies),
        ):
            if value:
                setattr(athlete, field, value)
        if camper.date_of_birth:
            athlete.date_of_birth = camper.date_of_birth
        await db.flush()
        return athlete

    @staticmethod
    async def create_registration(
        db: AsyncSession,
        *,
        tenant_id: str,
        camp: Camp,
        athlete: Athlete,
        parent: ParentProfile,
        price: CamperPrice,
        promo: Optional[PromoCode] = None,
        status: RegistrationStatus = RegistrationStatus.PENDING,
        shirt_size: Optional[str] = None,
        special_considerations: Optional[str] = None,
        friend_requests: Optional[List[str]] = None,
    ) -> Registration:
        """Create a registration, replacing an abandoned pending checkout for the same camper."""
        result = await db.execute(
            select(Registration)
            .options(selectinload(Registration.addons))
            .where(
                and_(
                    Registration.camp_id == camp.id,
                    Registration.athlete_id == athlete.id,
                    Registration.status != RegistrationStatus.CANCELLED,
                )
            )
        )
        for existing in result.scalars().all():
            if existing.status == RegistrationStatus.PENDING and existing.payment_status == PaymentStatus.PENDING:
                logger.info(f"Removing abandoned registration {existing.id} for athlete {athlete.id}")
                await db.delete(existing)
            else:
                raise BusinessRuleError(
                    f"{athlete.first_name} {athlete.last_name} is already registered for this camp."
                )
        await db.flush()

        reg = Registration(
            tenant_id=tenant_id,
            camp_id=camp.id,
            athlete_id=athlete.id,
            parent_id=parent.id,
            base_price_cents=price.base_price_cents,
            discount_cents=price.discount_cents,
            promo_discount_cents=price.promo_discount_cents,
            addons_total_cents=price.addons_total_cents,
            tax_cents=price.tax_cents,
            total_price_cents=price.total_price_cents,
            promo_code_id=promo.id if promo and price.promo_discount_cents else None,
            status=status,
            payment_status=PaymentStatus.PENDING,
            shirt_size=shirt_size,
            special_considerations=special_considerations,
            friend_requests=list(friend_requests or []),
        )
        db.add(reg)
        if promo and price.promo_discount_cents:
            promo.current_uses = (promo.current_uses or 0) + 1
        await db.flush()

        for line in price.addons:
            db.add(RegistrationAddon(
                registration_id=reg.id,
                addon_id=line.addon.id,
                quantity=line.quantity,
                price_cents=line.total_cents,
            ))
        await db.flush()
        return reg

    @staticmethod
    async def _load_addons(db: AsyncSession, tenant_id: str, camp_id: str, addon_ids: List[str]) -> Dict[str, Addon]:
        if not addon_ids:
            return {}
        result = await db.execute(
            select(Addon).where(
                and_(
                    Addon.id.in_(addon_ids),
                    Addon.tenant_id == tenant_id,
                    Addon.is_active.is_(True),
                    or_(Addon.camp_id.is_(None), Addon.camp_id == camp_id),
                )
            )
        )
        return {a.id: a for a in result.scalars().all()}

    @staticmethod
    async def checkout(
        db: AsyncSession,
        payload: CheckoutRequest,
        tenant_id: Optional[str],
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Register one or more campers for a camp and open the payment session"""
        tenant_id = tenant_id or payload.tenant_id
        if not payload.camp_id or not tenant_id or not payload.parent or not payload.campers:
            raise BusinessRuleError("Missing required fields")
        today = today or utcnow().date()

        camp = await RegistrationService.get_camp(db, payload.camp_id, tenant_id)

        taken = await RegistrationService.count_active(db, camp.id)
        if taken + len(payload.campers) > (camp.capacity or 0):
            raise BusinessRuleError("Not enough spots available")

        parent = await RegistrationService.upsert_parent(db, payload.parent)
        promo = await PromoCodeService.find_usable(db, tenant_id, payload.promo_code, today)
        tenant = (await db.execute(select(Tenant).where(Tenant.id == tenant_id))).scalar_one_or_none()

        addons = await RegistrationService._load_addons(
            db, tenant_id, camp.id, [s.addon_id for s in payload.addons]
        )
        per_camper = assign_addons(
            [(s.camper_index, s.addon_id, s.quantity) for s in payload.addons],
            addons,
            len(payload.campers),
        )
        prices = price_checkout(
            camp=camp,
            camper_count=len(payload.campers),
            addons_by_camper=per_camper,
            promo=promo,
            tax_rate_percent=tenant.tax_rate_percent if tenant else 0,
            today=today,
        )

        registrations: List[Registration] = []
        for camper, price in zip(payload.campers, prices):
            athlete = await RegistrationService.find_or_create_athlete(db, parent, camper, tenant_id)
            reg = await RegistrationService.create_registration(
                db,
                tenant_id=tenant_id,
                camp=camp,
                athlete=athlete,
                parent=parent,
                price=price,
                promo=promo,
                shirt_size=camper.shirt_size,
                special_considerations=camper.special_considerations,
                friend_requests=camper.friend_requests,
            )
            registrations.append(reg)

        success_url = payload.success_url or f"{settings.APP_BASE_URL}/register/success"
        cancel_url = payload.cancel_url or f"{settings.APP_BASE_URL}/camps/{camp.id}"
        ids = [r.id for r in registrations]
        try:
            session = await StripeService.create_checkout_session(db, ids, success_url, cancel_url, tenant_id)
        except Exception as e:
            logger.error(f"Checkout session creation failed for camp {camp.id}: {e}")
            now = utcnow()
            for reg in registrations:
                reg.status = RegistrationStatus.CANCELLED
                reg.cancelled_at = now
                reg.cancellation_reason = "Checkout creation failed"
            await db.commit()
            raise

        return {
            "registration_ids": ids,
            "checkout_url": session["checkout_url"],
            "session_id": session["session_id"],
        }

    @staticmethod
    def _with_addons(stmt):
        return stmt.options(selectinload(Registration.addons)).execution_options(populate_existing=True)

    @staticmethod
    async def get_registration(db: AsyncSession, registration_id: str, tenant_id: Optional[str]) -> Registration:
        stmt = RegistrationService._with_addons(select(Registration).where(Registration.id == registration_id))
        if tenant_id:
            stmt = stmt.where(Registration.tenant_id == tenant_id)
        reg = (await db.execute(stmt)).scalar_one_or_none()
        if not reg:
            raise NotFoundError("Registration not found")
        return reg

    @staticmethod
    async def list_for_parent(db: AsyncSession, email: str) -> List[Registration]:
        parent = (await db.execute(
            select(ParentProfile).where(ParentProfile.email == email.strip().lower())
        )).scalar_one_or_none()
        if not parent:
            return []
        result = await db.execute(
            RegistrationService._with_addons(
                select(Registration).where(Registration.parent_id == parent.id)
            ).order_by(Registration.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_for_camp(
        db: AsyncSession,
        tenant_id: str,
        camp_id: str,
        status: Optional[RegistrationStatus] = None,
        page: int = 1,
        size: int = 50,
    ) -> Tuple[List[Registration], int]:
        conditions = [Registration.tenant_id == tenant_id, Registration.camp_id == camp_id]
        if status:
            conditions.append(Registration.status == status)

        total = (await db.execute(
            select(func.count(Registration.id)).where(and_(*conditions))
        )).scalar() or 0
        result = await db.execute(
            RegistrationService._with_addons(select(Registration).where(and_(*conditions)))
            .order_by(Registration.created_at.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def cancel_registration(
        db: AsyncSession, registration_id: str, tenant_id: Optional[str], reason: Optional[str] = None
    ) -> Registration:
        """Cancel a registration; a freed spot is offered to the waitlist"""
        from .waitlist_service import WaitlistService

        reg = await RegistrationService.get_registration(db, registration_id, tenant_id)
        if reg.status in (RegistrationStatus.CANCELLED, RegistrationStatus.REFUNDED):
            raise BusinessRuleError("Registration is already cancelled")

        held_spot = reg.status in (RegistrationStatus.CONFIRMED, RegistrationStatus.PENDING)
        was_waitlisted = reg.status == RegistrationStatus.WAITLISTED
        had_offer = was_waitlisted and reg.waitlist_offer_sent_at is not None

        reg.status = RegistrationStatus.CANCELLED
        reg.cancelled_at = utcnow()
        reg.cancellation_reason = reason or "Cancelled"
        reg.waitlist_position = None
        reg.waitlist_offer_sent_at = None
        reg.waitlist_offer_expires_at = None
        await db.flush()
        logger.info(f"Registration {reg.id} cancelled: {reg.cancellation_reason}")

        if was_waitlisted:
            await WaitlistService.reorder_positions(db, reg.camp_id)
        if held_spot or had_offer:
            await WaitlistService.on_spot_opened(db, reg.camp_id)
        return reg
