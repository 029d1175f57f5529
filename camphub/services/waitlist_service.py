import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import BusinessRuleError, NotFoundError
from ..models.base import utcnow
from ..models.camp import Camp
from ..models.registration import Registration, RegistrationStatus
from ..schemas.registration import WaitlistJoinRequest
from . import notification_service
from .pricing import price_checkout
from .registration_service import RegistrationService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)


def offer_expiry_delta() -> timedelta:
    return timedelta(hours=settings.WAITLIST_OFFER_EXPIRY_HOURS)


class WaitlistService:
    """FIFO waitlist with time-limited spot offers"""

    @staticmethod
    async def _count_holding(db: AsyncSession, camp_id: str) -> int:
        result = await db.execute(
            select(func.count(Registration.id)).where(
                and_(
                    Registration.camp_id == camp_id,
                    Registration.status.in_([RegistrationStatus.CONFIRMED, RegistrationStatus.PENDING]),
                )
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def _count_active_offers(db: AsyncSession, camp_id: str) -> int:
        result = await db.execute(
            select(func.count(Registration.id)).where(
                and_(
                    Registration.camp_id == camp_id,
                    Registration.status == RegistrationStatus.WAITLISTED,
                    Registration.waitlist_offer_expires_at > utcnow(),
                )
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def _max_position(db: AsyncSession, camp_id: str) -> int:
        result = await db.execute(
            select(func.max(Registration.waitlist_position)).where(
                and_(Registration.camp_id == camp_id, Registration.status == RegistrationStatus.WAITLISTED)
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def join_waitlist(db: AsyncSession, payload: WaitlistJoinRequest, tenant_id: Optional[str]) -> Registration:
        tenant_id = tenant_id or payload.tenant_id
        if not tenant_id:
            raise BusinessRuleError("Missing required fields")
        camp = await RegistrationService.get_camp(db, payload.camp_id, tenant_id)

        if await WaitlistService._count_holding(db, camp.id) < (camp.capacity or 0):
            raise BusinessRuleError("Camp still has spots available, please register normally")

        parent = await RegistrationService.upsert_parent(db, payload.parent)
        athlete = await RegistrationService.find_or_create_athlete(db, parent, payload.camper, tenant_id)

        existing = (await db.execute(
            select(Registration).where(
                and_(
                    Registration.camp_id == camp.id,
                    Registration.athlete_id == athlete.id,
                    Registration.status != RegistrationStatus.CANCELLED,
                )
            )
        )).scalars().first()
        if existing:
            if existing.status == RegistrationStatus.WAITLISTED:
                raise BusinessRuleError(f"{athlete.first_name} is already on the waitlist for this camp")
            raise BusinessRuleError(f"{athlete.first_name} {athlete.last_name} is already registered for this camp.")

        price = price_checkout(camp=camp, camper_count=1, today=utcnow().date())[0]
        reg = await RegistrationService.create_registration(
            db,
            tenant_id=tenant_id,
            camp=camp,
            athlete=athlete,
            parent=parent,
            price=price,
            status=RegistrationStatus.WAITLISTED,
            shirt_size=payload.camper.shirt_size,
            special_considerations=payload.camper.special_considerations,
            friend_requests=payload.camper.friend_requests,
        )
        reg.waitlist_position = await WaitlistService._max_position(db, camp.id) + 1
        reg.waitlist_joined_at = utcnow()
        reg.waitlist_offer_token = secrets.token_urlsafe(32)
        await db.flush()
        logger.info(f"Athlete {athlete.id} joined waitlist for camp {camp.id} at position {reg.waitlist_position}")

        await notification_service.send_waitlist_joined(db, reg)
        return reg

    @staticmethod
    async def on_spot_opened(db: AsyncSession, camp_id: str) -> Optional[Registration]:
        """Offer a freed spot to the next waitlisted camper, if capacity allows"""
        camp = (await db.execute(select(Camp).where(Camp.id == camp_id))).scalar_one_or_none()
        if not camp:
            return None
        taken = await WaitlistService._count_holding(db, camp_id)
        offered = await WaitlistService._count_active_offers(db, camp_id)
        if taken + offered >= (camp.capacity or 0):
            return None

        result = await db.execute(
            select(Registration)
            .where(
                and_(
                    Registration.camp_id == camp_id,
                    Registration.status == RegistrationStatus.WAITLISTED,
                    Registration.waitlist_offer_sent_at.is_(None),
                )
            )
            .order_by(Registration.waitlist_position.asc(), Registration.waitlist_joined_at.asc())
            .limit(1)
        )
        nxt = result.scalar_one_or_none()
        if not nxt:
            return None

        now = utcnow()
        if not nxt.waitlist_offer_token:
            nxt.waitlist_offer_token = secrets.token_urlsafe(32)
        nxt.waitlist_offer_sent_at = now
        nxt.waitlist_offer_expires_at = now + offer_expiry_delta()
        await db.flush()
        logger.info(f"Waitlist offer sent for registration {nxt.id} (camp {camp_id})")

        await notification_service.send_waitlist_offer(db, nxt)
        return nxt

    @staticmethod
    async def _by_token(db: AsyncSession, token: str) -> Registration:
        result = await db.execute(
            select(Registration).where(
                and_(
                    Registration.waitlist_offer_token == token,
                    Registration.status == RegistrationStatus.WAITLISTED,
                )
            )
        )
        reg = result.scalar_one_or_none()
        if not reg or not reg.waitlist_offer_sent_at:
            raise NotFoundError("Invalid or unknown offer")
        return reg

    @staticmethod
    async def accept_offer(db: AsyncSession, token: str, base_url: Optional[str] = None) -> Dict[str, Any]:
        reg = await WaitlistService._by_token(db, token)
        if reg.waitlist_offer_expires_at and reg.waitlist_offer_expires_at < utcnow():
            raise BusinessRuleError("This offer has expired")

        camp = await RegistrationService.get_camp(db, reg.camp_id, reg.tenant_id)
        if await WaitlistService._count_holding(db, camp.id) >= (camp.capacity or 0):
            raise BusinessRuleError("Sorry, the spot is no longer available")

        base_url = (base_url or settings.APP_BASE_URL).rstrip("/")
        session = await StripeService.create_checkout_session(
            db,
            [reg.id],
            f"{base_url}/register/success",
            f"{base_url}/waitlist/offer/{token}",
            reg.tenant_id,
        )
        return {"registration_id": reg.id, **session}

    @staticmethod
    async def decline_offer(db: AsyncSession, token: str) -> Registration:
        reg = await WaitlistService._by_token(db, token)
        reg.status = RegistrationStatus.CANCELLED
        reg.cancelled_at = utcnow()
        reg.cancellation_reason = "Waitlist offer declined"
        reg.waitlist_position = None
        reg.waitlist_offer_sent_at = None
        reg.waitlist_offer_expires_at = None
        await db.flush()
        logger.info(f"Waitlist offer declined for registration {reg.id}")

        await WaitlistService.reorder_positions(db, reg.camp_id)
        await WaitlistService.on_spot_opened(db, reg.camp_id)
        return reg

    @staticmethod
    async def expire_stale_offers(db: AsyncSession) -> Dict[str, int]:
        """Send expired offers to the back of the line and offer the spots onward"""
        now = utcnow()
        result = await db.execute(
            select(Registration)
            .where(
                and_(
                    Registration.status == RegistrationStatus.WAITLISTED,
                    Registration.waitlist_offer_expires_at.is_not(None),
                    Registration.waitlist_offer_expires_at < now,
                )
            )
            .order_by(Registration.waitlist_position.asc())
        )
        stale = list(result.scalars().all())

        camps = []
        for reg in stale:
            reg.waitlist_position = await WaitlistService._max_position(db, reg.camp_id) + 1
            reg.waitlist_offer_sent_at = None
            reg.waitlist_offer_expires_at = None
            await db.flush()
            if reg.camp_id not in camps:
                camps.append(reg.camp_id)
            await notification_service.send_waitlist_offer_expired(db, reg)

        new_offers = 0
        for camp_id in camps:
            await WaitlistService.reorder_positions(db, camp_id)
            if await WaitlistService.on_spot_opened(db, camp_id):
                new_offers += 1

        if stale:
            logger.info(f"Expired {len(stale)} waitlist offer(s); sent {new_offers} new offer(s)")
        return {"expired": len(stale), "new_offers_sent": new_offers}

    @staticmethod
    async def remove_from_waitlist(db: AsyncSession, registration_id: str, tenant_id: Optional[str]) -> Registration:
        reg = await RegistrationService.get_registration(db, registration_id, tenant_id)
        if reg.status != RegistrationStatus.WAITLISTED:
            raise BusinessRuleError("Registration is not on the waitlist")
        had_offer = reg.waitlist_offer_sent_at is not None

        reg.status = RegistrationStatus.CANCELLED
        reg.cancelled_at = utcnow()
        reg.cancellation_reason = "Removed from waitlist"
        reg.waitlist_position = None
        reg.waitlist_offer_sent_at = None
        reg.waitlist_offer_expires_at = None
        await db.flush()

        await WaitlistService.reorder_positions(db, reg.camp_id)
        if had_offer:
            await WaitlistService.on_spot_opened(db, reg.camp_id)
        return reg

    @staticmethod
    async def get_waitlist(db: AsyncSession, camp_id: str, tenant_id: Optional[str]) -> List[Registration]:
        conditions = [Registration.camp_id == camp_id, Registration.status == RegistrationStatus.WAITLISTED]
        if tenant_id:
            conditions.append(Registration.tenant_id == tenant_id)
        result = await db.execute(
            RegistrationService._with_addons(select(Registration).where(and_(*conditions)))
            .order_by(Registration.waitlist_position.asc(), Registration.waitlist_joined_at.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def reorder_positions(db: AsyncSession, camp_id: str) -> int:
        """Renumber waitlisted registrations 1..n keeping their order"""
        result = await db.execute(
            select(Registration)
            .where(and_(Registration.camp_id == camp_id, Registration.status == RegistrationStatus.WAITLISTED))
            .order_by(Registration.waitlist_position.asc(), Registration.waitlist_joined_at.asc())
        )
        regs = list(result.scalars().all())
        for position, reg in enumerate(regs, start=1):
            reg.waitlist_position = position
        await db.flush()
        return len(regs)
