import stripe
import logging
import time
from typing import Dict, Any, Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import BusinessRuleError, NotFoundError, PaymentProviderError
from ..core.money import dollars_to_cents, round_cents
from ..models.base import utcnow
from ..models.camp import Camp
from ..models.registration import (
    Registration, RegistrationAddon, RegistrationStatus, PaymentStatus
)
from . import notification_service

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY
logger = logging.getLogger(__name__)

FREE_SESSION_ID = "free_registration"


def is_stripe_configured() -> bool:
    return bool(settings.STRIPE_SECRET_KEY)


def _line(name: str, amount_cents: int) -> Dict[str, Any]:
    return {
        "price_data": {
            "currency": "usd",
            "product_data": {"name": name},
            "unit_amount": amount_cents,
        },
        "quantity": 1,
    }


def build_line_items(registrations: List[Registration], camp_name: str) -> List[Dict[str, Any]]:
    """Stripe line items for a set of registrations.

    The promo discount comes off the camp line first; whatever exceeds the
    camp line is spread over the add-ons in proportion to their price, the
    last add-on taking the rounding remainder. Tax is a single combined line.
    """
    items: List[Dict[str, Any]] = []
    total_tax = 0
    for reg in registrations:
        athlete_name = reg.athlete.full_name if reg.athlete else "Camper"
        camp_base = reg.base_price_cents - reg.discount_cents
        promo_on_camp = min(reg.promo_discount_cents, max(0, camp_base))
        camp_net = camp_base - promo_on_camp
        if camp_net > 0:
            items.append(_line(f"{camp_name} - {athlete_name}", camp_net))

        overflow = reg.promo_discount_cents - promo_on_camp
        addon_rows = list(reg.addons or [])
        addons_total = sum(a.price_cents for a in addon_rows)
        remaining = overflow
        for i, ra in enumerate(addon_rows):
            if overflow > 0 and addons_total > 0:
                if i == len(addon_rows) - 1:
                    share = remaining
                else:
                    share = round_cents(overflow * ra.price_cents / addons_total)
                    remaining -= share
            else:
                share = 0
            amount = ra.price_cents - share
            if amount > 0:
                name = ra.addon.name if ra.addon else "Add-on"
                if ra.quantity and ra.quantity > 1:
                    name = f"{name} x{ra.quantity}"
                items.append(_line(f"{name} - {athlete_name}", amount))

        total_tax += reg.tax_cents or 0

    if total_tax > 0:
        items.append(_line("Sales Tax", total_tax))
    return items


class StripeService:
    """Checkout, webhook and refund handling for camp registrations"""

    @staticmethod
    async def _load_registrations(db: AsyncSession, registration_ids: List[str]) -> List[Registration]:
        result = await db.execute(
            select(Registration)
            .options(
                selectinload(Registration.athlete),
                selectinload(Registration.parent),
                selectinload(Registration.addons).selectinload(RegistrationAddon.addon),
            )
            .where(Registration.id.in_(registration_ids))
            .execution_options(populate_existing=True)
        )
        regs = list(result.scalars().all())
        # Keep caller order; the first id is the primary registration
        order = {rid: i for i, rid in enumerate(registration_ids)}
        regs.sort(key=lambda r: order.get(r.id, 0))
        return regs

    @staticmethod
    async def create_checkout_session(
        db: AsyncSession,
        registration_ids: List[str],
        success_url: str,
        cancel_url: str,
        tenant_id: str,
    ) -> Dict[str, str]:
        """Create the payment session for one or more registrations"""
        if not registration_ids:
            raise BusinessRuleError("No registrations to check out")
        registrations = await StripeService._load_registrations(db, registration_ids)
        if len(registrations) != len(set(registration_ids)):
            raise NotFoundError("Registration not found")

        primary = registrations[0]
        total = sum(r.total_price_cents for r in registrations)

        if total <= 0:
            await StripeService.mark_registrations_paid(db, registrations, session_id=FREE_SESSION_ID)
            logger.info(f"Free registration confirmed for {len(registrations)} camper(s), primary {primary.id}")
            return {"checkout_url": f"{success_url}?free=true", "session_id": FREE_SESSION_ID}

        if not is_stripe_configured():
            session_id = f"demo_{primary.id}_{int(time.time() * 1000)}"
            for reg in registrations:
                reg.stripe_checkout_session_id = session_id
                reg.payment_method = "demo"
            await db.flush()
            logger.info(f"Stripe not configured; created demo session {session_id}")
            return {
                "checkout_url": f"{success_url}?session_id={session_id}&demo=true",
                "session_id": session_id,
            }

        camp_res = await db.execute(select(Camp).where(Camp.id == primary.camp_id))
        camp = camp_res.scalar_one_or_none()
        metadata = {
            "type": "registration",
            "registrationId": primary.id,
            "registrationIds": ",".join(r.id for r in registrations),
            "campSessionId": primary.camp_id,
            "tenantId": tenant_id,
        }
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=build_line_items(registrations, camp.name if camp else "Camp"),
                customer_email=primary.parent.email if primary.parent else None,
                success_url=f"{success_url}?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=cancel_url,
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe checkout session: {e}")
            raise PaymentProviderError(f"Payment provider error: {e}") from e

        for reg in registrations:
            reg.stripe_checkout_session_id = session.id
            reg.payment_method = "stripe"
        await db.flush()
        return {"checkout_url": session.url, "session_id": session.id}

    @staticmethod
    async def mark_registrations_paid(
        db: AsyncSession,
        registrations: List[Registration],
        *,
        payment_intent_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """Confirm paid registrations, repair add-on totals, compact waitlists and send confirmations"""
        from .waitlist_service import WaitlistService

        now = utcnow()
        camp_ids = set()
        for reg in registrations:
            was_waitlisted = reg.waitlist_position is not None or reg.status == RegistrationStatus.WAITLISTED
            reg.payment_status = PaymentStatus.PAID
            reg.status = RegistrationStatus.CONFIRMED
            reg.paid_at = now
            if payment_intent_id:
                reg.stripe_payment_intent_id = payment_intent_id
            if session_id:
                reg.stripe_checkout_session_id = session_id
            reg.waitlist_position = None
            reg.waitlist_offer_sent_at = None
            reg.waitlist_offer_expires_at = None

            addons_res = await db.execute(
                select(RegistrationAddon).where(RegistrationAddon.registration_id == reg.id)
            )
            addons_total = sum(a.price_cents for a in addons_res.scalars().all())
            if addons_total != reg.addons_total_cents:
                logger.warning(
                    f"Registration {reg.id} addons total {reg.addons_total_cents} != {addons_total}; correcting"
                )
                reg.addons_total_cents = addons_total
                reg.total_price_cents = (
                    reg.base_price_cents - reg.discount_cents - reg.promo_discount_cents
                    + addons_total + reg.tax_cents
                )
            if was_waitlisted:
                camp_ids.add(reg.camp_id)
        await db.flush()

        for camp_id in camp_ids:
            await WaitlistService.reorder_positions(db, camp_id)

        for reg in registrations:
            logger.info(f"Registration {reg.id} confirmed")
        await notification_service.send_registration_confirmations(db, registrations)

    @staticmethod
    async def confirm_demo_payment(db: AsyncSession, session_id: str) -> List[str]:
        """Complete a demo checkout. Only available when Stripe is not configured."""
        if is_stripe_configured():
            raise BusinessRuleError("Demo payments are disabled")
        parts = (session_id or "").split("_")
        if len(parts) != 3 or parts[0] != "demo":
            raise BusinessRuleError("Invalid demo session")

        result = await db.execute(
            select(Registration).where(Registration.stripe_checkout_session_id == session_id)
        )
        registrations = list(result.scalars().all())
        if not registrations:
            result = await db.execute(select(Registration).where(Registration.id == parts[1]))
            registrations = list(result.scalars().all())
        if not registrations:
            raise NotFoundError("Registration not found")

        await StripeService.mark_registrations_paid(
            db, registrations, payment_intent_id=f"pi_{session_id}", session_id=session_id
        )
        return [r.id for r in registrations]

    @staticmethod
    async def process_refund(
        db: AsyncSession,
        registration_id: str,
        tenant_id: Optional[str],
        amount_dollars: Optional[float] = None,
        reason: Optional[str] = "requested_by_customer",
    ) -> Dict[str, Any]:
        """Issue a Stripe refund. Registration state changes arrive via the charge.refunded webhook."""
        if not is_stripe_configured():
            raise BusinessRuleError("Stripe is not configured")
        stmt = select(Registration).where(Registration.id == registration_id)
        if tenant_id:
            stmt = stmt.where(Registration.tenant_id == tenant_id)
        reg = (await db.execute(stmt)).scalar_one_or_none()
        if not reg:
            raise NotFoundError("Registration not found")
        if not reg.stripe_payment_intent_id:
            raise BusinessRuleError("No payment found for this registration")

        params: Dict[str, Any] = {"payment_intent": reg.stripe_payment_intent_id}
        if amount_dollars is not None:
            params["amount"] = dollars_to_cents(amount_dollars)
        if reason:
            params["reason"] = reason
        try:
            refund = stripe.Refund.create(**params)
        except stripe.StripeError as e:
            logger.error(f"Refund for registration {registration_id} failed: {e}")
            raise PaymentProviderError(f"Refund failed: {e}") from e

        logger.info(f"Refund {refund.id} created for registration {registration_id}")
        return {"refund_id": refund.id, "amount_cents": refund.amount, "status": refund.status}

    @staticmethod
    async def process_webhook(
        payload: bytes,
        sig_header: str,
        db: AsyncSession
    ) -> Dict[str, Any]:
        """Process Stripe webhook events"""
        try:
            event = stripe.Webhook.construct_event(
                payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
            )

            if event['type'] == 'checkout.session.completed':
                await StripeService._handle_checkout_completed(event, db)
            elif event['type'] == 'payment_intent.succeeded':
                await StripeService._handle_payment_intent_succeeded(event, db)
            elif event['type'] == 'payment_intent.payment_failed':
                await StripeService._handle_payment_failed(event, db)
            elif event['type'] == 'charge.refunded':
                await StripeService._handle_charge_refunded(event, db)
            else:
                logger.debug(f"Ignoring Stripe event {event['type']}")

            return {"status": "success", "event_type": event['type']}

        except ValueError as e:
            logger.error(f"Invalid payload: {e}")
            raise
        except stripe.SignatureVerificationError as e:
            logger.error(f"Invalid signature: {e}")
            raise
        except Exception as e:
            logger.error(f"Webhook processing error: {e}")
            raise

    @staticmethod
    def _registration_ids(metadata: Dict[str, Any]) -> List[str]:
        ids = [i for i in (metadata.get('registrationIds') or '').split(',') if i]
        if not ids and metadata.get('registrationId'):
            ids = [metadata['registrationId']]
        return ids

    @staticmethod
    async def _handle_checkout_completed(event: Dict[str, Any], db: AsyncSession):
        """Handle checkout.session.completed event"""
        session = event['data']['object']
        metadata = session.get('metadata') or {}
        if metadata.get('type') != 'registration':
            return
        ids = StripeService._registration_ids(metadata)
        if not ids:
            logger.error("No registration ids in checkout session metadata")
            return

        registrations = await StripeService._load_registrations(db, ids)
        await StripeService.mark_registrations_paid(
            db,
            registrations,
            payment_intent_id=session.get('payment_intent'),
            session_id=session.get('id'),
        )
        logger.info(f"Checkout {session.get('id')} completed for {len(registrations)} registration(s)")

    @staticmethod
    async def _handle_payment_intent_succeeded(event: Dict[str, Any], db: AsyncSession):
        intent = event['data']['object']
        reg_id = (intent.get('metadata') or {}).get('registrationId')
        if not reg_id:
            return
        result = await db.execute(select(Registration).where(Registration.id == reg_id))
        reg = result.scalar_one_or_none()
        if reg and not reg.stripe_payment_intent_id:
            reg.stripe_payment_intent_id = intent['id']
            await db.flush()

    @staticmethod
    async def _handle_payment_failed(event: Dict[str, Any], db: AsyncSession):
        intent = event['data']['object']
        ids = StripeService._registration_ids(intent.get('metadata') or {})
        if not ids:
            return
        result = await db.execute(select(Registration).where(Registration.id.in_(ids)))
        for reg in result.scalars().all():
            reg.payment_status = PaymentStatus.FAILED
        await db.flush()
        logger.info(f"Payment failed for registrations {ids}")

    @staticmethod
    async def _registrations_from_intent(db: AsyncSession, intent_id: str) -> List[Registration]:
        """Find registrations through the intent metadata and remember the intent on them"""
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id)
        except stripe.StripeError as e:
            logger.error(f"Failed to retrieve payment intent {intent_id}: {e}")
            return []
        ids = StripeService._registration_ids(intent.get('metadata') or {})
        if not ids:
            return []
        result = await db.execute(select(Registration).where(Registration.id.in_(ids)))
        registrations = list(result.scalars().all())
        for reg in registrations:
            reg.stripe_payment_intent_id = intent_id
        return registrations

    @staticmethod
    async def _handle_charge_refunded(event: Dict[str, Any], db: AsyncSession):
        """Handle charge.refunded: spread the refund over the registrations it paid for"""
        from .waitlist_service import WaitlistService

        charge = event['data']['object']
        intent_id = charge.get('payment_intent')
        if not intent_id:
            return

        result = await db.execute(
            select(Registration).where(Registration.stripe_payment_intent_id == intent_id)
        )
        registrations = list(result.scalars().all())
        if not registrations and is_stripe_configured():
            registrations = await StripeService._registrations_from_intent(db, intent_id)
        if not registrations:
            logger.warning(f"charge.refunded for unknown payment intent {intent_id}")
            return

        amount = charge.get('amount') or 0
        refunded = charge.get('amount_refunded') or 0
        full = refunded == amount
        total_charged = sum(r.total_price_cents for r in registrations)
        now = utcnow()

        for reg in registrations:
            if total_charged > 0:
                share = round_cents(reg.total_price_cents / total_charged * refunded)
            else:
                share = 0
            reg.refund_amount_cents = share
            reg.refunded_at = now
            reg.payment_status = PaymentStatus.REFUNDED if full else PaymentStatus.PARTIAL
            if full:
                reg.status = RegistrationStatus.REFUNDED
        await db.flush()
        logger.info(f"Refund of {refunded} cents applied to {len(registrations)} registration(s), full={full}")

        if full:
            for camp_id in {r.camp_id for r in registrations}:
                await WaitlistService.on_spot_opened(db, camp_id)
