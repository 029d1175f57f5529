"""
Domain notifications sent by email.

Every function here is fire-and-forget: failures are logged by
``email_service.notify`` and never propagate into the calling operation.
"""
import logging
from collections import defaultdict
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..models.camp import Camp
from ..models.registration import Registration, ParentProfile, Athlete
from ..models.tenant import Tenant
from . import email_templates
from .email_service import notify

logger = logging.getLogger(__name__)


def _parent_name(parent: Optional[ParentProfile]) -> str:
    if parent and parent.first_name:
        return parent.first_name
    return "there"


async def _load(db: AsyncSession, model, id_: Optional[str]):
    if not id_:
        return None
    res = await db.execute(select(model).where(model.id == id_))
    return res.scalar_one_or_none()


async def send_registration_confirmations(db: AsyncSession, registrations: Iterable[Registration]) -> int:
    """One confirmation per parent per camp. Returns the number of emails attempted."""
    grouped = defaultdict(list)
    for reg in registrations:
        grouped[(reg.parent_id, reg.camp_id)].append(reg)

    sent = 0
    for (parent_id, camp_id), regs in grouped.items():
        parent = await _load(db, ParentProfile, parent_id)
        camp = await _load(db, Camp, camp_id)
        if not parent or not camp:
            continue
        tenant = await _load(db, Tenant, camp.tenant_id)
        names: List[str] = []
        for reg in regs:
            athlete = await _load(db, Athlete, reg.athlete_id)
            if athlete:
                names.append(athlete.full_name)
        await notify(
            db,
            tenant_id=camp.tenant_id,
            to_email=parent.email,
            template=email_templates.registration_confirmation(
                parent_name=_parent_name(parent),
                camp_name=camp.name,
                camper_names=names,
                start_date=camp.start_date.isoformat(),
                end_date=camp.end_date.isoformat(),
                total_cents=sum(r.total_price_cents for r in regs),
                brand_name=tenant.name if tenant else None,
            ),
        )
        sent += 1
    return sent


async def send_waitlist_joined(db: AsyncSession, registration: Registration) -> None:
    parent = await _load(db, ParentProfile, registration.parent_id)
    athlete = await _load(db, Athlete, registration.athlete_id)
    camp = await _load(db, Camp, registration.camp_id)
    if not parent or not camp:
        return
    await notify(
        db,
        tenant_id=registration.tenant_id,
        to_email=parent.email,
        template=email_templates.waitlist_joined(
            parent_name=_parent_name(parent),
            camper_name=athlete.full_name if athlete else "Your camper",
            camp_name=camp.name,
            position=registration.waitlist_position or 0,
        ),
    )


async def send_waitlist_offer(db: AsyncSession, registration: Registration) -> None:
    parent = await _load(db, ParentProfile, registration.parent_id)
    athlete = await _load(db, Athlete, registration.athlete_id)
    camp = await _load(db, Camp, registration.camp_id)
    if not parent or not camp:
        return
    expires = registration.waitlist_offer_expires_at
    await notify(
        db,
        tenant_id=registration.tenant_id,
        to_email=parent.email,
        template=email_templates.waitlist_offer(
            parent_name=_parent_name(parent),
            camper_name=athlete.full_name if athlete else "your camper",
            camp_name=camp.name,
            offer_url=f"{settings.APP_BASE_URL}/waitlist/offer/{registration.waitlist_offer_token}",
            expires_at=expires.strftime("%b %d, %Y %H:%M UTC") if expires else "soon",
        ),
    )


async def send_waitlist_offer_expired(db: AsyncSession, registration: Registration) -> None:
    parent = await _load(db, ParentProfile, registration.parent_id)
    athlete = await _load(db, Athlete, registration.athlete_id)
    camp = await _load(db, Camp, registration.camp_id)
    if not parent or not camp:
        return
    await notify(
        db,
        tenant_id=registration.tenant_id,
        to_email=parent.email,
        template=email_templates.waitlist_offer_expired(
            parent_name=_parent_name(parent),
            camper_name=athlete.full_name if athlete else "Your camper",
            camp_name=camp.name,
        ),
    )


async def send_to_licensee(db: AsyncSession, tenant_id: str, template: tuple) -> None:
    """Send to the licensee contact address, copying HQ when configured."""
    tenant = await _load(db, Tenant, tenant_id)
    if tenant and tenant.contact_email:
        await notify(db, tenant_id=None, to_email=tenant.contact_email, template=template)
    if settings.HQ_NOTIFICATION_EMAIL:
        await notify(db, tenant_id=None, to_email=settings.HQ_NOTIFICATION_EMAIL, template=template)
