import logging
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import select, and_, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from ..models.camp import Camp, CampDay, CampStatus, Addon
from ..models.registration import Registration, RegistrationStatus
from ..schemas.camp import CampCreate, CampUpdate, AddonCreate, PublicCampResponse

logger = logging.getLogger(__name__)

PUBLIC_STATUSES = [CampStatus.PUBLISHED, CampStatus.REGISTRATION_OPEN, CampStatus.REGISTRATION_CLOSED]


class CampService:

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
    async def list_camps(
        db: AsyncSession,
        tenant_id: Optional[str],
        *,
        status: Optional[CampStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Camp], int]:
        conditions = []
        if tenant_id:
            conditions.append(Camp.tenant_id == tenant_id)
        if status:
            conditions.append(Camp.status == status)
        if date_from:
            conditions.append(Camp.end_date >= date_from)
        if date_to:
            conditions.append(Camp.start_date <= date_to)
        if search:
            term = f"%{search}%"
            conditions.append(or_(Camp.name.ilike(term), Camp.slug.ilike(term)))

        query = select(Camp)
        count_query = select(func.count(Camp.id))
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(
            query.order_by(Camp.start_date.asc()).offset((page - 1) * size).limit(size)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def create_camp(db: AsyncSession, tenant_id: str, data: CampCreate) -> Camp:
        if data.end_date < data.start_date:
            raise BusinessRuleError("End date must be on or after start date")
        if data.min_age > data.max_age:
            raise BusinessRuleError("Minimum age cannot exceed maximum age")
        existing = await db.execute(
            select(Camp.id).where(and_(Camp.tenant_id == tenant_id, Camp.slug == data.slug))
        )
        if existing.scalar_one_or_none():
            raise ConflictError(f"A camp with slug '{data.slug}' already exists")

        camp = Camp(tenant_id=tenant_id, **data.model_dump())
        db.add(camp)
        await db.flush()
        logger.info(f"Camp created: {camp.name} ({camp.id}) for tenant {tenant_id}")
        return camp

    @staticmethod
    async def update_camp(db: AsyncSession, camp_id: str, tenant_id: Optional[str], data: CampUpdate) -> Camp:
        camp = await CampService.get_camp(db, camp_id, tenant_id)
        if camp.is_locked:
            raise BusinessRuleError("Camp is locked and cannot be modified")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(camp, field, value)
        if camp.end_date < camp.start_date:
            raise BusinessRuleError("End date must be on or after start date")
        await db.flush()
        return camp

    @staticmethod
    async def delete_camp(db: AsyncSession, camp_id: str, tenant_id: Optional[str]) -> None:
        camp = await CampService.get_camp(db, camp_id, tenant_id)
        registrations = (await db.execute(
            select(func.count(Registration.id)).where(Registration.camp_id == camp.id)
        )).scalar() or 0
        if registrations:
            raise ConflictError("Camp has registrations; cancel it instead")
        camp = (await db.execute(
            select(Camp)
            .where(Camp.id == camp.id)
            .options(
                selectinload(Camp.days).selectinload(CampDay.attendance),
                selectinload(Camp.registrations),
                selectinload(Camp.staff_assignments),
                selectinload(Camp.staff_requests),
            )
            .execution_options(populate_existing=True)
        )).scalar_one()
        await db.delete(camp)
        await db.flush()
        logger.info(f"Camp deleted: {camp_id}")

    @staticmethod
    async def spots_remaining(db: AsyncSession, camp: Camp) -> int:
        taken = (await db.execute(
            select(func.count(Registration.id)).where(
                and_(
                    Registration.camp_id == camp.id,
                    Registration.status.in_([RegistrationStatus.CONFIRMED, RegistrationStatus.PENDING]),
                )
            )
        )).scalar() or 0
        return max(0, (camp.capacity or 0) - taken)

    @staticmethod
    async def get_public_camp(db: AsyncSession, camp_id: str) -> PublicCampResponse:
        result = await db.execute(
            select(Camp).where(and_(Camp.id == camp_id, Camp.status.in_(PUBLIC_STATUSES)))
        )
        camp = result.scalar_one_or_none()
        if not camp:
            raise NotFoundError("Camp not found")
        return PublicCampResponse(
            id=camp.id,
            name=camp.name,
            description=camp.description,
            start_date=camp.start_date,
            end_date=camp.end_date,
            start_time=camp.start_time,
            end_time=camp.end_time,
            min_age=camp.min_age,
            max_age=camp.max_age,
            price_cents=camp.price_cents,
            early_bird_price_cents=camp.early_bird_price_cents,
            early_bird_deadline=camp.early_bird_deadline,
            capacity=camp.capacity,
            spots_remaining=await CampService.spots_remaining(db, camp),
            status=camp.status,
        )

    # Add-ons

    @staticmethod
    async def list_addons(db: AsyncSession, tenant_id: str, camp_id: Optional[str] = None) -> List[Addon]:
        conditions = [Addon.tenant_id == tenant_id, Addon.is_active.is_(True)]
        if camp_id:
            conditions.append(or_(Addon.camp_id == camp_id, Addon.camp_id.is_(None)))
        result = await db.execute(select(Addon).where(and_(*conditions)).order_by(Addon.name))
        return list(result.scalars().all())

    @staticmethod
    async def create_addon(db: AsyncSession, tenant_id: str, data: AddonCreate) -> Addon:
        if data.camp_id:
            await CampService.get_camp(db, data.camp_id, tenant_id)
        addon = Addon(tenant_id=tenant_id, **data.model_dump())
        db.add(addon)
        await db.flush()
        return addon

    @staticmethod
    async def deactivate_addon(db: AsyncSession, tenant_id: str, addon_id: str) -> Addon:
        result = await db.execute(select(Addon).where(and_(Addon.id == addon_id, Addon.tenant_id == tenant_id)))
        addon = result.scalar_one_or_none()
        if not addon:
            raise NotFoundError("Add-on not found")
        addon.is_active = False
        await db.flush()
        return addon
