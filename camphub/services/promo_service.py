import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from ..models.base import utcnow
from ..models.registration import PromoCode
from ..schemas.registration import PromoCodeCreate, PromoCodeUpdate

logger = logging.getLogger(__name__)


def is_promo_usable(promo: PromoCode, today: date) -> bool:
    if not promo.is_active:
        return False
    if promo.valid_from and today < promo.valid_from:
        return False
    if promo.valid_until and today > promo.valid_until:
        return False
    if promo.max_uses is not None and (promo.current_uses or 0) >= promo.max_uses:
        return False
    return True


class PromoCodeService:

    @staticmethod
    async def _get(db: AsyncSession, tenant_id: str, promo_id: str) -> PromoCode:
        result = await db.execute(
            select(PromoCode).where(and_(PromoCode.id == promo_id, PromoCode.tenant_id == tenant_id))
        )
        promo = result.scalar_one_or_none()
        if not promo:
            raise NotFoundError("Promo code not found")
        return promo

    @staticmethod
    async def find_by_code(db: AsyncSession, tenant_id: str, code: str) -> Optional[PromoCode]:
        result = await db.execute(
            select(PromoCode).where(
                and_(PromoCode.tenant_id == tenant_id, PromoCode.code == code.strip().upper())
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def find_usable(db: AsyncSession, tenant_id: str, code: Optional[str], today: Optional[date] = None) -> Optional[PromoCode]:
        """Promo code for checkout, or None when the code is blank, unknown or not currently usable."""
        if not code or not code.strip():
            return None
        promo = await PromoCodeService.find_by_code(db, tenant_id, code)
        if promo and is_promo_usable(promo, today or utcnow().date()):
            return promo
        logger.info(f"Promo code '{code}' not usable for tenant {tenant_id}")
        return None

    @staticmethod
    async def validate_promo_code(db: AsyncSession, tenant_id: str, code: str) -> PromoCode:
        promo = await PromoCodeService.find_by_code(db, tenant_id, code)
        if not promo:
            raise NotFoundError("Invalid promo code")
        if not is_promo_usable(promo, utcnow().date()):
            raise BusinessRuleError("This promo code is no longer valid")
        return promo

    @staticmethod
    async def list_codes(db: AsyncSession, tenant_id: str) -> List[PromoCode]:
        result = await db.execute(
            select(PromoCode).where(PromoCode.tenant_id == tenant_id).order_by(PromoCode.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_code(db: AsyncSession, tenant_id: str, data: PromoCodeCreate) -> PromoCode:
        code = data.code.strip().upper()
        if await PromoCodeService.find_by_code(db, tenant_id, code):
            raise ConflictError(f"Promo code {code} already exists")
        if data.discount_type.value == "percentage" and data.discount_value > 100:
            raise BusinessRuleError("Percentage discount cannot exceed 100")
        promo = PromoCode(tenant_id=tenant_id, **data.model_dump(exclude={"code"}), code=code, current_uses=0)
        db.add(promo)
        await db.flush()
        return promo

    @staticmethod
    async def update_code(db: AsyncSession, tenant_id: str, promo_id: str, data: PromoCodeUpdate) -> PromoCode:
        promo = await PromoCodeService._get(db, tenant_id, promo_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(promo, field, value)
        await db.flush()
        return promo

    @staticmethod
    async def delete_code(db: AsyncSession, tenant_id: str, promo_id: str) -> None:
        promo = await PromoCodeService._get(db, tenant_id, promo_id)
        # Codes already used stay for the registration history
        if promo.current_uses:
            promo.is_active = False
        else:
            await db.delete(promo)
        await db.flush()
