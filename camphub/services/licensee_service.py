import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, and_, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.crypto import encrypt_json
from ..core.exceptions import ConflictError, NotFoundError
from ..models.tenant import Tenant, LicenseStatus
from ..schemas.tenant import LicenseeCreate, LicenseeUpdate

logger = logging.getLogger(__name__)


class LicenseeService:

    @staticmethod
    async def get_licensee(db: AsyncSession, tenant_id: str) -> Tenant:
        tenant = (await db.execute(select(Tenant).where(Tenant.id == tenant_id))).scalar_one_or_none()
        if not tenant:
            raise NotFoundError("Licensee not found")
        return tenant

    @staticmethod
    async def get_by_slug(db: AsyncSession, slug: str) -> Optional[Tenant]:
        result = await db.execute(select(Tenant).where(Tenant.slug == slug))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_licensees(
        db: AsyncSession,
        *,
        page: int = 1,
        size: int = 20,
        search: Optional[str] = None,
        status: Optional[LicenseStatus] = None,
    ) -> Tuple[List[Tenant], int]:
        conditions = []
        if search:
            term = f"%{search}%"
            conditions.append(or_(Tenant.name.ilike(term), Tenant.slug.ilike(term), Tenant.city.ilike(term)))
        if status:
            conditions.append(Tenant.license_status == status)

        query = select(Tenant)
        count_query = select(func.count(Tenant.id))
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(query.order_by(Tenant.name).offset((page - 1) * size).limit(size))
        return list(result.scalars().all()), total

    @staticmethod
    async def create_licensee(db: AsyncSession, data: LicenseeCreate) -> Tenant:
        if await LicenseeService.get_by_slug(db, data.slug):
            raise ConflictError(f"A licensee with slug '{data.slug}' already exists")
        tenant = Tenant(license_status=LicenseStatus.ACTIVE, **data.model_dump())
        db.add(tenant)
        await db.flush()
        logger.info(f"Licensee created: {tenant.name} ({tenant.slug})")
        return tenant

    @staticmethod
    async def update_licensee(db: AsyncSession, tenant_id: str, data: LicenseeUpdate) -> Tenant:
        tenant = await LicenseeService.get_licensee(db, tenant_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(tenant, field, value)
        await db.flush()
        return tenant

    @staticmethod
    async def set_license_status(db: AsyncSession, tenant_id: str, status: LicenseStatus) -> Tenant:
        tenant = await LicenseeService.get_licensee(db, tenant_id)
        previous = tenant.license_status
        tenant.license_status = status
        await db.flush()
        logger.info(f"Licensee {tenant.slug} license status {previous.value} -> {status.value}")
        return tenant

    @staticmethod
    async def set_email_credentials(db: AsyncSession, tenant_id: str, username: str, password: str) -> Tenant:
        """Store SMTP credentials as a Fernet token; host/port live in the plain ``smtp_config``."""
        tenant = await LicenseeService.get_licensee(db, tenant_id)
        tenant.smtp_credentials_encrypted = encrypt_json({"username": username, "password": password})
        await db.flush()
        logger.info(f"Email credentials updated for licensee {tenant.slug}")
        return tenant
