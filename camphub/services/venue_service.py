import logging
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles
from sqlalchemy import select, and_, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import BusinessRuleError, NotFoundError
from ..models.base import utcnow
from ..models.venue import Venue, VenueContract, ContractStatus
from ..schemas.venue import VenueCreate, VenueUpdate, VenueStats, ContractCreate, ContractUpdate
from . import email_templates
from .email_service import notify
from .pdf_service import pdf_service, _fmt_date

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


class VenueService:
    """Venues and their rental contracts. A ``tenant_id`` of None means HQ scope (all venues)."""

    @staticmethod
    async def get_venue(db: AsyncSession, venue_id: str, tenant_id: Optional[str] = None) -> Venue:
        stmt = select(Venue).where(Venue.id == venue_id)
        if tenant_id:
            stmt = stmt.where(Venue.tenant_id == tenant_id)
        venue = (await db.execute(stmt)).scalar_one_or_none()
        if not venue:
            raise NotFoundError("Venue not found")
        return venue

    @staticmethod
    async def list_venues(
        db: AsyncSession,
        tenant_id: Optional[str] = None,
        *,
        search: Optional[str] = None,
        include_inactive: bool = False,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Venue], int]:
        conditions = []
        if tenant_id:
            conditions.append(Venue.tenant_id == tenant_id)
        if not include_inactive:
            conditions.append(Venue.is_active.is_(True))
        if search:
            term = f"%{search}%"
            conditions.append(or_(Venue.name.ilike(term), Venue.city.ilike(term), Venue.short_name.ilike(term)))

        query = select(Venue)
        count_query = select(func.count(Venue.id))
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(query.order_by(Venue.name).offset((page - 1) * size).limit(size))
        return list(result.scalars().all()), total

    @staticmethod
    async def create_venue(db: AsyncSession, data: VenueCreate, tenant_id: Optional[str] = None) -> Venue:
        payload = data.model_dump(exclude={"tenant_id"})
        venue = Venue(tenant_id=tenant_id or data.tenant_id, is_active=True, **payload)
        db.add(venue)
        await db.flush()
        logger.info(f"Venue created: {venue.name} ({venue.id})")
        return venue

    @staticmethod
    async def update_venue(db: AsyncSession, venue_id: str, data: VenueUpdate, tenant_id: Optional[str] = None) -> Venue:
        venue = await VenueService.get_venue(db, venue_id, tenant_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(venue, field, value)
        await db.flush()
        return venue

    @staticmethod
    async def archive_venue(db: AsyncSession, venue_id: str, tenant_id: Optional[str] = None) -> Venue:
        venue = await VenueService.get_venue(db, venue_id, tenant_id)
        venue.is_active = False
        await db.flush()
        logger.info(f"Venue archived: {venue.id}")
        return venue

    @staticmethod
    async def get_venue_stats(db: AsyncSession, tenant_id: Optional[str] = None) -> VenueStats:
        venue_filter = [Venue.tenant_id == tenant_id] if tenant_id else []
        contract_filter = [VenueContract.tenant_id == tenant_id] if tenant_id else []

        total = (await db.execute(select(func.count(Venue.id)).where(*venue_filter))).scalar() or 0
        active = (await db.execute(
            select(func.count(Venue.id)).where(Venue.is_active.is_(True), *venue_filter)
        )).scalar() or 0
        by_type = await db.execute(
            select(Venue.facility_type, func.count(Venue.id)).where(*venue_filter).group_by(Venue.facility_type)
        )
        by_status = await db.execute(
            select(VenueContract.status, func.count(VenueContract.id))
            .where(*contract_filter)
            .group_by(VenueContract.status)
        )
        return VenueStats(
            total_venues=total,
            active_venues=active,
            by_facility_type={kind.value: count for kind, count in by_type.all()},
            contracts_by_status={status.value: count for status, count in by_status.all()},
        )

    # Contracts

    @staticmethod
    async def get_contract(db: AsyncSession, contract_id: str, tenant_id: Optional[str] = None) -> VenueContract:
        stmt = select(VenueContract).where(VenueContract.id == contract_id)
        if tenant_id:
            stmt = stmt.where(VenueContract.tenant_id == tenant_id)
        contract = (await db.execute(stmt)).scalar_one_or_none()
        if not contract:
            raise NotFoundError("Contract not found")
        return contract

    @staticmethod
    async def list_contracts(db: AsyncSession, venue_id: str, tenant_id: Optional[str] = None) -> List[VenueContract]:
        await VenueService.get_venue(db, venue_id, tenant_id)
        result = await db.execute(
            select(VenueContract)
            .where(VenueContract.venue_id == venue_id)
            .order_by(VenueContract.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_contract(
        db: AsyncSession, venue_id: str, data: ContractCreate, user_id: str, tenant_id: Optional[str] = None
    ) -> VenueContract:
        venue = await VenueService.get_venue(db, venue_id, tenant_id)
        if data.contract_start_date and data.contract_end_date and data.contract_end_date < data.contract_start_date:
            raise BusinessRuleError("Contract end date must be on or after start date")
        contract = VenueContract(
            venue_id=venue.id,
            tenant_id=tenant_id or data.tenant_id or venue.tenant_id,
            status=ContractStatus.DRAFT,
            created_by=user_id,
            **data.model_dump(exclude={"tenant_id"}),
        )
        db.add(contract)
        await db.flush()
        logger.info(f"Contract {contract.id} created for venue {venue.id}")
        return contract

    @staticmethod
    async def update_contract(
        db: AsyncSession, contract_id: str, data: ContractUpdate, tenant_id: Optional[str] = None
    ) -> VenueContract:
        contract = await VenueService.get_contract(db, contract_id, tenant_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(contract, field, value)
        await db.flush()
        return contract

    @staticmethod
    async def delete_contract(db: AsyncSession, contract_id: str, tenant_id: Optional[str] = None) -> None:
        contract = await VenueService.get_contract(db, contract_id, tenant_id)
        if contract.status == ContractStatus.SIGNED:
            raise BusinessRuleError("Signed contracts cannot be deleted")
        await db.delete(contract)
        await db.flush()

    @staticmethod
    async def mark_sent(db: AsyncSession, contract_id: str, email: str, tenant_id: Optional[str] = None) -> VenueContract:
        contract = await VenueService.get_contract(db, contract_id, tenant_id)
        if contract.status == ContractStatus.SIGNED:
            raise BusinessRuleError("Contract is already signed")
        contract.status = ContractStatus.SENT
        contract.sent_at = utcnow()
        contract.sent_to_email = email
        await db.flush()
        return contract

    @staticmethod
    async def mark_signed(db: AsyncSession, contract_id: str, tenant_id: Optional[str] = None) -> VenueContract:
        contract = await VenueService.get_contract(db, contract_id, tenant_id)
        if contract.status == ContractStatus.EXPIRED:
            raise BusinessRuleError("Contract has expired")
        contract.status = ContractStatus.SIGNED
        contract.signed_at = utcnow()
        await db.flush()
        logger.info(f"Contract {contract.id} signed")
        return contract

    @staticmethod
    async def check_expired_contracts(db: AsyncSession) -> int:
        today = utcnow().date()
        result = await db.execute(
            select(VenueContract).where(
                and_(
                    VenueContract.expiration_date.is_not(None),
                    VenueContract.expiration_date < today,
                    VenueContract.status != ContractStatus.EXPIRED,
                )
            )
        )
        expired = list(result.scalars().all())
        for contract in expired:
            contract.status = ContractStatus.EXPIRED
        await db.flush()
        if expired:
            logger.info(f"Marked {len(expired)} venue contract(s) expired")
        return len(expired)

    @staticmethod
    async def upload_contract_document(
        db: AsyncSession,
        contract_id: str,
        filename: Optional[str],
        content: bytes,
        tenant_id: Optional[str] = None,
    ) -> VenueContract:
        contract = await VenueService.get_contract(db, contract_id, tenant_id)

        if len(content) > settings.MAX_FILE_SIZE_MB * 1024 * 1024:
            raise BusinessRuleError(f"File exceeds the {settings.MAX_FILE_SIZE_MB} MB limit")
        if Path(filename or "").suffix.lower() != ".pdf" or not content.startswith(PDF_MAGIC):
            raise BusinessRuleError("Only PDF documents are accepted")

        upload_dir = Path(settings.UPLOAD_DIR) / "contracts" / contract.id
        upload_dir.mkdir(parents=True, exist_ok=True)
        file_path = upload_dir / f"{uuid.uuid4()}.pdf"
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(content)

        contract.document_url = str(file_path)
        contract.document_name = filename
        await db.flush()
        logger.info(f"Document uploaded for contract {contract.id} ({len(content)} bytes)")
        return contract

    @staticmethod
    async def _read_document(contract: VenueContract) -> Optional[bytes]:
        if not contract.document_url:
            return None
        path = Path(contract.document_url)
        if not path.is_file():
            logger.warning(f"Contract {contract.id} document missing at {path}")
            return None
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    @staticmethod
    async def generate_contract_pdf(db: AsyncSession, contract_id: str, tenant_id: Optional[str] = None) -> bytes:
        contract = await VenueService.get_contract(db, contract_id, tenant_id)
        venue = await VenueService.get_venue(db, contract.venue_id)
        document = await VenueService._read_document(contract)
        return pdf_service.generate_contract_pdf(contract, venue, document)

    @staticmethod
    async def send_contract(
        db: AsyncSession, contract_id: str, to_email: str, tenant_id: Optional[str] = None
    ) -> VenueContract:
        contract = await VenueService.get_contract(db, contract_id, tenant_id)
        venue = await VenueService.get_venue(db, contract.venue_id)
        document_url = None
        if contract.document_url:
            document_url = f"{settings.APP_BASE_URL.rstrip('/')}/api/v1/contracts/{contract.id}/pdf"

        await notify(
            db,
            tenant_id=contract.tenant_id,
            to_email=to_email,
            template=email_templates.venue_contract_sent(
                venue_name=venue.name,
                start_date=_fmt_date(contract.contract_start_date),
                end_date=_fmt_date(contract.contract_end_date),
                rental_rate_cents=contract.rental_rate_cents or 0,
                document_url=document_url,
            ),
        )
        return await VenueService.mark_sent(db, contract.id, to_email, tenant_id)
