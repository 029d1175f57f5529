"""
Venues and venue rental contracts.

Licensee users see only their own venues; HQ admins see all of them and
can pass ``?tenant_id=`` to narrow the view.
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.user import User
from ....schemas.venue import (
    VenueCreate, VenueUpdate, VenueResponse, VenueListResponse, VenueStats,
    ContractCreate, ContractUpdate, ContractResponse, SendContractRequest
)
from ....services.venue_service import VenueService
from ...deps import require_licensee, get_tenant_scope

router = APIRouter()
contracts_router = APIRouter()


@router.get("/", response_model=VenueListResponse)
async def list_venues(
    search: Optional[str] = None,
    include_inactive: bool = False,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    venues, total = await VenueService.list_venues(
        db, tenant_id, search=search, include_inactive=include_inactive, page=page, size=size
    )
    return VenueListResponse(
        venues=[VenueResponse.model_validate(v) for v in venues],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size,
    )


@router.get("/stats", response_model=VenueStats)
async def get_venue_stats(
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await VenueService.get_venue_stats(db, tenant_id)


@router.post("/", response_model=VenueResponse, status_code=201)
async def create_venue(
    payload: VenueCreate,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await VenueService.create_venue(db, payload, tenant_id)


@router.get("/{venue_id}", response_model=VenueResponse)
async def get_venue(
    venue_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await VenueService.get_venue(db, venue_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.patch("/{venue_id}", response_model=VenueResponse)
async def update_venue(
    venue_id: str,
    payload: VenueUpdate,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await VenueService.update_venue(db, venue_id, payload, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.delete("/{venue_id}", response_model=VenueResponse)
async def archive_venue(
    venue_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Venues are archived, never hard-deleted"""
    try:
        return await VenueService.archive_venue(db, venue_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.get("/{venue_id}/contracts", response_model=List[ContractResponse])
async def list_contracts(
    venue_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await VenueService.list_contracts(db, venue_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.post("/{venue_id}/contracts", response_model=ContractResponse, status_code=201)
async def create_contract(
    venue_id: str,
    payload: ContractCreate,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await VenueService.create_contract(db, venue_id, payload, current_user.id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


# Contracts

@contracts_router.post("/check-expired")
async def check_expired_contracts(
    current_user: User = Depends(require_licensee),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return {"expired": await VenueService.check_expired_contracts(db)}


@contracts_router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await VenueService.get_contract(db, contract_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@contracts_router.patch("/{contract_id}", response_model=ContractResponse)
async def update_contract(
    contract_id: str,
    payload: ContractUpdate,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await VenueService.update_contract(db, contract_id, payload, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@contracts_router.delete("/{contract_id}", status_code=204)
async def delete_contract(
    contract_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await VenueService.delete_contract(db, contract_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@contracts_router.post("/{contract_id}/document", response_model=ContractResponse)
async def upload_contract_document(
    contract_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    content = await file.read()
    try:
        return await VenueService.upload_contract_document(db, contract_id, file.filename, content, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@contracts_router.get("/{contract_id}/pdf")
async def download_contract_pdf(
    contract_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Response:
    try:
        pdf_bytes = await VenueService.generate_contract_pdf(db, contract_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=contract_{contract_id}.pdf"}
    )


@contracts_router.post("/{contract_id}/send", response_model=ContractResponse)
async def send_contract(
    contract_id: str,
    payload: SendContractRequest,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Email the contract to the venue contact and mark it sent"""
    try:
        return await VenueService.send_contract(db, contract_id, payload.to_email, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@contracts_router.post("/{contract_id}/mark-sent", response_model=ContractResponse)
async def mark_contract_sent(
    contract_id: str,
    payload: SendContractRequest,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await VenueService.mark_sent(db, contract_id, payload.to_email, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@contracts_router.post("/{contract_id}/mark-signed", response_model=ContractResponse)
async def mark_contract_signed(
    contract_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await VenueService.mark_signed(db, contract_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)
