"""
Royalty invoices. ``admin_router`` is mounted under /admin (HQ only);
``router`` is the licensee's read-only view of its own invoices.
"""
from datetime import date
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.royalty import RoyaltyInvoiceStatus
from ....models.user import User
from ....schemas.royalty import (
    RoyaltyInvoiceResponse, RoyaltyInvoiceDetail, RoyaltyInvoiceListResponse, GenerateInvoiceRequest,
    BulkGenerateRequest, BulkGenerateResult, InvoiceStatusUpdate, InvoiceAdjustment,
    RoyaltyAdminSummary, LicenseeRoyaltySummary, CampWithoutInvoice
)
from ....services.royalty_service import RoyaltyService
from ...deps import require_hq_admin, require_licensee, require_tenant_scope

router = APIRouter()
admin_router = APIRouter()


def _page(invoices, total: int, page: int, size: int) -> RoyaltyInvoiceListResponse:
    return RoyaltyInvoiceListResponse(
        invoices=[RoyaltyInvoiceResponse.model_validate(i) for i in invoices],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size,
    )


# HQ

@admin_router.get("/", response_model=RoyaltyInvoiceListResponse)
async def list_all_invoices(
    tenant_id: Optional[str] = None,
    status: Optional[RoyaltyInvoiceStatus] = None,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    invoices, total = await RoyaltyService.list_invoices(db, tenant_id, status, page, size)
    return _page(invoices, total, page, size)


@admin_router.get("/summary", response_model=RoyaltyAdminSummary)
async def get_admin_summary(
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await RoyaltyService.get_admin_summary(db)


@admin_router.get("/camps-without-invoices", response_model=List[CampWithoutInvoice])
async def get_camps_without_invoices(
    start: Optional[date] = None,
    end: Optional[date] = None,
    tenant_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    camps = await RoyaltyService.get_camps_without_invoices(db, start, end, tenant_id, limit)
    return [
        CampWithoutInvoice(
            id=c.id, tenant_id=c.tenant_id, name=c.name,
            start_date=c.start_date, end_date=c.end_date, status=c.status.value,
        )
        for c in camps
    ]


@admin_router.post("/generate", response_model=RoyaltyInvoiceResponse, status_code=201)
async def generate_invoice(
    payload: GenerateInvoiceRequest,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await RoyaltyService.generate_royalty_invoice_for_session(
            db, payload.camp_id, generated_by=current_user.id, due_in_days=payload.due_in_days
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@admin_router.post("/bulk-generate", response_model=BulkGenerateResult)
async def bulk_generate_invoices(
    payload: BulkGenerateRequest,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await RoyaltyService.bulk_generate_invoices(db, payload.camp_ids, generated_by=current_user.id)


@admin_router.post("/mark-overdue")
async def mark_overdue_invoices(
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return {"marked_overdue": await RoyaltyService.mark_overdue_invoices(db)}


@admin_router.get("/{invoice_id}", response_model=RoyaltyInvoiceDetail)
async def get_invoice(
    invoice_id: str,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await RoyaltyService.get_invoice(db, invoice_id)
    except NotFoundError as e:
        raise_http(e)


@admin_router.patch("/{invoice_id}/status", response_model=RoyaltyInvoiceResponse)
async def update_invoice_status(
    invoice_id: str,
    payload: InvoiceStatusUpdate,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await RoyaltyService.update_invoice_status(
            db,
            invoice_id,
            payload.status,
            paid_amount_cents=payload.paid_amount_cents,
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
            notes=payload.notes,
            user_id=current_user.id,
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@admin_router.post("/{invoice_id}/adjustments", response_model=RoyaltyInvoiceResponse)
async def add_adjustment(
    invoice_id: str,
    payload: InvoiceAdjustment,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await RoyaltyService.add_adjustment(
            db, invoice_id, payload.amount_dollars, payload.notes, user_id=current_user.email
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


# Licensee

@router.get("/", response_model=RoyaltyInvoiceListResponse)
async def list_my_invoices(
    status: Optional[RoyaltyInvoiceStatus] = None,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_licensee),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    invoices, total = await RoyaltyService.list_invoices(db, tenant_id, status, page, size)
    return _page(invoices, total, page, size)


@router.get("/summary", response_model=LicenseeRoyaltySummary)
async def get_my_royalty_summary(
    season_start: Optional[date] = None,
    season_end: Optional[date] = None,
    current_user: User = Depends(require_licensee),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await RoyaltyService.get_licensee_royalty_summary(db, tenant_id, season_start, season_end)


@router.get("/{invoice_id}", response_model=RoyaltyInvoiceDetail)
async def get_my_invoice(
    invoice_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await RoyaltyService.get_invoice(db, invoice_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)
