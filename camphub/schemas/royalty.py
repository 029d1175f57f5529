from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime
from ..models.royalty import RoyaltyInvoiceStatus, RoyaltyPeriodType


class RoyaltyLineItemResponse(BaseModel):
    id: str
    description: str
    category: str
    quantity: int
    unit_amount_cents: int
    total_amount_cents: int
    royalty_applies: bool

    model_config = {"from_attributes": True}


class RoyaltyInvoiceResponse(BaseModel):
    id: str
    tenant_id: str
    camp_id: Optional[str] = None
    invoice_number: str
    period_type: RoyaltyPeriodType
    period_start: date
    period_end: date
    gross_revenue_cents: int
    registration_revenue_cents: int
    addon_revenue_cents: int
    merchandise_revenue_cents: int
    refunds_total_cents: int
    net_revenue_cents: int
    royalty_rate_bps: int
    royalty_due_cents: int
    adjustment_cents: int
    adjustment_notes: Optional[str] = None
    total_due_cents: int
    status: RoyaltyInvoiceStatus
    due_date: Optional[date] = None
    generated_at: Optional[datetime] = None
    generated_by: Optional[str] = None
    paid_at: Optional[datetime] = None
    paid_amount_cents: Optional[int] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    dispute_reason: Optional[str] = None
    disputed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RoyaltyInvoiceDetail(RoyaltyInvoiceResponse):
    line_items: List[RoyaltyLineItemResponse] = Field(default_factory=list)


class RoyaltyInvoiceListResponse(BaseModel):
    invoices: List[RoyaltyInvoiceResponse]
    total: int
    page: int
    size: int
    pages: int


class GenerateInvoiceRequest(BaseModel):
    camp_id: str
    due_in_days: int = Field(default=30, ge=1, le=365)


class BulkGenerateRequest(BaseModel):
    camp_ids: List[str] = Field(..., min_length=1)


class BulkGenerateError(BaseModel):
    camp_id: str
    error: str


class BulkGenerateResult(BaseModel):
    generated: int
    failed: int
    errors: List[BulkGenerateError]


class InvoiceStatusUpdate(BaseModel):
    status: RoyaltyInvoiceStatus
    paid_amount_cents: Optional[int] = Field(None, ge=0)
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None


class InvoiceAdjustment(BaseModel):
    amount_dollars: float
    notes: str = Field(..., min_length=1)


class RoyaltyAdminSummary(BaseModel):
    total_invoiced: int
    total_paid: int
    total_outstanding: int
    total_overdue: int
    by_status: Dict[str, int]


class CampRoyaltyRow(BaseModel):
    camp_id: str
    camp_name: str
    camp_slug: str
    start_date: date
    end_date: date
    status: str
    director_name: Optional[str] = None
    camper_count: int
    registration_revenue_cents: int
    addon_revenue_cents: int
    gross_revenue_cents: int
    refunds_cents: int
    net_revenue_cents: int
    royalty_rate_bps: int
    royalty_due_cents: int
    royalty_status: str
    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_generated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class RoyaltySummaryTotals(BaseModel):
    total_gross_revenue_cents: int
    total_net_revenue_cents: int
    total_royalty_due_cents: int
    total_royalty_paid_cents: int
    total_outstanding_cents: int
    sessions_count: int
    sessions_invoiced: int
    sessions_paid: int
    compliance_rate: int


class LicenseeRoyaltySummary(BaseModel):
    period_start: date
    period_end: date
    royalty_rate_bps: int
    totals: RoyaltySummaryTotals
    camps: List[CampRoyaltyRow]


class CampWithoutInvoice(BaseModel):
    id: str
    tenant_id: str
    name: str
    start_date: date
    end_date: date
    status: str
