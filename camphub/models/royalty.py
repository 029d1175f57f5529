from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Integer, Date, DateTime, Enum
from sqlalchemy.orm import relationship
from .base import UUIDBaseModel
import enum


class RoyaltyInvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    INVOICED = "invoiced"
    PAID = "paid"
    OVERDUE = "overdue"
    DISPUTED = "disputed"
    WAIVED = "waived"


class RoyaltyPeriodType(str, enum.Enum):
    CAMP_SESSION = "camp_session"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class RoyaltyInvoice(UUIDBaseModel):
    """Royalty owed by a licensee to HQ for a camp session or period."""
    __tablename__ = "royalty_invoices"

    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    camp_id = Column(String, ForeignKey("camps.id"), nullable=True, index=True)
    invoice_number = Column(String(64), unique=True, nullable=False)

    period_type = Column(Enum(RoyaltyPeriodType), default=RoyaltyPeriodType.CAMP_SESSION, nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)

    # Revenue (cents)
    gross_revenue_cents = Column(Integer, default=0, nullable=False)
    registration_revenue_cents = Column(Integer, default=0, nullable=False)
    addon_revenue_cents = Column(Integer, default=0, nullable=False)
    merchandise_revenue_cents = Column(Integer, default=0, nullable=False)
    refunds_total_cents = Column(Integer, default=0, nullable=False)
    net_revenue_cents = Column(Integer, default=0, nullable=False)

    # Royalty
    royalty_rate_bps = Column(Integer, nullable=False)
    royalty_due_cents = Column(Integer, default=0, nullable=False)
    adjustment_cents = Column(Integer, default=0, nullable=False)
    adjustment_notes = Column(Text)
    total_due_cents = Column(Integer, default=0, nullable=False)

    status = Column(Enum(RoyaltyInvoiceStatus), default=RoyaltyInvoiceStatus.PENDING, nullable=False)
    due_date = Column(Date)
    generated_at = Column(DateTime)
    generated_by = Column(String)

    # Payment
    paid_at = Column(DateTime)
    paid_amount_cents = Column(Integer)
    payment_method = Column(String(50))
    payment_reference = Column(String(255))
    paid_by = Column(String)

    notes = Column(Text)
    dispute_reason = Column(Text)
    disputed_at = Column(DateTime)
    resolved_at = Column(DateTime)

    tenant = relationship("Tenant")
    camp = relationship("Camp")
    line_items = relationship("RoyaltyLineItem", back_populates="invoice", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<RoyaltyInvoice(number='{self.invoice_number}', status='{self.status}')>"


class RoyaltyLineItem(UUIDBaseModel):
    __tablename__ = "royalty_line_items"

    invoice_id = Column(String, ForeignKey("royalty_invoices.id"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    category = Column(String(50), nullable=False)
    quantity = Column(Integer, default=1)
    unit_amount_cents = Column(Integer, default=0)
    total_amount_cents = Column(Integer, default=0)
    royalty_applies = Column(Boolean, default=True)

    invoice = relationship("RoyaltyInvoice", back_populates="line_items")
