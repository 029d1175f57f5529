from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from ..models.tenant import LicenseStatus


class LicenseeBase(BaseModel):
    """Base licensee (tenant) schema"""
    name: str = Field(..., min_length=1, max_length=255)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip: Optional[str] = Field(None, max_length=20)
    timezone: str = "America/New_York"
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    license_start_date: Optional[date] = None
    license_end_date: Optional[date] = None
    royalty_rate: Decimal = Field(default=Decimal("0.08"), ge=0, le=1)
    tax_rate_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    stripe_account_id: Optional[str] = None


class LicenseeCreate(LicenseeBase):
    slug: str = Field(..., min_length=2, max_length=100, pattern=r"^[a-z0-9-]+$")


class LicenseeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    timezone: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    license_start_date: Optional[date] = None
    license_end_date: Optional[date] = None
    royalty_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    tax_rate_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    stripe_account_id: Optional[str] = None
    smtp_config: Optional[dict] = None


class LicenseeResponse(LicenseeBase):
    id: str
    slug: str
    license_status: LicenseStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LicenseeListResponse(BaseModel):
    licensees: List[LicenseeResponse]
    total: int
    page: int
    size: int
    pages: int


class LicenseStatusUpdate(BaseModel):
    status: LicenseStatus


class EmailCredentialsUpdate(BaseModel):
    username: str
    password: str
