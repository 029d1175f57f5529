from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict
from datetime import date, datetime
from ..models.venue import FacilityType, IndoorOutdoor, ContractStatus


class VenueBase(BaseModel):
    """Base venue schema"""
    name: str = Field(..., min_length=1, max_length=255)
    short_name: Optional[str] = Field(None, max_length=100)
    address_line_1: str = Field(..., min_length=1, max_length=255)
    address_line_2: Optional[str] = None
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(default="US", max_length=2)
    facility_type: FacilityType = FacilityType.OTHER
    indoor_outdoor: IndoorOutdoor = IndoorOutdoor.BOTH
    max_daily_capacity: Optional[int] = Field(None, ge=0)
    primary_contact_name: Optional[str] = None
    primary_contact_email: Optional[EmailStr] = None
    primary_contact_phone: Optional[str] = None
    notes: Optional[str] = None


class VenueCreate(VenueBase):
    # HQ may create tenant venues; licensees always create for themselves
    tenant_id: Optional[str] = None


class VenueUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    short_name: Optional[str] = None
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    facility_type: Optional[FacilityType] = None
    indoor_outdoor: Optional[IndoorOutdoor] = None
    max_daily_capacity: Optional[int] = Field(None, ge=0)
    primary_contact_name: Optional[str] = None
    primary_contact_email: Optional[EmailStr] = None
    primary_contact_phone: Optional[str] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class VenueResponse(VenueBase):
    id: str
    tenant_id: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class VenueListResponse(BaseModel):
    venues: List[VenueResponse]
    total: int
    page: int
    size: int
    pages: int


class VenueStats(BaseModel):
    total_venues: int
    active_venues: int
    by_facility_type: Dict[str, int]
    contracts_by_status: Dict[str, int]


class ContractBase(BaseModel):
    rental_rate_cents: Optional[int] = Field(None, ge=0)
    currency: str = "USD"
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    deposit_cents: Optional[int] = Field(None, ge=0)
    payment_due_date: Optional[date] = None
    insurance_requirements: Optional[str] = None
    cancellation_policy: Optional[str] = None
    setup_time_minutes: Optional[int] = Field(None, ge=0)
    cleanup_time_minutes: Optional[int] = Field(None, ge=0)
    special_conditions: Optional[str] = None
    expiration_date: Optional[date] = None
    notes: Optional[str] = None


class ContractCreate(ContractBase):
    tenant_id: Optional[str] = None


class ContractUpdate(ContractBase):
    currency: Optional[str] = None
    status: Optional[ContractStatus] = None


class ContractResponse(ContractBase):
    id: str
    venue_id: str
    tenant_id: Optional[str] = None
    status: ContractStatus
    document_url: Optional[str] = None
    document_name: Optional[str] = None
    sent_at: Optional[datetime] = None
    sent_to_email: Optional[str] = None
    signed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SendContractRequest(BaseModel):
    to_email: EmailStr
