from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime
from ..models.registration import RegistrationStatus, PaymentStatus, DiscountType


class ParentInfo(BaseModel):
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None


class CamperInfo(BaseModel):
    athlete_id: Optional[str] = None
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    date_of_birth: Optional[date] = None
    grade: Optional[str] = None
    school: Optional[str] = None
    shirt_size: Optional[str] = None
    medical_notes: Optional[str] = None
    allergies: Optional[str] = None
    special_considerations: Optional[str] = None
    friend_requests: List[str] = Field(default_factory=list)


class AddonSelection(BaseModel):
    addon_id: str
    quantity: int = Field(default=1, ge=1)
    # Index of the camper this addon is for; None means the first camper
    camper_index: Optional[int] = None


class CheckoutRequest(BaseModel):
    camp_id: str
    tenant_id: Optional[str] = None
    parent: ParentInfo
    campers: List[CamperInfo] = Field(default_factory=list)
    addons: List[AddonSelection] = Field(default_factory=list)
    promo_code: Optional[str] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutResponse(BaseModel):
    registration_ids: List[str]
    checkout_url: str
    session_id: str


class DemoConfirmRequest(BaseModel):
    session_id: str


class RegistrationAddonResponse(BaseModel):
    id: str
    addon_id: str
    quantity: int
    price_cents: int

    model_config = {"from_attributes": True}


class RegistrationResponse(BaseModel):
    id: str
    tenant_id: str
    camp_id: str
    athlete_id: str
    parent_id: str
    base_price_cents: int
    discount_cents: int
    promo_discount_cents: int
    addons_total_cents: int
    tax_cents: int
    total_price_cents: int
    promo_code_id: Optional[str] = None
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    refund_amount_cents: Optional[int] = 0
    refunded_at: Optional[datetime] = None
    status: RegistrationStatus
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    shirt_size: Optional[str] = None
    special_considerations: Optional[str] = None
    friend_requests: Optional[List[str]] = None
    waitlist_position: Optional[int] = None
    waitlist_offer_sent_at: Optional[datetime] = None
    waitlist_offer_expires_at: Optional[datetime] = None
    addons: List[RegistrationAddonResponse] = Field(default_factory=list)
    created_at: datetime

    model_config = {"from_attributes": True}


class RegistrationListResponse(BaseModel):
    registrations: List[RegistrationResponse]
    total: int
    page: int
    size: int
    pages: int


class CancelRegistrationRequest(BaseModel):
    reason: Optional[str] = None


class RefundRequest(BaseModel):
    amount_dollars: Optional[float] = Field(None, gt=0)
    reason: Optional[str] = "requested_by_customer"


class PromoCodeBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: int = Field(..., gt=0)
    max_uses: Optional[int] = Field(None, ge=1)
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    is_active: bool = True


class PromoCodeCreate(PromoCodeBase):
    pass


class PromoCodeUpdate(BaseModel):
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[int] = Field(None, gt=0)
    max_uses: Optional[int] = Field(None, ge=1)
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    is_active: Optional[bool] = None


class PromoCodeResponse(PromoCodeBase):
    id: str
    tenant_id: str
    current_uses: int

    model_config = {"from_attributes": True}


class WaitlistJoinRequest(BaseModel):
    camp_id: str
    tenant_id: Optional[str] = None
    parent: ParentInfo
    camper: CamperInfo


class WaitlistOfferAction(BaseModel):
    token: str
