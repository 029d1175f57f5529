from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, time, datetime
import datetime as dt
from ..models.camp import CampStatus, GroupingStatus, CampDayStatus


class CampBase(BaseModel):
    """Base camp schema"""
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    venue_id: Optional[str] = None
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    registration_open: Optional[date] = None
    registration_close: Optional[date] = None
    min_age: int = Field(default=5, ge=0)
    max_age: int = Field(default=14, ge=0)
    capacity: int = Field(default=60, ge=0)
    price_cents: int = Field(default=0, ge=0)
    early_bird_price_cents: Optional[int] = Field(None, ge=0)
    early_bird_deadline: Optional[date] = None
    max_group_size: int = Field(default=12, ge=1)
    num_groups: int = Field(default=5, ge=1)
    max_grade_spread: int = Field(default=2, ge=0)


class CampCreate(CampBase):
    status: CampStatus = CampStatus.DRAFT


class CampUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    venue_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    registration_open: Optional[date] = None
    registration_close: Optional[date] = None
    min_age: Optional[int] = Field(None, ge=0)
    max_age: Optional[int] = Field(None, ge=0)
    capacity: Optional[int] = Field(None, ge=0)
    price_cents: Optional[int] = Field(None, ge=0)
    early_bird_price_cents: Optional[int] = Field(None, ge=0)
    early_bird_deadline: Optional[date] = None
    status: Optional[CampStatus] = None
    max_group_size: Optional[int] = Field(None, ge=1)
    num_groups: Optional[int] = Field(None, ge=1)
    max_grade_spread: Optional[int] = Field(None, ge=0)


class CampResponse(CampBase):
    id: str
    tenant_id: str
    status: CampStatus
    is_locked: bool = False
    lock_reason: Optional[str] = None
    concluded_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    grouping_status: GroupingStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CampListResponse(BaseModel):
    camps: List[CampResponse]
    total: int
    page: int
    size: int
    pages: int


class PublicCampResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    min_age: int
    max_age: int
    price_cents: int
    early_bird_price_cents: Optional[int] = None
    early_bird_deadline: Optional[date] = None
    capacity: int
    spots_remaining: int
    status: CampStatus


class AddonBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    camp_id: Optional[str] = None
    price_cents: int = Field(..., ge=0)
    is_taxable: bool = False
    max_quantity: int = Field(default=1, ge=1)
    is_active: bool = True


class AddonCreate(AddonBase):
    pass


class AddonResponse(AddonBase):
    id: str
    tenant_id: str

    model_config = {"from_attributes": True}


class CampDayResponse(BaseModel):
    id: str
    camp_id: str
    date: dt.date
    day_number: int
    title: Optional[str] = None
    status: CampDayStatus
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None

    model_config = {"from_attributes": True}


class CampDayCreate(BaseModel):
    date: dt.date


class CampDayStatusUpdate(BaseModel):
    status: CampDayStatus


class EndCampDayRequest(BaseModel):
    auto_checkout_all: bool = True
    force: bool = False
    notes: Optional[str] = None


class ConcludeCampRequest(BaseModel):
    lock_camp: bool = True
    force: bool = False


class LockCampRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)
