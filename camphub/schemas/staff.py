from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime, time
from ..models.staff import StaffRole, StaffRequestStatus


class StaffRequestCreate(BaseModel):
    user_id: str
    role: StaffRole
    is_lead: bool = False
    call_time: Optional[time] = None
    end_time: Optional[time] = None
    station_name: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class StaffRequestRespond(BaseModel):
    accept: bool


class StaffRequestResponse(BaseModel):
    id: str
    camp_id: str
    camp_name: str
    camp_start_date: date
    camp_end_date: date
    tenant_id: str
    requested_user_id: str
    requested_user_name: str
    requested_user_email: str
    requested_by_user_id: str
    requested_by_user_name: str
    role: StaffRole
    status: StaffRequestStatus
    requested_at: datetime
    responded_at: Optional[datetime] = None
    is_lead: bool = False
    call_time: Optional[time] = None
    end_time: Optional[time] = None
    station_name: Optional[str] = None
    notes: Optional[str] = None


class StaffAssignmentResponse(BaseModel):
    id: str
    camp_id: str
    user_id: str
    role: StaffRole
    is_lead: bool = False
    call_time: Optional[time] = None
    end_time: Optional[time] = None
    station_name: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}
