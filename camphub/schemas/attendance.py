from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from ..models.attendance import AttendanceStatus, CheckMethod


class CheckInRequest(BaseModel):
    athlete_id: str
    method: CheckMethod = CheckMethod.MANUAL
    notes: Optional[str] = None


class AbsentRequest(BaseModel):
    athlete_id: str
    notes: Optional[str] = None


class AttendanceResponse(BaseModel):
    id: str
    camp_day_id: str
    athlete_id: str
    registration_id: str
    group_id: Optional[str] = None
    check_in_time: Optional[datetime] = None
    check_in_method: Optional[CheckMethod] = None
    check_in_by: Optional[str] = None
    check_out_time: Optional[datetime] = None
    check_out_method: Optional[CheckMethod] = None
    check_out_by: Optional[str] = None
    status: AttendanceStatus
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class RosterEntry(BaseModel):
    attendance_id: str
    athlete_id: str
    athlete_name: str
    grade: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    group_color: Optional[str] = None
    status: AttendanceStatus
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None


class AttendanceStats(BaseModel):
    total: int
    not_arrived: int
    checked_in: int
    checked_out: int
    absent: int
    attendance_rate: int
