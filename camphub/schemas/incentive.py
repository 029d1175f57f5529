from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from ..models.incentive import PlanCode


class CompensationPlanResponse(BaseModel):
    id: str
    name: str
    plan_code: PlanCode
    description: Optional[str] = None
    pre_camp_stipend_amount: Decimal
    on_site_stipend_amount: Decimal
    enrollment_threshold: Optional[int] = None
    enrollment_bonus_per_camper: Optional[Decimal] = None
    csat_required_score: Optional[Decimal] = None
    csat_bonus_amount: Optional[Decimal] = None
    budget_efficiency_rate: Optional[Decimal] = None
    guest_speaker_required_count: Optional[int] = None
    guest_speaker_bonus_amount: Optional[Decimal] = None
    is_active: bool

    model_config = {"from_attributes": True}


class AttachPlanRequest(BaseModel):
    camp_id: str
    staff_profile_id: str
    plan_code: PlanCode


class SessionMetricsUpdate(BaseModel):
    csat_avg_score: Optional[Decimal] = Field(None, ge=0, le=5)
    budget_preapproved_total: Optional[Decimal] = Field(None, ge=0)
    budget_actual_total: Optional[Decimal] = Field(None, ge=0)
    guest_speaker_count: Optional[int] = Field(None, ge=0)


class DaySnapshotRequest(BaseModel):
    staff_profile_id: str
    csat_score: Optional[Decimal] = Field(None, ge=0, le=5)
    guest_speakers: Optional[int] = Field(None, ge=0)


class DaySnapshotResponse(BaseModel):
    id: str
    camp_day_id: str
    camp_id: str
    staff_profile_id: str
    enrolled_count: int
    checked_in_count: int
    checked_out_count: int
    no_show_count: int
    csat_score: Optional[Decimal] = None
    guest_speakers_count: int
    captured_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SessionCompensationResponse(BaseModel):
    id: str
    tenant_id: str
    camp_id: str
    staff_profile_id: str
    plan_id: str
    total_enrolled_campers: Optional[int] = None
    csat_avg_score: Optional[Decimal] = None
    budget_preapproved_total: Optional[Decimal] = None
    budget_actual_total: Optional[Decimal] = None
    budget_savings_amount: Optional[Decimal] = None
    guest_speaker_count: Optional[int] = None
    fixed_stipend_total: Optional[Decimal] = None
    enrollment_bonus_earned: Optional[Decimal] = None
    csat_bonus_earned: Optional[Decimal] = None
    budget_efficiency_bonus_earned: Optional[Decimal] = None
    guest_speaker_bonus_earned: Optional[Decimal] = None
    total_variable_bonus: Optional[Decimal] = None
    total_compensation: Optional[Decimal] = None
    is_finalized: bool
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None

    model_config = {"from_attributes": True}


class CompensationBreakdown(BaseModel):
    compensation_id: str
    plan_code: PlanCode
    total_enrolled_campers: int
    fixed_stipend_total: Decimal
    enrollment_bonus_earned: Decimal
    csat_bonus_earned: Decimal
    budget_efficiency_bonus_earned: Decimal
    guest_speaker_bonus_earned: Decimal
    total_variable_bonus: Decimal
    total_compensation: Decimal


class StaffCompensationSummary(BaseModel):
    staff_profile_id: str
    sessions: List[SessionCompensationResponse]
    total_sessions: int
    finalized_sessions: int
    total_earned: Decimal
    pending_sessions: int
