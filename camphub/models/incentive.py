from sqlalchemy import (
    Column, String, Boolean, ForeignKey, Integer, Numeric, DateTime, Enum, UniqueConstraint
)
from sqlalchemy.orm import relationship
from .base import UUIDBaseModel, utcnow
import enum


class PlanCode(str, enum.Enum):
    HIGH = "HIGH"
    MID = "MID"
    ENTRY = "ENTRY"
    FIXED = "FIXED"


class CompensationPlan(UUIDBaseModel):
    """Director compensation plan template. Amounts are dollars."""
    __tablename__ = "compensation_plans"

    name = Column(String(100), nullable=False)
    plan_code = Column(Enum(PlanCode), unique=True, nullable=False)
    description = Column(String(500))

    pre_camp_stipend_amount = Column(Numeric(10, 2), default=0, nullable=False)
    on_site_stipend_amount = Column(Numeric(10, 2), default=0, nullable=False)

    enrollment_threshold = Column(Integer)
    enrollment_bonus_per_camper = Column(Numeric(10, 2))
    csat_required_score = Column(Numeric(3, 2))
    csat_bonus_amount = Column(Numeric(10, 2))
    budget_efficiency_rate = Column(Numeric(5, 4))
    guest_speaker_required_count = Column(Integer)
    guest_speaker_bonus_amount = Column(Numeric(10, 2))

    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<CompensationPlan(code='{self.plan_code}')>"


class CampSessionCompensation(UUIDBaseModel):
    """A staff member's compensation for one camp, with plan parameters snapshotted at attach time."""
    __tablename__ = "camp_session_compensation"
    __table_args__ = (UniqueConstraint("camp_id", "staff_profile_id", name="uq_compensation_camp_staff"),)

    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    camp_id = Column(String, ForeignKey("camps.id"), nullable=False, index=True)
    staff_profile_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(String, ForeignKey("compensation_plans.id"), nullable=False)

    # Plan snapshot
    pre_camp_stipend_amount = Column(Numeric(10, 2), default=0, nullable=False)
    on_site_stipend_amount = Column(Numeric(10, 2), default=0, nullable=False)
    enrollment_threshold = Column(Integer)
    enrollment_bonus_per_camper = Column(Numeric(10, 2))
    csat_required_score = Column(Numeric(3, 2))
    csat_bonus_amount = Column(Numeric(10, 2))
    budget_efficiency_rate = Column(Numeric(5, 4))
    guest_speaker_required_count = Column(Integer)
    guest_speaker_bonus_amount = Column(Numeric(10, 2))

    # Metrics
    total_enrolled_campers = Column(Integer)
    csat_avg_score = Column(Numeric(3, 2))
    budget_preapproved_total = Column(Numeric(10, 2))
    budget_actual_total = Column(Numeric(10, 2))
    budget_savings_amount = Column(Numeric(10, 2))
    guest_speaker_count = Column(Integer)

    # Computed
    fixed_stipend_total = Column(Numeric(10, 2))
    enrollment_bonus_earned = Column(Numeric(10, 2))
    csat_bonus_earned = Column(Numeric(10, 2))
    budget_efficiency_bonus_earned = Column(Numeric(10, 2))
    guest_speaker_bonus_earned = Column(Numeric(10, 2))
    total_variable_bonus = Column(Numeric(10, 2))
    total_compensation = Column(Numeric(10, 2))

    is_finalized = Column(Boolean, default=False)
    finalized_at = Column(DateTime)
    finalized_by = Column(String)

    plan = relationship("CompensationPlan")
    camp = relationship("Camp")
    staff = relationship("User")

    def __repr__(self):
        return f"<CampSessionCompensation(camp='{self.camp_id}', staff='{self.staff_profile_id}')>"


class CampDaySnapshot(UUIDBaseModel):
    __tablename__ = "camp_day_snapshots"
    __table_args__ = (UniqueConstraint("camp_day_id", "staff_profile_id", name="uq_snapshot_day_staff"),)

    camp_day_id = Column(String, ForeignKey("camp_days.id"), nullable=False, index=True)
    camp_id = Column(String, ForeignKey("camps.id"), nullable=False, index=True)
    staff_profile_id = Column(String, ForeignKey("users.id"), nullable=False)

    enrolled_count = Column(Integer, default=0)
    checked_in_count = Column(Integer, default=0)
    checked_out_count = Column(Integer, default=0)
    no_show_count = Column(Integer, default=0)
    csat_score = Column(Numeric(3, 2))
    guest_speakers_count = Column(Integer, default=0)
    captured_at = Column(DateTime, default=utcnow)
