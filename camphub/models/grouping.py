from sqlalchemy import (
    Column, String, Text, Boolean, ForeignKey, Integer, Date, DateTime, Enum, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from .base import UUIDBaseModel
import enum


class AssignmentType(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"
    OVERRIDE = "override"


class CampGroup(UUIDBaseModel):
    __tablename__ = "camp_groups"

    camp_id = Column(String, ForeignKey("camps.id"), nullable=False, index=True)
    group_number = Column(Integer, nullable=False)
    name = Column(String(100), nullable=False)
    color = Column(String(16))
    display_order = Column(Integer, default=0)

    # Denormalized stats, refreshed whenever membership changes
    camper_count = Column(Integer, default=0)
    min_grade = Column(Integer)
    max_grade = Column(Integer)
    grade_spread = Column(Integer, default=0)

    size_violation = Column(Boolean, default=False)
    grade_violation = Column(Boolean, default=False)
    friend_violation = Column(Boolean, default=False)
    has_warnings = Column(Boolean, default=False)
    has_hard_violations = Column(Boolean, default=False)

    campers = relationship("CamperSessionData", back_populates="assigned_group")

    def __repr__(self):
        return f"<CampGroup(name='{self.name}', campers={self.camper_count})>"


class CamperSessionData(UUIDBaseModel):
    """Standardized per-camp snapshot of a camper used by the grouping engine."""
    __tablename__ = "camper_session_data"
    __table_args__ = (UniqueConstraint("camp_id", "athlete_id", name="uq_camper_session_athlete"),)

    camp_id = Column(String, ForeignKey("camps.id"), nullable=False, index=True)
    athlete_id = Column(String, ForeignKey("athletes.id"), nullable=False)
    registration_id = Column(String, ForeignKey("registrations.id"), nullable=False)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)

    first_name = Column(String(100))
    last_name = Column(String(100))
    date_of_birth = Column(Date)
    age_at_camp_start = Column(Integer)
    age_months_at_camp_start = Column(Integer)

    reported_grade = Column(String(50))
    reported_grade_normalized = Column(Integer)
    computed_grade = Column(Integer)
    validated_grade = Column(Integer)
    grade_discrepancy = Column(Boolean, default=False)
    grade_discrepancy_note = Column(Text)

    friend_requests = Column(JSON, default=list)
    friend_request_athlete_ids = Column(JSON, default=list)
    friend_group_id = Column(Integer)

    registered_at = Column(DateTime)
    is_late_registration = Column(Boolean, default=False)

    assigned_group_id = Column(String, ForeignKey("camp_groups.id"), nullable=True)
    assignment_type = Column(Enum(AssignmentType))
    assignment_reason = Column(Text)
    assigned_at = Column(DateTime)

    assigned_group = relationship("CampGroup", back_populates="campers")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<CamperSessionData(athlete='{self.athlete_id}', grade={self.validated_grade})>"
