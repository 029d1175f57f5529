from sqlalchemy import Column, String, Text, Boolean, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import UUIDBaseModel
import enum


class AttendanceStatus(str, enum.Enum):
    NOT_ARRIVED = "not_arrived"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    ABSENT = "absent"


class CheckMethod(str, enum.Enum):
    QR = "qr"
    MANUAL = "manual"


class CampAttendance(UUIDBaseModel):
    """Per-day check-in/check-out record for one camper."""
    __tablename__ = "camp_attendance"
    __table_args__ = (UniqueConstraint("camp_day_id", "athlete_id", name="uq_attendance_day_athlete"),)

    camp_day_id = Column(String, ForeignKey("camp_days.id"), nullable=False, index=True)
    athlete_id = Column(String, ForeignKey("athletes.id"), nullable=False, index=True)
    parent_profile_id = Column(String, ForeignKey("parent_profiles.id"), nullable=False)
    registration_id = Column(String, ForeignKey("registrations.id"), nullable=False)
    group_id = Column(String, ForeignKey("camp_groups.id"), nullable=True)

    check_in_time = Column(DateTime)
    check_in_method = Column(Enum(CheckMethod))
    check_in_by = Column(String)
    check_in_notes = Column(Text)

    check_out_time = Column(DateTime)
    check_out_method = Column(Enum(CheckMethod))
    check_out_by = Column(String)
    check_out_notes = Column(Text)

    status = Column(Enum(AttendanceStatus), default=AttendanceStatus.NOT_ARRIVED, nullable=False)
    notes = Column(Text)

    camp_day = relationship("CampDay", back_populates="attendance")
    athlete = relationship("Athlete")
    group = relationship("CampGroup")

    def __repr__(self):
        return f"<CampAttendance(day='{self.camp_day_id}', athlete='{self.athlete_id}', status='{self.status}')>"


class PickupToken(UUIDBaseModel):
    """Single-use dismissal code a parent shows at pickup; valid until the end of the camp day."""
    __tablename__ = "pickup_tokens"

    camp_day_id = Column(String, ForeignKey("camp_days.id"), nullable=False, index=True)
    athlete_id = Column(String, ForeignKey("athletes.id"), nullable=False, index=True)
    parent_profile_id = Column(String, ForeignKey("parent_profiles.id"), nullable=False)
    token = Column(String(64), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    is_used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime)
    used_by = Column(String)
    manual_reason = Column(Text)

    camp_day = relationship("CampDay")
    athlete = relationship("Athlete")

    def __repr__(self):
        return f"<PickupToken(day='{self.camp_day_id}', athlete='{self.athlete_id}', used={self.is_used})>"
