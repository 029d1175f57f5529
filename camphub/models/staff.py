from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Time, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import UUIDBaseModel, utcnow
import enum


class StaffRole(str, enum.Enum):
    DIRECTOR = "director"
    COACH = "coach"
    ASSISTANT = "assistant"
    CIT = "cit"
    VOLUNTEER = "volunteer"


class StaffRequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class CampStaffAssignment(UUIDBaseModel):
    """A staff member working a camp session in a given role."""
    __tablename__ = "camp_staff_assignments"
    __table_args__ = (UniqueConstraint("camp_id", "user_id", name="uq_staff_assignment_camp_user"),)

    camp_id = Column(String, ForeignKey("camps.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(Enum(StaffRole), nullable=False)
    is_lead = Column(Boolean, default=False)
    call_time = Column(Time)
    end_time = Column(Time)
    station_name = Column(String(100))
    notes = Column(Text)

    camp = relationship("Camp", back_populates="staff_assignments")
    user = relationship("User")

    def __repr__(self):
        return f"<CampStaffAssignment(camp='{self.camp_id}', user='{self.user_id}', role='{self.role}')>"


class StaffAssignmentRequest(UUIDBaseModel):
    """Invitation for an existing user to join a camp's staff; accepting creates the assignment."""
    __tablename__ = "staff_assignment_requests"
    __table_args__ = (UniqueConstraint("camp_id", "requested_user_id", name="uq_staff_request_camp_user"),)

    camp_id = Column(String, ForeignKey("camps.id"), nullable=False, index=True)
    requested_user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    requested_by_user_id = Column(String, ForeignKey("users.id"), nullable=False)
    role = Column(Enum(StaffRole), nullable=False)
    status = Column(Enum(StaffRequestStatus), default=StaffRequestStatus.PENDING, nullable=False)
    requested_at = Column(DateTime, default=utcnow, nullable=False)
    responded_at = Column(DateTime)

    is_lead = Column(Boolean, default=False)
    call_time = Column(Time)
    end_time = Column(Time)
    station_name = Column(String(100))
    notes = Column(Text)

    camp = relationship("Camp", back_populates="staff_requests")
    requested_user = relationship("User", foreign_keys=[requested_user_id])
    requested_by = relationship("User", foreign_keys=[requested_by_user_id])

    def __repr__(self):
        return f"<StaffAssignmentRequest(camp='{self.camp_id}', user='{self.requested_user_id}', status='{self.status}')>"
