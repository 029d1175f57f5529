from sqlalchemy import (
    Column, String, Text, Boolean, ForeignKey, Integer, Date, Time, DateTime, Enum, UniqueConstraint
)
from sqlalchemy.orm import relationship
from .base import UUIDBaseModel
import enum


class CampStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GroupingStatus(str, enum.Enum):
    PENDING = "pending"
    AUTO_GROUPED = "auto_grouped"
    REVIEWED = "reviewed"
    FINALIZED = "finalized"


class CampDayStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class Camp(UUIDBaseModel):
    """A scheduled camp session run by a licensee."""
    __tablename__ = "camps"

    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    venue_id = Column(String, ForeignKey("venues.id"), nullable=True)

    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    description = Column(Text)

    # Schedule
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    start_time = Column(Time)
    end_time = Column(Time)
    registration_open = Column(Date)
    registration_close = Column(Date)

    # Eligibility and capacity
    min_age = Column(Integer, default=5)
    max_age = Column(Integer, default=14)
    capacity = Column(Integer, default=60)

    # Pricing (cents)
    price_cents = Column(Integer, nullable=False, default=0)
    early_bird_price_cents = Column(Integer)
    early_bird_deadline = Column(Date)

    status = Column(Enum(CampStatus), default=CampStatus.DRAFT, nullable=False)
    is_locked = Column(Boolean, default=False)
    lock_reason = Column(String(255))
    concluded_at = Column(DateTime)
    concluded_by = Column(String)
    archived_at = Column(DateTime)
    archived_by = Column(String)

    # Grouping configuration
    grouping_status = Column(Enum(GroupingStatus), default=GroupingStatus.PENDING, nullable=False)
    grouping_run_at = Column(DateTime)
    grouping_finalized_at = Column(DateTime)
    grouping_finalized_by = Column(String)
    max_group_size = Column(Integer, default=12)
    num_groups = Column(Integer, default=5)
    max_grade_spread = Column(Integer, default=2)

    tenant = relationship("Tenant", back_populates="camps")
    venue = relationship("Venue")
    days = relationship("CampDay", back_populates="camp", cascade="all, delete-orphan",
                        order_by="CampDay.day_number")
    registrations = relationship("Registration", back_populates="camp")
    staff_assignments = relationship("CampStaffAssignment", back_populates="camp", cascade="all, delete-orphan")
    staff_requests = relationship("StaffAssignmentRequest", back_populates="camp", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Camp(name='{self.name}', start='{self.start_date}', status='{self.status}')>"


class CampDay(UUIDBaseModel):
    __tablename__ = "camp_days"
    __table_args__ = (UniqueConstraint("camp_id", "date", name="uq_camp_day_date"),)

    camp_id = Column(String, ForeignKey("camps.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    day_number = Column(Integer, nullable=False)
    title = Column(String(255))
    status = Column(Enum(CampDayStatus), default=CampDayStatus.NOT_STARTED, nullable=False)
    notes = Column(Text)
    completed_at = Column(DateTime)
    completed_by = Column(String)

    camp = relationship("Camp", back_populates="days")
    attendance = relationship("CampAttendance", back_populates="camp_day", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<CampDay(camp_id='{self.camp_id}', day={self.day_number}, status='{self.status}')>"


class Addon(UUIDBaseModel):
    """Optional purchasable extra (t-shirt, lunch plan). camp_id NULL means tenant-wide."""
    __tablename__ = "addons"

    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    camp_id = Column(String, ForeignKey("camps.id"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price_cents = Column(Integer, nullable=False, default=0)
    is_taxable = Column(Boolean, default=False)
    max_quantity = Column(Integer, default=1)
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<Addon(name='{self.name}', price_cents={self.price_cents})>"
