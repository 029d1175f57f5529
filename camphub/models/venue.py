from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Integer, Date, DateTime, Enum
from sqlalchemy.orm import relationship
from .base import UUIDBaseModel
import enum


class FacilityType(str, enum.Enum):
    SCHOOL = "school"
    PARK = "park"
    SPORTS_COMPLEX = "sports_complex"
    PRIVATE_GYM = "private_gym"
    COMMUNITY_CENTER = "community_center"
    RECREATION_CENTER = "recreation_center"
    OTHER = "other"


class IndoorOutdoor(str, enum.Enum):
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    BOTH = "both"


class ContractStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    SIGNED = "signed"
    EXPIRED = "expired"


class Venue(UUIDBaseModel):
    """Facility where camps run. tenant_id NULL means the venue is HQ-owned."""
    __tablename__ = "venues"

    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    short_name = Column(String(100))

    address_line_1 = Column(String(255), nullable=False)
    address_line_2 = Column(String(255))
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(2), default="US")

    facility_type = Column(Enum(FacilityType), default=FacilityType.OTHER, nullable=False)
    indoor_outdoor = Column(Enum(IndoorOutdoor), default=IndoorOutdoor.BOTH, nullable=False)
    max_daily_capacity = Column(Integer)

    primary_contact_name = Column(String(255))
    primary_contact_email = Column(String(255))
    primary_contact_phone = Column(String(50))
    notes = Column(Text)
    is_active = Column(Boolean, default=True)

    contracts = relationship("VenueContract", back_populates="venue", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Venue(name='{self.name}', city='{self.city}')>"


class VenueContract(UUIDBaseModel):
    __tablename__ = "venue_contracts"

    venue_id = Column(String, ForeignKey("venues.id"), nullable=False, index=True)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=True, index=True)
    status = Column(Enum(ContractStatus), default=ContractStatus.DRAFT, nullable=False)

    rental_rate_cents = Column(Integer)
    currency = Column(String(3), default="USD")
    contract_start_date = Column(Date)
    contract_end_date = Column(Date)
    deposit_cents = Column(Integer)
    payment_due_date = Column(Date)

    insurance_requirements = Column(Text)
    cancellation_policy = Column(Text)
    setup_time_minutes = Column(Integer)
    cleanup_time_minutes = Column(Integer)
    special_conditions = Column(Text)

    document_url = Column(String(500))
    document_name = Column(String(255))

    sent_at = Column(DateTime)
    sent_to_email = Column(String(255))
    signed_at = Column(DateTime)
    expiration_date = Column(Date)

    notes = Column(Text)
    created_by = Column(String)

    venue = relationship("Venue", back_populates="contracts")

    def __repr__(self):
        return f"<VenueContract(venue='{self.venue_id}', status='{self.status}')>"
