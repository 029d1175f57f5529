from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Integer, Date, DateTime, Enum, JSON
from sqlalchemy.orm import relationship
from .base import UUIDBaseModel
import enum


class RegistrationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ParentProfile(UUIDBaseModel):
    """Billing/guardian profile, keyed by lowercased email."""
    __tablename__ = "parent_profiles"

    email = Column(String(255), unique=True, index=True, nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    phone = Column(String(50))
    address_line_1 = Column(String(255))
    address_line_2 = Column(String(255))
    city = Column(String(100))
    state = Column(String(100))
    zip_code = Column(String(20))
    emergency_contact_name = Column(String(255))
    emergency_contact_phone = Column(String(50))
    emergency_contact_relationship = Column(String(100))

    athletes = relationship("Athlete", back_populates="parent")

    def __repr__(self):
        return f"<ParentProfile(email='{self.email}')>"


class Athlete(UUIDBaseModel):
    __tablename__ = "athletes"

    parent_id = Column(String, ForeignKey("parent_profiles.id"), nullable=False, index=True)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    grade = Column(String(50))
    school = Column(String(255))
    t_shirt_size = Column(String(20))
    medical_notes = Column(Text)
    allergies = Column(Text)

    parent = relationship("ParentProfile", back_populates="athletes")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Athlete(name='{self.first_name} {self.last_name}')>"


class PromoCode(UUIDBaseModel):
    __tablename__ = "promo_codes"

    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False, index=True)
    description = Column(Text)
    discount_type = Column(Enum(DiscountType), nullable=False)
    # Percent (0-100) for PERCENTAGE, cents for FIXED
    discount_value = Column(Integer, nullable=False)
    max_uses = Column(Integer)
    current_uses = Column(Integer, default=0, nullable=False)
    valid_from = Column(Date)
    valid_until = Column(Date)
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<PromoCode(code='{self.code}', type='{self.discount_type}', value={self.discount_value})>"


class Registration(UUIDBaseModel):
    """One athlete's enrollment in one camp, with its full price breakdown in cents."""
    __tablename__ = "registrations"

    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    camp_id = Column(String, ForeignKey("camps.id"), nullable=False, index=True)
    athlete_id = Column(String, ForeignKey("athletes.id"), nullable=False, index=True)
    parent_id = Column(String, ForeignKey("parent_profiles.id"), nullable=False, index=True)

    # Pricing
    base_price_cents = Column(Integer, nullable=False)
    discount_cents = Column(Integer, nullable=False, default=0)
    promo_discount_cents = Column(Integer, nullable=False, default=0)
    addons_total_cents = Column(Integer, nullable=False, default=0)
    tax_cents = Column(Integer, nullable=False, default=0)
    total_price_cents = Column(Integer, nullable=False)
    promo_code_id = Column(String, ForeignKey("promo_codes.id"), nullable=True)

    # Payment
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_method = Column(String(50))
    stripe_payment_intent_id = Column(String(255), index=True)
    stripe_checkout_session_id = Column(String(255))
    paid_at = Column(DateTime)
    refund_amount_cents = Column(Integer, default=0)
    refunded_at = Column(DateTime)

    # Lifecycle
    status = Column(Enum(RegistrationStatus), default=RegistrationStatus.PENDING, nullable=False)
    cancelled_at = Column(DateTime)
    cancellation_reason = Column(Text)

    # Camper details
    shirt_size = Column(String(20))
    special_considerations = Column(Text)
    friend_requests = Column(JSON, default=list)

    # Waitlist
    waitlist_position = Column(Integer)
    waitlist_joined_at = Column(DateTime)
    waitlist_offer_token = Column(String(64), unique=True, nullable=True)
    waitlist_offer_sent_at = Column(DateTime)
    waitlist_offer_expires_at = Column(DateTime)

    camp = relationship("Camp", back_populates="registrations")
    athlete = relationship("Athlete")
    parent = relationship("ParentProfile")
    addons = relationship("RegistrationAddon", back_populates="registration", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Registration(camp_id='{self.camp_id}', athlete_id='{self.athlete_id}', status='{self.status}')>"


class RegistrationAddon(UUIDBaseModel):
    __tablename__ = "registration_addons"

    registration_id = Column(String, ForeignKey("registrations.id"), nullable=False, index=True)
    addon_id = Column(String, ForeignKey("addons.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    # Line total (unit price * quantity)
    price_cents = Column(Integer, nullable=False)

    registration = relationship("Registration", back_populates="addons")
    addon = relationship("Addon")
