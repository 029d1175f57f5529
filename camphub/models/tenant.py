from sqlalchemy import Column, String, Date, Numeric, JSON, Text, Enum
from sqlalchemy.orm import relationship
from .base import UUIDBaseModel
import enum


class LicenseStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


class Tenant(UUIDBaseModel):
    """Licensee (franchise) account; the scoping key for camps, registrations and invoices."""
    __tablename__ = "tenants"

    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)

    # Contact
    contact_email = Column(String(255))
    contact_phone = Column(String(50))
    address = Column(String(255))
    city = Column(String(100))
    state = Column(String(100))
    zip = Column(String(20))
    timezone = Column(String(64), default="America/New_York")

    # Branding
    logo_url = Column(String(500))
    primary_color = Column(String(16), default="#CCFF00")
    secondary_color = Column(String(16), default="#FF2DCE")

    # License
    license_status = Column(Enum(LicenseStatus), default=LicenseStatus.ACTIVE, nullable=False)
    license_start_date = Column(Date)
    license_end_date = Column(Date)
    royalty_rate = Column(Numeric(5, 4), default=0.08)
    tax_rate_percent = Column(Numeric(5, 2), default=0)

    # Payments
    stripe_account_id = Column(String(255))

    # Tenant-branded outgoing email: host/port/security/from in plain JSON,
    # username/password as a Fernet token
    smtp_config = Column(JSON)
    smtp_credentials_encrypted = Column(Text)

    users = relationship("User", back_populates="tenant")
    camps = relationship("Camp", back_populates="tenant")

    @property
    def is_active(self) -> bool:
        return self.license_status == LicenseStatus.ACTIVE

    def __repr__(self):
        return f"<Tenant(slug='{self.slug}', status='{self.license_status}')>"
