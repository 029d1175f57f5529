from sqlalchemy import Column, String, Boolean, ForeignKey, Enum, DateTime
from sqlalchemy.orm import relationship
import enum
from .base import UUIDBaseModel


class UserRole(str, enum.Enum):
    PARENT = "parent"
    CIT_VOLUNTEER = "cit_volunteer"
    COACH = "coach"
    DIRECTOR = "director"
    LICENSEE_OWNER = "licensee_owner"
    HQ_ADMIN = "hq_admin"


# Lowest to highest privilege
ROLE_HIERARCHY = [
    UserRole.PARENT,
    UserRole.CIT_VOLUNTEER,
    UserRole.COACH,
    UserRole.DIRECTOR,
    UserRole.LICENSEE_OWNER,
    UserRole.HQ_ADMIN,
]


class User(UUIDBaseModel):
    """Platform user. HQ admins have no tenant; everyone else belongs to exactly one."""
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50))

    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime)

    role = Column(Enum(UserRole), default=UserRole.PARENT, nullable=False)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=True, index=True)

    tenant = relationship("Tenant", back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_hq_admin(self) -> bool:
        return self.role == UserRole.HQ_ADMIN

    def has_role(self, minimum: UserRole) -> bool:
        """True when the user's role is at or above ``minimum`` in ROLE_HIERARCHY."""
        return ROLE_HIERARCHY.index(UserRole(self.role)) >= ROLE_HIERARCHY.index(minimum)

    def __repr__(self):
        return f"<User(email='{self.email}', role='{self.role}')>"
