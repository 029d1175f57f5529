from .tenant import Tenant, LicenseStatus
from .user import User, UserRole, ROLE_HIERARCHY
from .camp import Camp, CampStatus, GroupingStatus, CampDay, CampDayStatus, Addon
from .registration import (
    ParentProfile, Athlete, PromoCode, DiscountType,
    Registration, RegistrationStatus, PaymentStatus, RegistrationAddon
)
from .attendance import CampAttendance, AttendanceStatus, CheckMethod, PickupToken
from .grouping import CampGroup, CamperSessionData, AssignmentType
from .staff import CampStaffAssignment, StaffAssignmentRequest, StaffRole, StaffRequestStatus

# Franchise operations
from .royalty import RoyaltyInvoice, RoyaltyLineItem, RoyaltyInvoiceStatus, RoyaltyPeriodType
from .incentive import CompensationPlan, PlanCode, CampSessionCompensation, CampDaySnapshot
from .venue import Venue, VenueContract, FacilityType, IndoorOutdoor, ContractStatus
