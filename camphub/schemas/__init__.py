from .auth import Token, TokenData, LoginRequest, RefreshTokenRequest, ChangePasswordRequest
from .user import UserCreate, UserResponse
from .tenant import (
    LicenseeCreate, LicenseeUpdate, LicenseeResponse, LicenseeListResponse,
    LicenseStatusUpdate, EmailCredentialsUpdate
)
from .camp import (
    CampCreate, CampUpdate, CampResponse, CampListResponse, PublicCampResponse,
    AddonCreate, AddonResponse, CampDayCreate, CampDayResponse, CampDayStatusUpdate, EndCampDayRequest,
    ConcludeCampRequest, LockCampRequest
)
from .registration import (
    ParentInfo, CamperInfo, AddonSelection, CheckoutRequest, CheckoutResponse, DemoConfirmRequest,
    RegistrationResponse, RegistrationListResponse, CancelRegistrationRequest, RefundRequest,
    PromoCodeCreate, PromoCodeUpdate, PromoCodeResponse, WaitlistJoinRequest, WaitlistOfferAction
)
from .attendance import CheckInRequest, AbsentRequest, AttendanceResponse, RosterEntry, AttendanceStats
from .pickup import PickupTokenCheck, ManualCheckoutRequest
from .staff import StaffRequestCreate, StaffRequestRespond, StaffRequestResponse, StaffAssignmentResponse
from .grouping import MoveCamperRequest, LateRegistrationRequest, GroupingReport

# Franchise operations
from .royalty import (
    RoyaltyInvoiceResponse, RoyaltyInvoiceDetail, RoyaltyInvoiceListResponse, GenerateInvoiceRequest,
    BulkGenerateRequest, BulkGenerateResult, InvoiceStatusUpdate, InvoiceAdjustment,
    RoyaltyAdminSummary, LicenseeRoyaltySummary, CampRoyaltyRow, RoyaltySummaryTotals, CampWithoutInvoice
)
from .incentive import (
    CompensationPlanResponse, AttachPlanRequest, SessionMetricsUpdate, DaySnapshotRequest,
    DaySnapshotResponse, SessionCompensationResponse, CompensationBreakdown, StaffCompensationSummary
)
from .venue import (
    VenueCreate, VenueUpdate, VenueResponse, VenueListResponse, VenueStats,
    ContractCreate, ContractUpdate, ContractResponse, SendContractRequest
)
