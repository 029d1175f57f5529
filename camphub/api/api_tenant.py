"""
Licensee-facing and public endpoints, mounted under /api/v1
"""
from fastapi import APIRouter

from .api_v1.endpoints import (
    auth, camps, camp_days, attendance, registrations, webhooks, waitlist,
    promo_codes, royalties, incentives, grouping, venues, public, staff, pickup, conclusion,
    licensee_dashboard
)

tenant_router = APIRouter()

tenant_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
tenant_router.include_router(public.router, prefix="/public", tags=["public"])
tenant_router.include_router(camps.router, prefix="/camps", tags=["camps"])
tenant_router.include_router(camp_days.router, prefix="/camp-days", tags=["camp-days"])
tenant_router.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
tenant_router.include_router(registrations.router, prefix="/registrations", tags=["registrations"])
tenant_router.include_router(waitlist.router, prefix="/waitlist", tags=["waitlist"])
tenant_router.include_router(promo_codes.router, prefix="/promo-codes", tags=["promo-codes"])
tenant_router.include_router(royalties.router, prefix="/royalties", tags=["royalties"])
tenant_router.include_router(incentives.router, prefix="/incentives", tags=["incentives"])
tenant_router.include_router(grouping.router, prefix="/grouping", tags=["grouping"])
tenant_router.include_router(venues.router, prefix="/venues", tags=["venues"])
tenant_router.include_router(venues.contracts_router, prefix="/contracts", tags=["venue-contracts"])
tenant_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
tenant_router.include_router(staff.router, prefix="/staff", tags=["staff"])
tenant_router.include_router(pickup.router, prefix="/pickup", tags=["pickup"])
tenant_router.include_router(conclusion.router, prefix="/camp-conclusion", tags=["camp-conclusion"])
tenant_router.include_router(licensee_dashboard.router, prefix="/dashboard", tags=["licensee-dashboard"])
