"""
HQ admin dashboard: network-wide registrations, revenue and licensee
performance over a date range (default the last 30 days).
"""
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....db.database import get_db
from ....models.user import User
from ....services.admin_dashboard_service import AdminDashboardService
from ...deps import require_hq_admin

router = APIRouter()


@router.get("/overview")
async def get_overview(
    start: Optional[date] = None,
    end: Optional[date] = None,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await AdminDashboardService.get_overview(db, start, end)


@router.get("/licensee-performance")
async def get_licensee_performance(
    start: Optional[date] = None,
    end: Optional[date] = None,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await AdminDashboardService.get_licensee_performance(db, start, end)


@router.get("/recent-activity")
async def get_recent_activity(
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await AdminDashboardService.get_recent_activity(db)


@router.get("/registrations")
async def get_registration_details(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await AdminDashboardService.get_registration_details(db, limit)


@router.get("/revenue")
async def get_total_revenue(
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await AdminDashboardService.get_total_revenue(db)


@router.get("/comparison")
async def get_comparison(
    start: Optional[date] = None,
    end: Optional[date] = None,
    current_user: User = Depends(require_hq_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Current range against the same-length range immediately before it"""
    return await AdminDashboardService.get_comparison(db, start, end)
