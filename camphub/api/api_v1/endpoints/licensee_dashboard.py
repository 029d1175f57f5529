"""
Licensee owner's dashboard: territory, sales, royalties, quality, staff and open tasks.
"""
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.user import User
from ....services.licensee_dashboard_service import LicenseeDashboardService
from ...deps import require_licensee, require_tenant_scope

router = APIRouter()


@router.get("")
async def get_dashboard(
    period: str = Query("season", pattern="^(season|ytd|last_30_days)$"),
    today: Optional[date] = None,
    current_user: User = Depends(require_licensee),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await LicenseeDashboardService.get_dashboard(db, tenant_id, period, today)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.get("/camps")
async def list_camps(
    which: str = Query("upcoming", pattern="^(active|upcoming|completed)$"),
    limit: int = Query(5, ge=1, le=50),
    current_user: User = Depends(require_licensee),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await LicenseeDashboardService.list_camps(db, tenant_id, which, limit=limit)
