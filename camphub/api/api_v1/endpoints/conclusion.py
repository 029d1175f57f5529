"""
Closing out a camp: end-of-camp overview, pre-flight checks, conclusion and locking.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.user import User
from ....schemas.camp import CampResponse, ConcludeCampRequest, LockCampRequest
from ....services.camp_conclusion_service import CampConclusionService
from ...deps import require_director, require_licensee, get_tenant_scope

router = APIRouter()


@router.get("/{camp_id}/overview")
async def get_overview(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampConclusionService.get_overview(db, camp_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.get("/{camp_id}/validate")
async def validate_conclusion(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampConclusionService.validate(db, camp_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.post("/{camp_id}/conclude")
async def conclude_camp(
    camp_id: str,
    payload: ConcludeCampRequest,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampConclusionService.conclude(
            db, camp_id, tenant_id, current_user.id, lock_camp=payload.lock_camp, force=payload.force
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.post("/{camp_id}/lock", response_model=CampResponse)
async def lock_camp(
    camp_id: str,
    payload: LockCampRequest,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampConclusionService.lock(db, camp_id, tenant_id, payload.reason)
    except NotFoundError as e:
        raise_http(e)


@router.post("/{camp_id}/unlock", response_model=CampResponse)
async def unlock_camp(
    camp_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampConclusionService.unlock(db, camp_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.post("/{camp_id}/archive", response_model=CampResponse)
async def archive_camp(
    camp_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await CampConclusionService.archive(db, camp_id, tenant_id, current_user.id)
    except NotFoundError as e:
        raise_http(e)
