from typing import Any, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.user import User
from ....schemas.registration import PromoCodeCreate, PromoCodeUpdate, PromoCodeResponse
from ....services.promo_service import PromoCodeService
from ...deps import require_licensee, require_tenant_scope

router = APIRouter()


@router.get("/", response_model=List[PromoCodeResponse])
async def list_promo_codes(
    current_user: User = Depends(require_licensee),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await PromoCodeService.list_codes(db, tenant_id)


@router.post("/", response_model=PromoCodeResponse, status_code=201)
async def create_promo_code(
    payload: PromoCodeCreate,
    current_user: User = Depends(require_licensee),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await PromoCodeService.create_code(db, tenant_id, payload)
    except BusinessRuleError as e:
        raise_http(e)


@router.get("/validate/{tenant_id}/{code}", response_model=PromoCodeResponse)
async def validate_promo_code(
    tenant_id: str,
    code: str,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Public check used by the checkout form before submitting"""
    try:
        return await PromoCodeService.validate_promo_code(db, tenant_id, code)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.patch("/{promo_id}", response_model=PromoCodeResponse)
async def update_promo_code(
    promo_id: str,
    payload: PromoCodeUpdate,
    current_user: User = Depends(require_licensee),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await PromoCodeService.update_code(db, tenant_id, promo_id, payload)
    except NotFoundError as e:
        raise_http(e)


@router.delete("/{promo_id}", status_code=204)
async def delete_promo_code(
    promo_id: str,
    current_user: User = Depends(require_licensee),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await PromoCodeService.delete_code(db, tenant_id, promo_id)
    except NotFoundError as e:
        raise_http(e)
