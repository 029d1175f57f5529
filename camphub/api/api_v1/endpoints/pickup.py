"""
QR pickup codes for end-of-day dismissal.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError
from ....db.database import get_db
from ....models.user import User
from ....schemas.pickup import ManualCheckoutRequest, PickupTokenCheck
from ....services.pickup_token_service import PickupTokenService
from ...deps import get_current_active_user, require_staff, get_tenant_scope

router = APIRouter()


@router.post("/camp-days/{camp_day_id}/generate")
async def generate_day_tokens(
    camp_day_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await PickupTokenService.generate_for_day(db, camp_day_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.post("/camp-days/{camp_day_id}/athletes/{athlete_id}")
async def generate_athlete_token(
    camp_day_id: str,
    athlete_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        token = await PickupTokenService.generate_for_athlete(db, camp_day_id, athlete_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)
    return {"token": token.token, "athlete_id": token.athlete_id, "expires_at": token.expires_at}


@router.get("/camp-days/{camp_day_id}")
async def list_day_tokens(
    camp_day_id: str,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await PickupTokenService.list_for_day(db, camp_day_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.post("/validate")
async def validate_token(
    payload: PickupTokenCheck,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await PickupTokenService.validate(db, payload.token, payload.camp_day_id, tenant_id)


@router.post("/use")
async def use_token(
    payload: PickupTokenCheck,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await PickupTokenService.use(db, payload.token, current_user.id, payload.camp_day_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.post("/camp-days/{camp_day_id}/manual-checkout")
async def manual_checkout(
    camp_day_id: str,
    payload: ManualCheckoutRequest,
    current_user: User = Depends(require_staff),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        return await PickupTokenService.manual_checkout(
            db, camp_day_id, payload.athlete_id, current_user.id, payload.reason, tenant_id
        )
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.get("/mine/camp-days/{camp_day_id}/athletes/{athlete_id}")
async def get_my_token(
    camp_day_id: str,
    athlete_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """The parent's pickup code for their camper, or null when none has been issued."""
    try:
        profile = await PickupTokenService.parent_profile_for(db, current_user)
    except NotFoundError as e:
        raise_http(e)
    return await PickupTokenService.get_for_parent(db, camp_day_id, athlete_id, profile.id)
