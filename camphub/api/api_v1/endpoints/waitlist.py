from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import settings
from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError, PaymentProviderError
from ....core.rate_limit import limiter
from ....db.database import get_db
from ....models.user import User
from ....schemas.registration import WaitlistJoinRequest, WaitlistOfferAction, RegistrationResponse
from ....services.camp_service import CampService
from ....services.waitlist_service import WaitlistService
from ...deps import require_director, get_tenant_scope

router = APIRouter()


@router.post("/join")
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def join_waitlist(
    request: Request,
    payload: WaitlistJoinRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    tenant_id = payload.tenant_id or getattr(request.state, "tenant_id", None)
    try:
        reg = await WaitlistService.join_waitlist(db, payload, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)
    return {"registration_id": reg.id, "waitlist_position": reg.waitlist_position}


@router.post("/offers/accept")
async def accept_offer(
    payload: WaitlistOfferAction,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Accept a waitlist offer and get a checkout link for the held spot"""
    try:
        return await WaitlistService.accept_offer(db, payload.token)
    except (NotFoundError, BusinessRuleError, PaymentProviderError) as e:
        raise_http(e)


@router.post("/offers/decline")
async def decline_offer(
    payload: WaitlistOfferAction,
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        reg = await WaitlistService.decline_offer(db, payload.token)
    except NotFoundError as e:
        raise_http(e)
    return {"registration_id": reg.id, "status": reg.status.value}


@router.get("/camp/{camp_id}", response_model=List[RegistrationResponse])
async def get_waitlist(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await WaitlistService.get_waitlist(db, camp_id, tenant_id)


@router.post("/camp/{camp_id}/reorder")
async def reorder_waitlist(
    camp_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await CampService.get_camp(db, camp_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)
    return {"waitlisted": await WaitlistService.reorder_positions(db, camp_id)}


@router.delete("/{registration_id}")
async def remove_from_waitlist(
    registration_id: str,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        reg = await WaitlistService.remove_from_waitlist(db, registration_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)
    return {"registration_id": reg.id, "status": reg.status.value}
