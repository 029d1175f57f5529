from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import settings
from ....core.exceptions import raise_http, NotFoundError, BusinessRuleError, PaymentProviderError
from ....core.rate_limit import limiter
from ....db.database import get_db
from ....models.registration import RegistrationStatus
from ....models.user import User, UserRole
from ....schemas.registration import (
    CheckoutRequest, CheckoutResponse, DemoConfirmRequest, RegistrationResponse,
    RegistrationListResponse, CancelRegistrationRequest, RefundRequest
)
from ....services.registration_service import RegistrationService
from ....services.stripe_service import StripeService
from ...deps import (
    get_current_active_user, require_director, require_licensee, get_tenant_scope, require_tenant_scope,
    resolve_tenant_id
)

router = APIRouter()


@router.post("/checkout", response_model=CheckoutResponse)
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def checkout(
    request: Request,
    payload: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Register one or more campers and open a payment session. No account required."""
    tenant_id = payload.tenant_id or getattr(request.state, "tenant_id", None)
    try:
        return await RegistrationService.checkout(db, payload, tenant_id)
    except (NotFoundError, BusinessRuleError, PaymentProviderError) as e:
        raise_http(e)


@router.post("/demo/confirm")
async def confirm_demo_payment(
    payload: DemoConfirmRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Complete a demo checkout (only when Stripe is not configured)"""
    try:
        ids = await StripeService.confirm_demo_payment(db, payload.session_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)
    return {"confirmed": ids}


@router.get("/mine", response_model=List[RegistrationResponse])
async def list_my_registrations(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Registrations whose parent profile matches the signed-in user's email"""
    return await RegistrationService.list_for_parent(db, current_user.email)


@router.get("/camp/{camp_id}", response_model=RegistrationListResponse)
async def list_camp_registrations(
    camp_id: str,
    status: Optional[RegistrationStatus] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_director),
    tenant_id: str = Depends(require_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    registrations, total = await RegistrationService.list_for_camp(
        db, tenant_id, camp_id, status=status, page=page, size=size
    )
    return RegistrationListResponse(
        registrations=[RegistrationResponse.model_validate(r) for r in registrations],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size,
    )


@router.get("/{registration_id}", response_model=RegistrationResponse)
async def get_registration(
    registration_id: str,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        if current_user.role == UserRole.PARENT:
            registrations = await RegistrationService.list_for_parent(db, current_user.email)
            for registration in registrations:
                if registration.id == registration_id:
                    return registration
            raise NotFoundError("Registration not found")
        tenant_id = resolve_tenant_id(request, current_user)
        return await RegistrationService.get_registration(db, registration_id, tenant_id)
    except NotFoundError as e:
        raise_http(e)


@router.post("/{registration_id}/cancel", response_model=RegistrationResponse)
async def cancel_registration(
    registration_id: str,
    payload: CancelRegistrationRequest,
    current_user: User = Depends(require_director),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    try:
        await RegistrationService.cancel_registration(db, registration_id, tenant_id, payload.reason)
        return await RegistrationService.get_registration(db, registration_id, tenant_id)
    except (NotFoundError, BusinessRuleError) as e:
        raise_http(e)


@router.post("/{registration_id}/refund")
async def refund_registration(
    registration_id: str,
    payload: RefundRequest,
    current_user: User = Depends(require_licensee),
    tenant_id: Optional[str] = Depends(get_tenant_scope),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Issue a Stripe refund; the registration is updated when the charge.refunded webhook arrives"""
    try:
        return await StripeService.process_refund(
            db, registration_id, tenant_id, amount_dollars=payload.amount_dollars, reason=payload.reason
        )
    except (NotFoundError, BusinessRuleError, PaymentProviderError) as e:
        raise_http(e)
