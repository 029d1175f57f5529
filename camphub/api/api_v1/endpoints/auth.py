from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import settings
from ....core.rate_limit import limiter
from ....core.security import (
    create_access_token,
    create_refresh_token,
    verify_password,
    verify_refresh_token,
    get_password_hash
)
from ....db.database import get_db
from ....models.base import utcnow
from ....models.tenant import Tenant, LicenseStatus
from ....models.user import User
from ....schemas.auth import Token, LoginRequest, RefreshTokenRequest, ChangePasswordRequest
from ....schemas.user import UserResponse
from ...deps import get_current_active_user

router = APIRouter()


async def _user_by_email(db: AsyncSession, email: str):
    return (await db.execute(select(User).where(User.email == email.lower()))).scalar_one_or_none()


def _issue_tokens(user: User) -> dict:
    access_token = create_access_token(
        subject=user.email, expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {
        "access_token": access_token,
        "refresh_token": create_refresh_token(subject=user.email),
        "token_type": "bearer",
    }


@router.post("/login", response_model=Token)
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def login(
    request: Request,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """Exchange email and password for an access/refresh token pair"""
    user = await _user_by_email(db, login_data.email)

    if not user or not verify_password(login_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )

    # Suspended or terminated licensees lock out their staff; HQ admins have no tenant
    if user.tenant_id:
        tenant = await db.get(Tenant, user.tenant_id)
        if not tenant or tenant.license_status != LicenseStatus.ACTIVE:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="License is not active. Please contact CampHub HQ."
            )

    user.last_login = utcnow()
    await db.flush()
    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """Trade a refresh token for a fresh pair; access tokens are rejected here"""
    email = verify_refresh_token(refresh_data.refresh_token)
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    user = await _user_by_email(db, email)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(get_current_active_user)) -> Any:
    return current_user


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )
    current_user.hashed_password = get_password_hash(payload.new_password)
    await db.flush()
    return {"message": "Password updated successfully"}
