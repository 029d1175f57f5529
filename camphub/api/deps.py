from typing import Optional

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import verify_token
from ..db.database import get_db
from ..models.user import User, UserRole

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    email = verify_token(credentials.credentials)
    if email is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Get current active user"""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )
    return current_user


def require_role(minimum: UserRole):
    """Dependency factory: the user's role must be ``minimum`` or higher."""

    async def _require(current_user: User = Depends(get_current_active_user)) -> User:
        if not current_user.has_role(minimum):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. {minimum.value} role or higher required."
            )
        return current_user

    return _require


require_staff = require_role(UserRole.COACH)
require_director = require_role(UserRole.DIRECTOR)
require_licensee = require_role(UserRole.LICENSEE_OWNER)
require_hq_admin = require_role(UserRole.HQ_ADMIN)


def resolve_tenant_id(request: Request, user: User, requested: Optional[str] = None) -> Optional[str]:
    """
    Tenant scope for a request.

    Tenant users are pinned to their own tenant; asking for another one is a 403.
    HQ admins get whatever tenant they asked for (query parameter first, then the
    tenant context set by TenantMiddleware), or None for all tenants.
    """
    context_tenant = getattr(request.state, "tenant_id", None)
    if user.is_hq_admin:
        return requested or context_tenant

    wanted = requested or (context_tenant if getattr(request.state, "tenant_type", None) == "tenant" else None)
    if wanted and wanted != user.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access to this tenant is not allowed"
        )
    if not user.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not assigned to a tenant"
        )
    return user.tenant_id


async def get_tenant_scope(
    request: Request,
    tenant_id: Optional[str] = Query(None, description="Tenant to act on (HQ admins only)"),
    current_user: User = Depends(get_current_active_user),
) -> Optional[str]:
    return resolve_tenant_id(request, current_user, tenant_id)


async def require_tenant_scope(scope: Optional[str] = Depends(get_tenant_scope)) -> str:
    """Like get_tenant_scope, but an HQ admin must name a tenant."""
    if not scope:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant context required"
        )
    return scope
