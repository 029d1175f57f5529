"""
Service-layer exceptions.

Services raise these; endpoints map them onto HTTP status codes with
``raise_http`` so route handlers stay one-liners around service calls.
"""
from fastapi import HTTPException, status


class NotFoundError(LookupError):
    """A referenced record does not exist (or is outside the caller's tenant)."""


class BusinessRuleError(ValueError):
    """The request is well-formed but violates a domain rule."""


class ConflictError(BusinessRuleError):
    """The operation collides with existing state (duplicate slug, active invoice...)."""


class ForbiddenError(PermissionError):
    """The caller is known but may not act on this record."""


class PaymentProviderError(RuntimeError):
    """The payment provider rejected or failed an operation."""


def raise_http(exc: Exception) -> None:
    """Re-raise a service exception as the matching HTTPException."""
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, BusinessRuleError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, PaymentProviderError):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    raise exc
