"""FastAPI dependencies for dependency injection."""

from typing import Optional
from fastapi import Depends, HTTPException, Query, Request, status

from core.middleware.authentication import (
    get_current_actor,
    get_current_user,
    get_optional_user,
)
from database.models.users import User

__all__ = [
    "get_current_actor",
    "get_current_user",
    "get_optional_user",
    "require_active_user",
    "get_pagination_params",
    "get_client_ip",
]


async def require_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Require an authenticated account that completed onboarding."""
    if not current_user.password_hash:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invitation has not been accepted yet",
        )
    return current_user


def get_pagination_params(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
) -> dict:
    """
    Get pagination parameters.

    Returns:
        Dictionary with page, limit and offset
    """
    return {
        "page": page,
        "limit": limit,
        "offset": (page - 1) * limit,
    }


def get_client_ip(request: Request) -> Optional[str]:
    """Unmasked client IP, honouring the first x-forwarded-for hop."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or None
    return request.client.host if request.client else None
