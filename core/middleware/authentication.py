"""
Authentication for bearer access tokens.

Resolves the caller from the Authorization header, loads the account with
its role assignments and turns it into the ActorContext the permission
evaluator works on. Exposed as FastAPI dependencies so each route states
whether it needs an authenticated caller.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.config import settings
from core.permissions import (
    ActorContext,
    RoleGrant,
    RoleName,
    coerce_permission_level,
    coerce_role,
)
from core.security import TokenError, decode_access_token
from database.engine import get_db
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Base exception for authentication errors."""
    code = "AUTHENTICATION_REQUIRED"


class TokenExpiredError(AuthenticationError):
    """Raised when the access token has expired."""
    code = "TOKEN_EXPIRED"


class TokenInvalidError(AuthenticationError):
    """Raised when the access token is missing or malformed."""
    code = "TOKEN_INVALID"


class InvalidCredentialsError(AuthenticationError):
    """Raised when an email/password pair does not match an active account."""
    code = "INVALID_CREDENTIALS"


class UserNotFoundError(AuthenticationError):
    """Raised when the token refers to a deleted account."""
    code = "USER_NOT_FOUND"


class UserInactiveError(AuthenticationError):
    """Raised when the account has been deactivated."""
    code = "USER_INACTIVE"


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


async def load_user(db: AsyncSession, user_id: int) -> Optional[User]:
    """Load an account with its role assignments."""
    result = await db.execute(
        select(User)
        .options(selectinload(User.roles).selectinload(UserRole.role))
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def is_super_admin(user: User) -> bool:
    """The configured super-admin email, holding the admin role."""
    configured = (settings.super_admin_email or "").strip().lower()
    if not configured or user.email.lower() != configured:
        return False
    return any(assignment.role.name == RoleName.ADMIN for assignment in user.roles)


def role_grants(user: User) -> tuple[RoleGrant, ...]:
    """Role assignments in assignment order, unknown role names skipped."""
    grants = []
    for assignment in user.roles:
        role = coerce_role(assignment.role.name)
        if role is None:
            continue
        grants.append(
            RoleGrant(role=role, permission_level=coerce_permission_level(assignment.permission_level))
        )
    return tuple(grants)


def build_actor(user: User) -> ActorContext:
    return ActorContext(
        user_id=user.id,
        email=user.email,
        roles=role_grants(user),
        is_super_admin=is_super_admin(user),
    )


async def _authenticate(request: Request, db: AsyncSession, token: str) -> User:
    try:
        payload = decode_access_token(token)
    except TokenError as e:
        if "expired" in str(e):
            raise TokenExpiredError("Authentication token has expired") from e
        raise TokenInvalidError("Invalid authentication token") from e

    user = await load_user(db, int(payload["user_id"]))
    if user is None:
        raise UserNotFoundError("User account not found")
    if not user.is_active:
        logger.warning(f"Inactive user {user.id} attempted access")
        raise UserInactiveError("User account is inactive")

    request.state.user_id = user.id
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Require an authenticated, active account."""
    token = _extract_token(request)
    if not token:
        raise TokenInvalidError("Authentication required")
    return await _authenticate(request, db, token)


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Current account if a valid token was sent, otherwise None.
    Used by public endpoints that personalise their output.
    """
    token = _extract_token(request)
    if not token:
        return None
    try:
        return await _authenticate(request, db, token)
    except AuthenticationError as e:
        logger.debug(f"Ignoring unusable token on public endpoint: {e}")
        return None


async def get_current_actor(user: User = Depends(get_current_user)) -> ActorContext:
    return build_actor(user)
