"""
Authorization dependencies.

Route-level guards built on the pure evaluator in core.permissions and the
per-target rules in core.authority. Guards raise; the error handlers turn
the exceptions into 403 responses.
"""

import logging
from typing import Callable, Optional

from fastapi import Depends

from core.authority import TargetUser
from core.middleware.authentication import get_current_actor
from core.permissions import (
    ActorContext,
    Permission,
    has_permission,
    is_admin_or_staff,
)

logger = logging.getLogger(__name__)


class AuthorizationError(Exception):
    """Raised when the caller may not perform an action."""
    code = "PERMISSION_DENIED"


class InsufficientPermissions(AuthorizationError):
    """Raised when the caller lacks a resource-level permission."""
    pass


class AuthorityDenied(AuthorizationError):
    """Raised when the caller may not act on a specific user account."""
    pass


def check_permission(actor: Optional[ActorContext], permission: Permission) -> None:
    """
    Raise unless the actor holds the permission.

    Raises:
        InsufficientPermissions: If the evaluator denies the permission
    """
    if has_permission(actor, permission):
        return
    logger.warning(
        f"User {actor.user_id if actor else None} lacks permission {permission.value}"
    )
    raise InsufficientPermissions(f"You do not have permission: {permission.value}")


def check_authority(
    rule: Callable[[Optional[ActorContext], TargetUser], bool],
    actor: Optional[ActorContext],
    target: TargetUser,
    message: str,
) -> None:
    """
    Raise unless an authority rule allows the actor to act on the target.

    Raises:
        AuthorityDenied: If the rule returns False
    """
    if rule(actor, target):
        return
    logger.warning(
        f"User {actor.user_id if actor else None} denied {rule.__name__} on user {target.id}"
    )
    raise AuthorityDenied(message)


def require_permission(*required_permissions: Permission) -> Callable:
    """
    Dependency to require specific permissions.

    Args:
        required_permissions: Every permission the caller must hold

    Returns:
        FastAPI dependency resolving to the caller's ActorContext
    """
    async def dependency(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
        for permission in required_permissions:
            check_permission(actor, permission)
        return actor

    return dependency


async def require_dashboard_access(
    actor: ActorContext = Depends(get_current_actor),
) -> ActorContext:
    """
    Dependency admitting admin and staff of either level.

    Raises:
        InsufficientPermissions: For candidates and accounts without roles
    """
    if is_admin_or_staff(actor):
        return actor
    logger.warning(f"User {actor.user_id} denied dashboard access")
    raise InsufficientPermissions("Dashboard access requires an admin or staff role")
