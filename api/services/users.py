"""
User service functions for API endpoints.

Account listing and the administrative actions gated by core.authority.
Every mutation re-checks the same predicate the UI used to decide whether
to offer the action, so the server stays the authoritative boundary.
"""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.authority import (
    TargetUser,
    available_actions,
    can_change_permission_level,
    can_change_role,
    can_delete,
    can_resend_invitation,
    can_toggle_active,
    is_pending_invitation,
)
from core.config import settings
from core.middleware.authentication import is_super_admin, load_user, role_grants
from core.middleware.authorization import AuthorityDenied, check_authority
from core.permissions import (
    DEFAULT_ROLE_PERMISSION_LEVEL,
    PERMISSION_LEVEL_INFO,
    ActorContext,
    PermissionLevel,
    RoleName,
    coerce_role,
    effective_permission_level,
    normalize_permission_level,
)
from core.security import (
    AuditAction,
    ResourceType,
    generate_invitation_token,
    hash_token,
    log_audit_event,
)
from core.utils.datetime import days_from_now, isoformat, now
from database.models.applications import Application
from database.models.users import Role, User, UserRole

logger = logging.getLogger(__name__)


def target_from_user(user: User) -> TargetUser:
    """Shape an account for the authority rules."""
    return TargetUser(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        roles=role_grants(user),
    )


def serialize_user(user: User, actor: Optional[ActorContext] = None) -> Dict[str, Any]:
    """
    User payload. When an actor is given, the row carries the actions that
    actor may take on it.
    """
    grants = role_grants(user)
    level = effective_permission_level(grants)
    data = {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "contact_number": user.contact_number,
        "address": user.address,
        "is_active": user.is_active,
        "email_verified": user.email_verified,
        "resume_url": user.resume_url,
        "resume_file_name": user.resume_file_name,
        "resume_uploaded_at": isoformat(user.resume_uploaded_at),
        "is_super_admin": is_super_admin(user),
        "is_pending_invitation": is_pending_invitation(target_from_user(user)),
        "roles": [
            {
                "id": assignment.role.id,
                "name": assignment.role.name.value,
                "permission_level": (
                    assignment.permission_level.value if assignment.permission_level else None
                ),
            }
            for assignment in user.roles
        ],
        "permission_level": level.value if level else None,
        "last_login_at": isoformat(user.last_login_at),
        "invited_at": isoformat(user.invited_at),
        "created_at": isoformat(user.created_at),
    }
    if actor is not None:
        data["actions"] = available_actions(actor, target_from_user(user)).to_dict()
    return data


async def get_role_by_name(db: AsyncSession, name: RoleName) -> Optional[Role]:
    result = await db.execute(select(Role).where(Role.name == name))
    return result.scalar_one_or_none()


async def assign_role(
    db: AsyncSession,
    user: User,
    role: Role,
    permission_level: Optional[PermissionLevel] = None,
) -> UserRole:
    """
    Replace the account's role assignments with a single one.

    The level is normalised: staff always gets one, other roles never do.
    """
    if user.roles:
        user.roles.clear()
        # Old rows must be gone before the replacement hits the unique constraint
        await db.flush()
    assignment = UserRole(
        role=role,
        permission_level=normalize_permission_level(role.name, permission_level),
    )
    user.roles.append(assignment)
    return assignment


async def list_users(
    db: AsyncSession,
    actor: ActorContext,
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    limit: int = 10,
    offset: int = 0,
) -> Dict[str, Any]:
    """
    List accounts with per-row action gates.

    Args:
        db: Database session
        actor: Caller, used to compute each row's actions
        search: Matches first name, last name or email
        role: Role name filter
        is_active: Active flag filter
        limit: Maximum results
        offset: Pagination offset

    Returns:
        Dictionary with users and total
    """
    query = select(User)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )

    role_name = coerce_role(role) if role else None
    if role and role_name is None:
        return {"users": [], "total": 0}
    if role_name is not None:
        query = query.where(
            User.roles.any(UserRole.role.has(Role.name == role_name))
        )

    if is_active is not None:
        query = query.where(User.is_active == is_active)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = (
        query.options(selectinload(User.roles).selectinload(UserRole.role))
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(limit)
        .offset(offset)
    )
    users = (await db.execute(query)).scalars().all()

    return {
        "users": [serialize_user(user, actor) for user in users],
        "total": total,
    }


async def get_user(
    db: AsyncSession,
    user_id: int,
    actor: Optional[ActorContext] = None,
) -> Optional[Dict[str, Any]]:
    user = await load_user(db, user_id)
    if not user:
        return None
    return serialize_user(user, actor)


async def list_roles(db: AsyncSession) -> list[Dict[str, Any]]:
    result = await db.execute(select(Role).order_by(Role.id))
    return [
        {
            "id": role.id,
            "name": role.name.value,
            "description": role.description,
            "default_permission_level": (
                DEFAULT_ROLE_PERMISSION_LEVEL[role.name].value
                if DEFAULT_ROLE_PERMISSION_LEVEL[role.name]
                else None
            ),
        }
        for role in result.scalars().all()
    ]


def list_permission_levels() -> list[Dict[str, Any]]:
    return [
        {"value": level.value, **info}
        for level, info in PERMISSION_LEVEL_INFO.items()
    ]


def default_permission_level(role_name: str) -> Optional[Dict[str, Any]]:
    """Default level for a role, None for an unknown role name."""
    role = coerce_role(role_name)
    if role is None:
        return None
    level = DEFAULT_ROLE_PERMISSION_LEVEL[role]
    return {
        "role": role.value,
        "permission_level": level.value if level else None,
        "info": PERMISSION_LEVEL_INFO[level] if level else None,
    }


async def update_role(
    db: AsyncSession,
    actor: ActorContext,
    user_id: int,
    role_id: int,
    permission_level: Optional[PermissionLevel] = None,
) -> Optional[Dict[str, Any]]:
    """
    Replace an account's role.

    Returns:
        Updated user, None if the account does not exist, or an error dict
        for an unknown role

    Raises:
        AuthorityDenied: If the caller may not change this account's role
    """
    user = await load_user(db, user_id)
    if not user:
        return None

    check_authority(
        can_change_role, actor, target_from_user(user),
        "You cannot change the role of this user",
    )

    role = (await db.execute(select(Role).where(Role.id == role_id))).scalar_one_or_none()
    if not role:
        return {"success": False, "error": "Invalid role"}

    # Promoting to admin hands out admin-only powers
    if role.name == RoleName.ADMIN and not actor.is_super_admin:
        raise AuthorityDenied("Only the super admin can grant the admin role")

    previous = user.role_names
    await assign_role(db, user, role, permission_level)
    await db.commit()

    log_audit_event(
        action=AuditAction.ROLE_CHANGE,
        resource_type=ResourceType.USER,
        resource_id=user.id,
        user_id=actor.user_id,
        details={"from": previous, "to": role.name.value},
    )
    logger.info(f"User {actor.user_id} changed role of user {user.id} to {role.name.value}")

    user = await load_user(db, user_id)
    return {"success": True, "user": serialize_user(user, actor)}


async def update_permission_level(
    db: AsyncSession,
    actor: ActorContext,
    user_id: int,
    permission_level: PermissionLevel,
) -> Optional[Dict[str, Any]]:
    """
    Set the staff permission level on an account.

    Raises:
        AuthorityDenied: If the caller may not edit the level, or the
            account's primary role is not staff
    """
    user = await load_user(db, user_id)
    if not user:
        return None

    check_authority(
        can_change_permission_level, actor, target_from_user(user),
        "Permission levels can only be set on staff accounts",
    )

    assignment = user.roles[0]
    previous = assignment.permission_level
    assignment.permission_level = normalize_permission_level(
        assignment.role.name, PermissionLevel(permission_level)
    )
    await db.commit()

    log_audit_event(
        action=AuditAction.PERMISSION_CHANGE,
        resource_type=ResourceType.USER,
        resource_id=user.id,
        user_id=actor.user_id,
        details={
            "from": previous.value if previous else None,
            "to": assignment.permission_level.value,
        },
    )

    user = await load_user(db, user_id)
    return {"success": True, "user": serialize_user(user, actor)}


async def toggle_active(
    db: AsyncSession,
    actor: ActorContext,
    user_id: int,
) -> Optional[Dict[str, Any]]:
    """
    Flip an account's active flag.

    Raises:
        AuthorityDenied: If the caller may not (de)activate this account
    """
    user = await load_user(db, user_id)
    if not user:
        return None

    check_authority(
        can_toggle_active, actor, target_from_user(user),
        "You cannot change the status of this user",
    )

    user.is_active = not user.is_active
    await db.commit()

    log_audit_event(
        action=AuditAction.ACTIVATE if user.is_active else AuditAction.DEACTIVATE,
        resource_type=ResourceType.USER,
        resource_id=user.id,
        user_id=actor.user_id,
    )

    user = await load_user(db, user_id)
    return {
        "success": True,
        "message": f"User {'activated' if user.is_active else 'deactivated'} successfully",
        "user": serialize_user(user, actor),
    }


async def delete_user(
    db: AsyncSession,
    actor: ActorContext,
    user_id: int,
) -> Optional[Dict[str, Any]]:
    """
    Permanently delete an account.

    Applications the user submitted are kept as guest applications.

    Raises:
        AuthorityDenied: If the caller may not delete this account
    """
    user = await load_user(db, user_id)
    if not user:
        return None

    check_authority(
        can_delete, actor, target_from_user(user),
        "You cannot delete this user",
    )

    applications = await db.execute(
        select(Application).where(Application.user_id == user.id)
    )
    for application in applications.scalars().all():
        application.user_id = None

    email = user.email
    await db.delete(user)
    await db.commit()

    log_audit_event(
        action=AuditAction.DELETE,
        resource_type=ResourceType.USER,
        resource_id=user_id,
        user_id=actor.user_id,
        details={"email": email},
        contains_pii=True,
    )
    return {"success": True, "message": "User deleted successfully"}


def issue_invitation(user: User) -> str:
    """Rotate the invitation token; only its hash is stored."""
    token = generate_invitation_token()
    user.invitation_token_hash = hash_token(token)
    user.invitation_expires_at = days_from_now(settings.invitation_expire_days)
    user.invited_at = now()
    return token


async def resend_invitation(
    db: AsyncSession,
    actor: ActorContext,
    user_id: int,
) -> Optional[Dict[str, Any]]:
    """
    Rotate a pending invitation.

    Returns:
        Dict with the user and the fresh clear-text token for the email,
        None if the account does not exist

    Raises:
        AuthorityDenied: If the account already completed onboarding
    """
    user = await load_user(db, user_id)
    if not user:
        return None

    check_authority(
        can_resend_invitation, actor, target_from_user(user),
        "This user has already accepted their invitation",
    )

    token = issue_invitation(user)
    await db.commit()

    log_audit_event(
        action=AuditAction.INVITE,
        resource_type=ResourceType.USER,
        resource_id=user.id,
        user_id=actor.user_id,
        details={"resend": True},
    )

    user = await load_user(db, user_id)
    return {
        "success": True,
        "token": token,
        "email": user.email,
        "role": user.role_names[0] if user.role_names else RoleName.USER.value,
        "user": serialize_user(user, actor),
    }
