"""
Administrative authority rules.

A second layer on top of the permission evaluator: even an actor who may
manage users in general is limited in which accounts they may act on.
Nobody may change their own role, active flag or account, and accounts
holding the admin role are reserved for the super-admin.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional

from core.permissions import (
    ActorContext,
    Permission,
    RoleGrant,
    RoleName,
    has_permission,
)


@dataclass(frozen=True)
class TargetUser:
    """The account an administrative action would be applied to."""

    id: int
    email: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    roles: tuple[RoleGrant, ...] = field(default_factory=tuple)

    @property
    def primary_role(self) -> Optional[RoleName]:
        return self.roles[0].role if self.roles else None

    @property
    def is_admin(self) -> bool:
        return any(grant.role == RoleName.ADMIN for grant in self.roles)


@dataclass(frozen=True)
class UserActions:
    """Per-target action gates shipped to the UI."""

    can_change_role: bool
    can_change_permission_level: bool
    can_toggle_active: bool
    can_delete: bool
    can_resend_invitation: bool

    @property
    def any(self) -> bool:
        return any(asdict(self).values())

    def to_dict(self) -> dict:
        data = asdict(self)
        data["any"] = self.any
        return data


def is_self(actor: Optional[ActorContext], target: TargetUser) -> bool:
    return actor is not None and actor.user_id is not None and actor.user_id == target.id


def is_pending_invitation(target: TargetUser) -> bool:
    """An invited user who never completed onboarding has no name at all."""
    return not (target.first_name or "").strip() and not (target.last_name or "").strip()


def _may_manage(
    actor: Optional[ActorContext],
    target: TargetUser,
    permission: Permission,
) -> bool:
    if not has_permission(actor, permission):
        return False
    if is_self(actor, target):
        return False
    if target.is_admin and not actor.is_super_admin:
        return False
    return True


def can_change_role(actor: Optional[ActorContext], target: TargetUser) -> bool:
    return _may_manage(actor, target, Permission.USERS_CHANGE_ROLE)


def can_toggle_active(actor: Optional[ActorContext], target: TargetUser) -> bool:
    return _may_manage(actor, target, Permission.USERS_DEACTIVATE)


def can_delete(actor: Optional[ActorContext], target: TargetUser) -> bool:
    return _may_manage(actor, target, Permission.USERS_DELETE)


def can_change_permission_level(
    actor: Optional[ActorContext],
    target: TargetUser,
) -> bool:
    if not has_permission(actor, Permission.USERS_EDIT):
        return False
    return target.primary_role == RoleName.STAFF


def can_resend_invitation(actor: Optional[ActorContext], target: TargetUser) -> bool:
    if not has_permission(actor, Permission.USERS_INVITE):
        return False
    return is_pending_invitation(target)


def available_actions(actor: Optional[ActorContext], target: TargetUser) -> UserActions:
    return UserActions(
        can_change_role=can_change_role(actor, target),
        can_change_permission_level=can_change_permission_level(actor, target),
        can_toggle_active=can_toggle_active(actor, target),
        can_delete=can_delete(actor, target),
        can_resend_invitation=can_resend_invitation(actor, target),
    )
