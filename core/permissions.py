"""
Role/permission evaluator.

Answers "may this actor perform this action?" from the actor's role
assignments alone. Every function here is pure: callers pass an explicit
ActorContext instead of relying on a request-global current user, so the
same table drives route guards, UI action gates and tests.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional


class RoleName(str, Enum):
    """Seeded, immutable roles."""

    ADMIN = "admin"
    STAFF = "staff"
    USER = "user"


class PermissionLevel(str, Enum):
    """Read/write qualifier, only meaningful for the staff role."""

    CAN_EDIT = "canEdit"
    CAN_READ = "canRead"


class AccessLevel(str, Enum):
    """Minimum capability class a permission requires."""

    VIEW = "view"
    EDIT = "edit"
    ADMIN = "admin"


class Permission(str, Enum):
    """Resource/action pairs checked throughout the API."""

    # Jobs
    JOBS_VIEW = "jobs:view"
    JOBS_CREATE = "jobs:create"
    JOBS_EDIT = "jobs:edit"
    JOBS_DELETE = "jobs:delete"
    JOBS_PUBLISH = "jobs:publish"

    # Applications
    APPLICATIONS_VIEW = "applications:view"
    APPLICATIONS_EDIT = "applications:edit"
    APPLICATIONS_EMAIL = "applications:email"
    APPLICATIONS_DELETE = "applications:delete"

    # Users
    USERS_VIEW = "users:view"
    USERS_EDIT = "users:edit"
    USERS_INVITE = "users:invite"
    USERS_CHANGE_ROLE = "users:change_role"
    USERS_DEACTIVATE = "users:deactivate"
    USERS_DELETE = "users:delete"

    # Industries
    INDUSTRIES_VIEW = "industries:view"
    INDUSTRIES_MANAGE = "industries:manage"

    # Settings
    SETTINGS_MANAGE = "settings:manage"

    # Dashboard
    DASHBOARD_VIEW = "dashboard:view"


PERMISSION_REQUIREMENTS: dict[Permission, AccessLevel] = {
    Permission.JOBS_VIEW: AccessLevel.VIEW,
    Permission.JOBS_CREATE: AccessLevel.EDIT,
    Permission.JOBS_EDIT: AccessLevel.EDIT,
    Permission.JOBS_DELETE: AccessLevel.EDIT,
    Permission.JOBS_PUBLISH: AccessLevel.EDIT,
    Permission.APPLICATIONS_VIEW: AccessLevel.VIEW,
    Permission.APPLICATIONS_EDIT: AccessLevel.EDIT,
    Permission.APPLICATIONS_EMAIL: AccessLevel.EDIT,
    Permission.APPLICATIONS_DELETE: AccessLevel.EDIT,
    Permission.USERS_VIEW: AccessLevel.VIEW,
    Permission.USERS_EDIT: AccessLevel.ADMIN,
    Permission.USERS_INVITE: AccessLevel.ADMIN,
    Permission.USERS_CHANGE_ROLE: AccessLevel.ADMIN,
    Permission.USERS_DEACTIVATE: AccessLevel.ADMIN,
    Permission.USERS_DELETE: AccessLevel.ADMIN,
    Permission.INDUSTRIES_VIEW: AccessLevel.VIEW,
    Permission.INDUSTRIES_MANAGE: AccessLevel.EDIT,
    Permission.SETTINGS_MANAGE: AccessLevel.ADMIN,
    Permission.DASHBOARD_VIEW: AccessLevel.VIEW,
}

# Level assigned when a role is granted without an explicit one
DEFAULT_ROLE_PERMISSION_LEVEL: dict[RoleName, Optional[PermissionLevel]] = {
    RoleName.ADMIN: None,
    RoleName.STAFF: PermissionLevel.CAN_READ,
    RoleName.USER: None,
}

PERMISSION_LEVEL_INFO: dict[PermissionLevel, dict] = {
    PermissionLevel.CAN_EDIT: {
        "label": "Full Access",
        "description": "Can view, create, edit and delete content",
        "capabilities": [
            "View and manage jobs",
            "Create, edit and publish jobs",
            "View and manage applications",
            "Update application status and email applicants",
            "Manage industries",
            "View the dashboard",
        ],
    },
    PermissionLevel.CAN_READ: {
        "label": "View Only",
        "description": "Can only view content, no editing rights",
        "capabilities": [
            "View jobs",
            "View applications",
            "View users",
            "View industries",
            "View the dashboard",
        ],
    },
}

_LEVEL_RANK = {
    PermissionLevel.CAN_READ: 1,
    PermissionLevel.CAN_EDIT: 2,
}


@dataclass(frozen=True)
class RoleGrant:
    """One role assignment as seen by the evaluator."""

    role: RoleName
    permission_level: Optional[PermissionLevel] = None


@dataclass(frozen=True)
class ActorContext:
    """The caller whose capabilities are being evaluated."""

    user_id: Optional[int]
    email: str = ""
    roles: tuple[RoleGrant, ...] = field(default_factory=tuple)
    is_super_admin: bool = False

    @property
    def role_names(self) -> set[RoleName]:
        return {grant.role for grant in self.roles}


def coerce_role(value: str | RoleName) -> Optional[RoleName]:
    """Map a stored role name to RoleName, None for unknown names."""
    if isinstance(value, RoleName):
        return value
    try:
        return RoleName(value)
    except ValueError:
        return None


def coerce_permission_level(
    value: str | PermissionLevel | None,
) -> Optional[PermissionLevel]:
    """Map a stored level to PermissionLevel, None when absent or unknown."""
    if value is None or isinstance(value, PermissionLevel):
        return value
    try:
        return PermissionLevel(value)
    except ValueError:
        return None


def normalize_permission_level(
    role: RoleName,
    level: PermissionLevel | None,
) -> Optional[PermissionLevel]:
    """
    Enforce the role assignment invariant.

    Admin and user assignments never carry a level. Staff assignments
    always do, falling back to the role default.
    """
    if role != RoleName.STAFF:
        return None
    return level or DEFAULT_ROLE_PERMISSION_LEVEL[RoleName.STAFF]


def effective_permission_level(
    roles: Iterable[RoleGrant],
) -> Optional[PermissionLevel]:
    """
    Highest permission level across all role assignments.

    Admin counts as full access. A staff grant with no level counts as the
    staff default. Returns None when the actor holds no admin or staff role.
    """
    best: Optional[PermissionLevel] = None
    for grant in roles:
        if grant.role == RoleName.ADMIN:
            return PermissionLevel.CAN_EDIT
        if grant.role != RoleName.STAFF:
            continue
        level = grant.permission_level or DEFAULT_ROLE_PERMISSION_LEVEL[RoleName.STAFF]
        if best is None or _LEVEL_RANK[level] > _LEVEL_RANK[best]:
            best = level
    return best


def is_admin(actor: Optional[ActorContext]) -> bool:
    return actor is not None and RoleName.ADMIN in actor.role_names


def is_admin_or_staff(actor: Optional[ActorContext]) -> bool:
    """Whether the actor belongs on the admin dashboard at all."""
    return actor is not None and bool(
        actor.role_names & {RoleName.ADMIN, RoleName.STAFF}
    )


def has_permission(actor: Optional[ActorContext], permission: Permission) -> bool:
    """
    Check a single permission.

    Admin satisfies everything. Staff with canEdit satisfies view and edit
    class permissions but never admin-class user management. Staff with
    canRead satisfies view class only. The user role, an empty role list
    and an anonymous caller satisfy nothing.
    """
    if actor is None or not actor.roles:
        return False
    if is_admin(actor):
        return True

    required = PERMISSION_REQUIREMENTS[permission]
    if required == AccessLevel.ADMIN:
        return False

    level = effective_permission_level(actor.roles)
    if level is None:
        return False
    if required == AccessLevel.VIEW:
        return True
    return level == PermissionLevel.CAN_EDIT


def granted_permissions(actor: Optional[ActorContext]) -> list[Permission]:
    """All permissions the actor satisfies, in declaration order."""
    return [p for p in Permission if has_permission(actor, p)]
