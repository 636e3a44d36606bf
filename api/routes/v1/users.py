"""
User management endpoints.

Listing is open to anyone with users:view. Every mutation is gated by the
administrative authority rules for the specific target account.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_pagination_params
from api.schemas.common import paginated
from api.schemas.users import UpdatePermissionLevelRequest, UpdateRoleRequest
from api.services import users as user_service
from api.services.notifications import send_invitation_email
from core.middleware.authorization import require_permission
from core.permissions import ActorContext, Permission, RoleName
from database.engine import get_db

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "",
    summary="List Users",
    description="Paginated accounts. Each row carries the actions the caller may take on it.",
)
async def list_users(
    search: Optional[str] = Query(None, description="Search by name or email"),
    role: Optional[RoleName] = Query(None, description="Filter by role"),
    is_active: Optional[bool] = Query(None),
    pagination: dict = Depends(get_pagination_params),
    actor: ActorContext = Depends(require_permission(Permission.USERS_VIEW)),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.list_users(
        db,
        actor,
        search=search,
        role=role.value if role else None,
        is_active=is_active,
        limit=pagination["limit"],
        offset=pagination["offset"],
    )
    return paginated("users", result["users"], result["total"], pagination["page"], pagination["limit"])


@router.get(
    "/roles",
    summary="List Roles",
    dependencies=[Depends(require_permission(Permission.USERS_VIEW))],
)
async def list_roles(db: AsyncSession = Depends(get_db)):
    return {"roles": await user_service.list_roles(db)}


@router.get(
    "/permission-levels",
    summary="List Permission Levels",
    dependencies=[Depends(require_permission(Permission.USERS_VIEW))],
)
async def list_permission_levels():
    return {"permission_levels": user_service.list_permission_levels()}


@router.get(
    "/permission-levels/defaults/{role_name}",
    summary="Default Permission Level",
    dependencies=[Depends(require_permission(Permission.USERS_VIEW))],
)
async def default_permission_level(role_name: str = Path(..., description="Role name")):
    result = user_service.default_permission_level(role_name)
    if result is None:
        raise HTTPException(status_code=404, detail="Role not found")
    return result


@router.get("/{user_id}", summary="Get User")
async def get_user(
    user_id: int = Path(..., description="User ID"),
    actor: ActorContext = Depends(require_permission(Permission.USERS_VIEW)),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.get_user(db, user_id, actor)
    if not result:
        raise HTTPException(status_code=404, detail="User not found")
    return result


@router.patch(
    "/{user_id}/role",
    summary="Change Role",
    description="Replace the user's role. Not allowed on yourself; admin accounts are reserved for the super admin.",
)
async def update_role(
    request: UpdateRoleRequest,
    user_id: int = Path(..., description="User ID"),
    actor: ActorContext = Depends(require_permission(Permission.USERS_CHANGE_ROLE)),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.update_role(
        db, actor, user_id, request.role_id, request.permission_level
    )
    if result is None:
        raise HTTPException(status_code=404, detail="User not found")
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))
    return result


@router.patch(
    "/{user_id}/permission-level",
    summary="Change Permission Level",
    description="Set canEdit or canRead on a staff account.",
)
async def update_permission_level(
    request: UpdatePermissionLevelRequest,
    user_id: int = Path(..., description="User ID"),
    actor: ActorContext = Depends(require_permission(Permission.USERS_EDIT)),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.update_permission_level(
        db, actor, user_id, request.permission_level
    )
    if result is None:
        raise HTTPException(status_code=404, detail="User not found")
    return result


@router.patch("/{user_id}/toggle-active", summary="Activate or Deactivate User")
async def toggle_active(
    user_id: int = Path(..., description="User ID"),
    actor: ActorContext = Depends(require_permission(Permission.USERS_DEACTIVATE)),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.toggle_active(db, actor, user_id)
    if result is None:
        raise HTTPException(status_code=404, detail="User not found")
    return result


@router.delete("/{user_id}", summary="Delete User")
async def delete_user(
    user_id: int = Path(..., description="User ID"),
    actor: ActorContext = Depends(require_permission(Permission.USERS_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.delete_user(db, actor, user_id)
    if result is None:
        raise HTTPException(status_code=404, detail="User not found")
    return result


@router.post("/{user_id}/resend-invitation", summary="Resend Invitation")
async def resend_invitation(
    background_tasks: BackgroundTasks,
    user_id: int = Path(..., description="User ID"),
    actor: ActorContext = Depends(require_permission(Permission.USERS_INVITE)),
    db: AsyncSession = Depends(get_db),
):
    """Rotate the invitation token of a pending account and email it again."""
    result = await user_service.resend_invitation(db, actor, user_id)
    if result is None:
        raise HTTPException(status_code=404, detail="User not found")

    token = result.pop("token")
    background_tasks.add_task(
        send_invitation_email, result.pop("email"), result.pop("role"), token, actor.email
    )
    result["message"] = "Invitation resent"
    return result
