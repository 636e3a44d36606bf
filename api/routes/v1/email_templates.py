"""
Email template endpoints.

Admins edit the wording of the applicant emails. Every route requires
settings:manage.
"""

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.email_templates import EmailTemplateUpdate
from api.services import email_templates as template_service
from core.middleware.authorization import require_permission
from core.permissions import ActorContext, Permission
from database.engine import get_db

router = APIRouter(prefix="/email-templates", tags=["email templates"])

_manage = require_permission(Permission.SETTINGS_MANAGE)


@router.get(
    "",
    summary="List Email Templates",
    description="Every template, created from the defaults on first use, with the placeholders each type accepts.",
    dependencies=[Depends(_manage)],
)
async def list_templates(db: AsyncSession = Depends(get_db)):
    return await template_service.list_templates(db)


@router.get(
    "/{template_type}",
    summary="Get Email Template",
    dependencies=[Depends(_manage)],
)
async def get_template(template_type: str, db: AsyncSession = Depends(get_db)):
    parsed = template_service.parse_template_type(template_type)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid template type: {template_type}")
    return await template_service.get_template(db, parsed)


@router.patch("/{template_id}", summary="Update Email Template")
async def update_template(
    request: EmailTemplateUpdate,
    template_id: int = Path(..., ge=1),
    actor: ActorContext = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    updates = request.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")

    result = await template_service.update_template(db, actor, template_id, updates)
    if result is None:
        raise HTTPException(status_code=404, detail="Email template not found")
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))
    return result


@router.patch("/{template_id}/toggle", summary="Enable or Disable Email Template")
async def toggle_template(
    template_id: int = Path(..., ge=1),
    actor: ActorContext = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    """A disabled template suppresses the email it stands for."""
    result = await template_service.toggle_template(db, actor, template_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Email template not found")
    return result


@router.post("/{template_id}/reset", summary="Reset Email Template")
async def reset_template(
    template_id: int = Path(..., ge=1),
    actor: ActorContext = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    """Restore the built-in subject and body and re-enable the template."""
    result = await template_service.reset_template(db, actor, template_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Email template not found")
    return result
