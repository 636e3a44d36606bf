"""
Application endpoints.

Public submission with a PDF resume, applicant self-service, and the admin
workflow: status changes, archiving and applicant emails. Emails are
scheduled as background tasks once the change has been committed.
"""

import json
import logging
from typing import Literal, Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Path,
    Query,
    UploadFile,
    status,
)
from fastapi.exceptions import RequestValidationError
from pydantic import EmailStr, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_optional_user, get_pagination_params, require_active_user
from api.schemas.applications import (
    ApplicationSubmit,
    CustomEmailRequest,
    TemplateEmailRequest,
    UpdateStatusRequest,
)
from api.schemas.common import paginated
from api.services import applications as application_service
from api.services import notifications
from core.middleware.authorization import require_permission
from core.permissions import ActorContext, Permission
from database.engine import get_db
from database.models.users import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["applications"])

StatusFilter = Optional[Literal["all", "pending", "reviewed", "shortlisted", "rejected", "hired"]]


def _parse_custom_fields(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    try:
        values = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="custom_field_values must be a JSON object")
    if not isinstance(values, dict):
        raise HTTPException(status_code=400, detail="custom_field_values must be a JSON object")
    return values


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Submit Application",
    description="Multipart form with applicant details and a PDF resume of at most 5MB.",
)
async def submit_application(
    background_tasks: BackgroundTasks,
    job_number: str = Form(...),
    first_name: str = Form(...),
    last_name: str = Form(...),
    email: str = Form(...),
    contact_number: str = Form(...),
    address: str = Form(...),
    custom_field_values: Optional[str] = Form(None, description="JSON object keyed by field key"),
    resume: UploadFile = File(...),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        form = ApplicationSubmit(
            first_name=first_name,
            last_name=last_name,
            email=email,
            contact_number=contact_number,
            address=address,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    resume_data = await resume.read()
    result = await application_service.submit_application(
        db,
        job_number,
        form.model_dump(),
        _parse_custom_fields(custom_field_values),
        resume.filename,
        resume.content_type,
        resume_data,
        user=current_user,
    )
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))

    background_tasks.add_task(
        notifications.send_application_confirmation,
        result.pop("notice"),
        content=result.pop("content"),
    )
    return result


@router.get("/check/{job_number}", summary="Check Existing Application")
async def check_application(
    job_number: str = Path(..., description="Job number"),
    email: Optional[EmailStr] = Query(None),
    user_id: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """Whether an active (non-rejected) application exists for this job."""
    result = await application_service.check_application(db, job_number, email, user_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return result


@router.get("/mine", summary="My Applications")
async def my_applications(
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await application_service.list_my_applications(db, current_user)


@router.get(
    "/all",
    summary="List Applications",
    description="Active (non-archived) applications. Requires applications:view.",
    dependencies=[Depends(require_permission(Permission.APPLICATIONS_VIEW))],
)
async def list_applications(
    status_filter: StatusFilter = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    pagination: dict = Depends(get_pagination_params),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.list_applications(
        db,
        status=status_filter,
        search=search,
        limit=pagination["limit"],
        offset=pagination["offset"],
    )
    return paginated(
        "applications", result["applications"], result["total"], pagination["page"], pagination["limit"]
    )


@router.get(
    "/archived",
    summary="List Archived Applications",
    dependencies=[Depends(require_permission(Permission.APPLICATIONS_VIEW))],
)
async def list_archived(
    status_filter: StatusFilter = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    pagination: dict = Depends(get_pagination_params),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.list_applications(
        db,
        status=status_filter,
        search=search,
        archived=True,
        limit=pagination["limit"],
        offset=pagination["offset"],
    )
    return paginated(
        "applications", result["applications"], result["total"], pagination["page"], pagination["limit"]
    )


@router.get(
    "/job/{job_id}",
    summary="Applications for a Job",
    dependencies=[Depends(require_permission(Permission.APPLICATIONS_VIEW))],
)
async def list_for_job(
    job_id: int = Path(..., description="Job ID"),
    status_filter: StatusFilter = Query(None, alias="status"),
    pagination: dict = Depends(get_pagination_params),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.list_applications(
        db,
        status=status_filter,
        job_id=job_id,
        limit=pagination["limit"],
        offset=pagination["offset"],
    )
    return paginated(
        "applications", result["applications"], result["total"], pagination["page"], pagination["limit"]
    )


@router.get(
    "/user/{user_id}",
    summary="Applications by a User",
    dependencies=[Depends(require_permission(Permission.APPLICATIONS_VIEW))],
)
async def list_for_user(
    user_id: int = Path(..., description="User ID"),
    pagination: dict = Depends(get_pagination_params),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.list_applications(
        db,
        user_id=user_id,
        limit=pagination["limit"],
        offset=pagination["offset"],
    )
    return paginated(
        "applications", result["applications"], result["total"], pagination["page"], pagination["limit"]
    )


@router.get(
    "/admin/{application_id}",
    summary="Get Application (Admin)",
    description="Includes notes, allowed_transitions and is_terminal.",
    dependencies=[Depends(require_permission(Permission.APPLICATIONS_VIEW))],
)
async def get_application_admin(
    application_id: int = Path(..., description="Application ID"),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.get_application(db, application_id)
    if not result:
        raise HTTPException(status_code=404, detail="Application not found")
    return result


@router.get("/{application_id}", summary="Get My Application")
async def get_own_application(
    application_id: int = Path(..., description="Application ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.get_own_application(db, current_user, application_id)
    if not result:
        raise HTTPException(status_code=404, detail="Application not found")
    return result


@router.patch(
    "/{application_id}/status",
    summary="Update Application Status",
    description="Moves the application forward or rejects it. Illegal transitions return 409.",
)
async def update_status(
    request: UpdateStatusRequest,
    background_tasks: BackgroundTasks,
    application_id: int = Path(..., description="Application ID"),
    actor: ActorContext = Depends(require_permission(Permission.APPLICATIONS_EDIT)),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.update_status(
        db, actor, application_id, request.status, request.notes
    )
    if result is None:
        raise HTTPException(status_code=404, detail="Application not found")

    background_tasks.add_task(
        notifications.send_status_notification,
        result.pop("notice"),
        request.status,
        request.notes,
        content=result.pop("content"),
    )
    return result


@router.patch("/{application_id}/archive", summary="Archive Application")
async def archive_application(
    application_id: int = Path(..., description="Application ID"),
    actor: ActorContext = Depends(require_permission(Permission.APPLICATIONS_EDIT)),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.archive_application(db, actor, application_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Application not found")
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))
    return result


@router.patch("/{application_id}/restore", summary="Restore Application")
async def restore_application(
    application_id: int = Path(..., description="Application ID"),
    actor: ActorContext = Depends(require_permission(Permission.APPLICATIONS_EDIT)),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.restore_application(db, actor, application_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Application not found")
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))
    return result


@router.delete("/{application_id}", summary="Delete Application")
async def delete_application(
    application_id: int = Path(..., description="Application ID"),
    actor: ActorContext = Depends(require_permission(Permission.APPLICATIONS_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    """Permanently delete an application and its resume."""
    result = await application_service.delete_application(db, actor, application_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Application not found")
    return result


@router.post("/{application_id}/email", summary="Email Applicant")
async def send_custom_email(
    request: CustomEmailRequest,
    background_tasks: BackgroundTasks,
    application_id: int = Path(..., description="Application ID"),
    actor: ActorContext = Depends(require_permission(Permission.APPLICATIONS_EMAIL)),
    db: AsyncSession = Depends(get_db),
):
    notice = await application_service.prepare_custom_email(db, actor, application_id, request.subject)
    if notice is None:
        raise HTTPException(status_code=404, detail="Application not found")

    background_tasks.add_task(
        notifications.send_custom_email, notice, request.subject, request.message
    )
    return {"success": True, "message": f"Email queued for {notice.email}"}


@router.post(
    "/{application_id}/email/template",
    summary="Send Template Email",
    description=(
        "Interview invitations move the application to shortlisted and rejections to "
        "rejected when that transition is allowed. Offers never change the status."
    ),
)
async def send_template_email(
    request: TemplateEmailRequest,
    background_tasks: BackgroundTasks,
    application_id: int = Path(..., description="Application ID"),
    actor: ActorContext = Depends(require_permission(Permission.APPLICATIONS_EMAIL)),
    db: AsyncSession = Depends(get_db),
):
    result = await application_service.prepare_template_email(
        db, actor, application_id, request.template
    )
    if result is None:
        raise HTTPException(status_code=404, detail="Application not found")
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))

    notice = result.pop("notice")
    background_tasks.add_task(
        notifications.send_template_email,
        notice,
        request.template,
        request.custom_data.model_dump(exclude_none=True),
        content=result.pop("content"),
    )
    return {
        "success": True,
        "message": f"Email queued for {notice.email}",
        "status": result["status"],
        "status_changed": result["status_changed"],
    }
