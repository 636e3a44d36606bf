"""
Job posting endpoints.

Public listing and detail by job number, plus the admin surface for
drafting, publishing and maintaining postings.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_client_ip, get_optional_user, get_pagination_params
from api.schemas.common import paginated
from api.schemas.jobs import JobCreate, JobUpdate
from api.services import jobs as job_service
from core.middleware.authorization import require_permission
from core.permissions import ActorContext, Permission
from database.engine import get_db
from database.models.jobs import WorkType
from database.models.users import User

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get(
    "",
    summary="List Jobs",
    description="Published jobs, newest first. Expired jobs are listed with is_expired set.",
)
async def list_jobs(
    search: Optional[str] = Query(None, description="Job number, title, description, location or industry"),
    work_type: Optional[WorkType] = Query(None),
    industry_id: Optional[int] = Query(None, ge=1),
    location: Optional[str] = Query(None),
    pagination: dict = Depends(get_pagination_params),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.list_public_jobs(
        db,
        search=search,
        work_type=work_type,
        industry_id=industry_id,
        location=location,
        limit=pagination["limit"],
        offset=pagination["offset"],
    )
    return paginated("jobs", result["jobs"], result["total"], pagination["page"], pagination["limit"])


@router.get(
    "/admin",
    summary="List All Jobs",
    description="Drafts included, with application and view counts. Requires jobs:view.",
    dependencies=[Depends(require_permission(Permission.JOBS_VIEW))],
)
async def list_admin_jobs(
    search: Optional[str] = Query(None),
    is_published: Optional[bool] = Query(None),
    industry_id: Optional[int] = Query(None, ge=1),
    pagination: dict = Depends(get_pagination_params),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.list_admin_jobs(
        db,
        search=search,
        is_published=is_published,
        industry_id=industry_id,
        limit=pagination["limit"],
        offset=pagination["offset"],
    )
    return paginated("jobs", result["jobs"], result["total"], pagination["page"], pagination["limit"])


@router.get(
    "/admin/number/{job_number}",
    summary="Preview Job",
    dependencies=[Depends(require_permission(Permission.JOBS_VIEW))],
)
async def preview_job(
    job_number: str = Path(..., description="Job number, e.g. JN-0001"),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.get_job_preview(db, job_number)
    if not result:
        raise HTTPException(status_code=404, detail="Job not found")
    return result


@router.get("/number/{job_number}", summary="Get Job by Number")
async def get_public_job(
    job_number: str = Path(..., description="Job number, e.g. JN-0001"),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.get_public_job(db, job_number)
    if not result:
        raise HTTPException(status_code=404, detail="Job not found")
    return result


@router.post("/number/{job_number}/view", summary="Record Job View")
async def record_view(
    request: Request,
    job_number: str = Path(..., description="Job number, e.g. JN-0001"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Count one view per signed-in user, or per client IP for guests."""
    result = await job_service.record_job_view(
        db,
        job_number,
        user_id=current_user.id if current_user else None,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return result


@router.get(
    "/{job_id}",
    summary="Get Job",
    dependencies=[Depends(require_permission(Permission.JOBS_VIEW))],
)
async def get_job(
    job_id: int = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.get_job(db, job_id)
    if not result:
        raise HTTPException(status_code=404, detail="Job not found")
    return result


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create Job",
    description="Creates the job under the next JN-XXXX number. Requires jobs:create.",
)
async def create_job(
    request: JobCreate,
    actor: ActorContext = Depends(require_permission(Permission.JOBS_CREATE)),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.create_job(db, actor, request.model_dump())
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))
    return result


@router.put("/{job_id}", summary="Update Job")
async def update_job(
    request: JobUpdate,
    job_id: int = Path(..., description="Job ID"),
    actor: ActorContext = Depends(require_permission(Permission.JOBS_EDIT)),
    db: AsyncSession = Depends(get_db),
):
    updates = request.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")

    result = await job_service.update_job(db, actor, job_id, updates)
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))
    return result


@router.patch("/{job_id}/publish", summary="Publish or Unpublish Job")
async def toggle_publish(
    job_id: int = Path(..., description="Job ID"),
    actor: ActorContext = Depends(require_permission(Permission.JOBS_PUBLISH)),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.toggle_publish(db, actor, job_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return result


@router.delete("/{job_id}", summary="Delete Job")
async def delete_job(
    job_id: int = Path(..., description="Job ID"),
    actor: ActorContext = Depends(require_permission(Permission.JOBS_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.delete_job(db, actor, job_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return result
