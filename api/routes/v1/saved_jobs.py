"""Saved job (bookmark) endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_optional_user, require_active_user
from api.services import saved_jobs as saved_job_service
from database.engine import get_db
from database.models.users import User

router = APIRouter(prefix="/saved-jobs", tags=["saved-jobs"])


@router.get("", summary="List Saved Jobs")
async def list_saved_jobs(
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await saved_job_service.list_saved_jobs(db, current_user)


@router.get("/check/{job_id}", summary="Is Job Saved")
async def check_saved(
    job_id: int = Path(..., description="Job ID"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Always false for anonymous callers."""
    return {"saved": await saved_job_service.is_saved(db, current_user, job_id)}


@router.post("/{job_id}", summary="Save Job")
async def save_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    result = await saved_job_service.save_job(db, current_user, job_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return result


@router.delete("/{job_id}", summary="Unsave Job")
async def unsave_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await saved_job_service.unsave_job(db, current_user, job_id)
