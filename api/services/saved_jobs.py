"""Candidate bookmarks."""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.services.jobs import serialize_job
from core.utils.datetime import isoformat
from database.models.jobs import Job, SavedJob
from database.models.users import User

logger = logging.getLogger(__name__)


async def list_saved_jobs(db: AsyncSession, user: User) -> Dict[str, Any]:
    """Saved jobs, most recent first. Unpublished jobs are hidden."""
    result = await db.execute(
        select(SavedJob)
        .join(Job, SavedJob.job_id == Job.id)
        .options(selectinload(SavedJob.job).selectinload(Job.industry))
        .where(SavedJob.user_id == user.id, Job.is_published == True)
        .order_by(SavedJob.saved_at.desc(), SavedJob.id.desc())
    )
    return {
        "saved_jobs": [
            {
                "id": saved.id,
                "saved_at": isoformat(saved.saved_at),
                "job": serialize_job(saved.job),
            }
            for saved in result.scalars().all()
        ]
    }


async def _find(db: AsyncSession, user_id: int, job_id: int) -> Optional[SavedJob]:
    result = await db.execute(
        select(SavedJob).where(SavedJob.user_id == user_id, SavedJob.job_id == job_id)
    )
    return result.scalar_one_or_none()


async def is_saved(db: AsyncSession, user: Optional[User], job_id: int) -> bool:
    if user is None:
        return False
    return await _find(db, user.id, job_id) is not None


async def save_job(db: AsyncSession, user: User, job_id: int) -> Optional[Dict[str, Any]]:
    """
    Bookmark a published job. Saving twice is a no-op.

    Returns:
        Dict with the bookmark, None when the job is not public
    """
    job = (await db.execute(select(Job).where(Job.id == job_id))).scalar_one_or_none()
    if not job or not job.is_published:
        return None

    saved = await _find(db, user.id, job_id)
    if saved is None:
        saved = SavedJob(user_id=user.id, job_id=job_id)
        db.add(saved)
        try:
            await db.commit()
        except IntegrityError:
            # Saved concurrently
            await db.rollback()
            saved = await _find(db, user.id, job_id)

    return {
        "success": True,
        "saved": True,
        "saved_job": {"id": saved.id, "job_id": job_id, "saved_at": isoformat(saved.saved_at)},
    }


async def unsave_job(db: AsyncSession, user: User, job_id: int) -> Dict[str, Any]:
    """Remove a bookmark. Removing one that does not exist is a no-op."""
    saved = await _find(db, user.id, job_id)
    if saved is not None:
        await db.delete(saved)
        await db.commit()
    return {"success": True, "saved": False}
