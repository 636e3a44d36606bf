"""Dashboard statistics."""

from typing import Any, Dict
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.utils.datetime import isoformat, now
from core.workflow import ApplicationStatus
from database.models.applications import Application
from database.models.jobs import Industry, Job, JobView
from database.models.users import User

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5
TOP_INDUSTRIES = 6


async def _count(db: AsyncSession, model, *criteria) -> int:
    query = select(func.count()).select_from(model)
    if criteria:
        query = query.where(*criteria)
    return (await db.execute(query)).scalar() or 0


async def get_stats(db: AsyncSession) -> Dict[str, Any]:
    """Totals and recent activity for the admin landing page."""
    jobs = {
        "total": await _count(db, Job),
        "published": await _count(db, Job, Job.is_published == True),
        "draft": await _count(db, Job, Job.is_published == False),
        "expired": await _count(db, Job, Job.expires_at.is_not(None), Job.expires_at < now()),
    }

    by_status = dict(
        (await db.execute(
            select(Application.status, func.count(Application.id)).group_by(Application.status)
        )).all()
    )
    applications = {"total": sum(by_status.values())}
    for status in ApplicationStatus:
        applications[status.value] = by_status.get(status, 0)
    applications["archived"] = await _count(db, Application, Application.archived_at.is_not(None))

    industries = {
        "total": await _count(db, Industry),
        "active": await _count(db, Industry, Industry.is_active == True),
    }

    jobs_by_industry = await db.execute(
        select(Industry.name, func.count(Job.id).label("job_count"))
        .join(Job, Job.industry_id == Industry.id)
        .where(Industry.is_active == True)
        .group_by(Industry.id, Industry.name)
        .order_by(func.count(Job.id).desc(), Industry.name)
        .limit(TOP_INDUSTRIES)
    )

    recent_applications = (await db.execute(
        select(Application)
        .options(selectinload(Application.job))
        .order_by(Application.created_at.desc(), Application.id.desc())
        .limit(RECENT_LIMIT)
    )).scalars().all()

    recent_jobs = (await db.execute(
        select(Job)
        .options(selectinload(Job.industry))
        .order_by(Job.created_at.desc(), Job.id.desc())
        .limit(RECENT_LIMIT)
    )).scalars().all()

    return {
        "jobs": jobs,
        "applications": applications,
        "users": {"total": await _count(db, User)},
        "industries": industries,
        "job_views": {"total": await _count(db, JobView)},
        "jobs_by_industry": [
            {"name": name, "job_count": count} for name, count in jobs_by_industry.all()
        ],
        "recent_applications": [
            {
                "id": a.id,
                "full_name": a.full_name,
                "email": a.email,
                "status": a.status.value,
                "job_title": a.job.title,
                "job_number": a.job.job_number,
                "created_at": isoformat(a.created_at),
            }
            for a in recent_applications
        ],
        "recent_jobs": [
            {
                "id": j.id,
                "job_number": j.job_number,
                "title": j.title,
                "industry": j.industry.name if j.industry else None,
                "is_published": j.is_published,
                "created_at": isoformat(j.created_at),
            }
            for j in recent_jobs
        ],
    }
