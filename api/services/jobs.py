"""Job service functions."""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.permissions import ActorContext
from core.security import AuditAction, ResourceType, hash_ip_address, log_audit_event
from core.utils.datetime import isoformat, now
from core.utils.formatting import format_job_number, format_salary_range, parse_job_number
from database.models.applications import Application
from database.models.jobs import Industry, Job, JobView

logger = logging.getLogger(__name__)

# Attempts at claiming a fresh job number before giving up
JOB_NUMBER_ATTEMPTS = 3

JOB_FIELDS = (
    "title",
    "description",
    "industry_id",
    "location",
    "work_type",
    "job_type",
    "shift_type",
    "experience_min",
    "experience_max",
    "salary_min",
    "salary_max",
    "salary_currency",
    "salary_period",
    "expires_at",
    "custom_application_fields",
)

# Fields an update may explicitly clear with null
CLEARABLE_FIELDS = {"experience_max", "salary_min", "salary_max", "expires_at"}


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def serialize_job(
    job: Job,
    application_count: Optional[int] = None,
    view_count: Optional[int] = None,
) -> Dict[str, Any]:
    """Job payload. Counts are only included on admin views."""
    data = {
        "id": job.id,
        "job_number": job.job_number,
        "title": job.title,
        "description": job.description,
        "industry": (
            {"id": job.industry.id, "name": job.industry.name} if job.industry else None
        ),
        "location": job.location,
        "work_type": job.work_type.value,
        "job_type": job.job_type.value,
        "shift_type": job.shift_type.value,
        "experience_min": job.experience_min,
        "experience_max": job.experience_max,
        "salary_min": _money(job.salary_min),
        "salary_max": _money(job.salary_max),
        "salary_currency": job.salary_currency.value,
        "salary_period": job.salary_period.value,
        "salary_display": format_salary_range(
            job.salary_min, job.salary_max, job.salary_currency.value, job.salary_period.value
        ),
        "is_published": job.is_published,
        "published_at": isoformat(job.published_at),
        "expires_at": isoformat(job.expires_at),
        "is_expired": job.is_expired,
        "accepts_applications": job.accepts_applications,
        "custom_application_fields": job.custom_application_fields or [],
        "created_at": isoformat(job.created_at),
        "updated_at": isoformat(job.updated_at),
    }
    if application_count is not None:
        data["application_count"] = application_count
    if view_count is not None:
        data["view_count"] = view_count
    return data


async def load_job(db: AsyncSession, job_id: int) -> Optional[Job]:
    result = await db.execute(
        select(Job)
        .options(selectinload(Job.industry))
        .where(Job.id == job_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def load_job_by_number(db: AsyncSession, job_number: str) -> Optional[Job]:
    result = await db.execute(
        select(Job)
        .options(selectinload(Job.industry))
        .where(Job.job_number == job_number.upper())
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def next_job_number(db: AsyncSession) -> str:
    """Next JN-XXXX number, one past the highest issued so far."""
    # Longer numbers sort after shorter ones, so JN-10000 follows JN-9999.
    result = await db.execute(
        select(Job.job_number)
        .where(Job.job_number.like("JN-%"))
        .order_by(func.length(Job.job_number).desc(), Job.job_number.desc())
        .limit(1)
    )
    return format_job_number(parse_job_number(result.scalar_one_or_none()) + 1)


def _search_clause(search: str):
    pattern = f"%{search.strip()}%"
    return or_(
        Job.job_number.ilike(pattern),
        Job.title.ilike(pattern),
        Job.description.ilike(pattern),
        Job.location.ilike(pattern),
        Industry.name.ilike(pattern),
    )


async def _counts(db: AsyncSession, model, job_ids: list[int]) -> dict[int, int]:
    if not job_ids:
        return {}
    result = await db.execute(
        select(model.job_id, func.count(model.id))
        .where(model.job_id.in_(job_ids))
        .group_by(model.job_id)
    )
    return dict(result.all())


async def list_public_jobs(
    db: AsyncSession,
    search: Optional[str] = None,
    work_type: Optional[str] = None,
    industry_id: Optional[int] = None,
    location: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> Dict[str, Any]:
    """
    Published jobs, newest first.

    Expired jobs stay listed and are flagged with is_expired.
    """
    query = (
        select(Job)
        .outerjoin(Industry, Job.industry_id == Industry.id)
        .where(Job.is_published == True)
    )
    if search and search.strip():
        query = query.where(_search_clause(search))
    if work_type:
        query = query.where(Job.work_type == work_type)
    if industry_id:
        query = query.where(Job.industry_id == industry_id)
    if location and location.strip():
        query = query.where(Job.location.ilike(f"%{location.strip()}%"))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = (
        query.options(selectinload(Job.industry))
        .order_by(Job.published_at.desc(), Job.id.desc())
        .limit(limit)
        .offset(offset)
    )
    jobs = (await db.execute(query)).scalars().all()
    return {"jobs": [serialize_job(job) for job in jobs], "total": total}


async def get_public_job(db: AsyncSession, job_number: str) -> Optional[Dict[str, Any]]:
    job = await load_job_by_number(db, job_number)
    if not job or not job.is_published:
        return None
    return serialize_job(job)


async def record_job_view(
    db: AsyncSession,
    job_number: str,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Count a view once per signed-in user, or once per client IP for guests.

    Returns:
        {"counted": bool}, None when the job is not public
    """
    job = await load_job_by_number(db, job_number)
    if not job or not job.is_published:
        return None

    if user_id is not None:
        existing = select(JobView.id).where(JobView.job_id == job.id, JobView.user_id == user_id)
        view = JobView(job_id=job.id, user_id=user_id)
    elif ip_address:
        ip_hash = hash_ip_address(ip_address)
        existing = select(JobView.id).where(JobView.job_id == job.id, JobView.ip_hash == ip_hash)
        view = JobView(job_id=job.id, ip_hash=ip_hash)
    else:
        return {"counted": False}

    if (await db.execute(existing)).first() is not None:
        return {"counted": False}

    view.user_agent = (user_agent or "")[:500] or None
    db.add(view)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent duplicate view
        await db.rollback()
        return {"counted": False}
    return {"counted": True}


async def list_admin_jobs(
    db: AsyncSession,
    search: Optional[str] = None,
    is_published: Optional[bool] = None,
    industry_id: Optional[int] = None,
    limit: int = 10,
    offset: int = 0,
) -> Dict[str, Any]:
    """All jobs including drafts, newest first, with application and view counts."""
    query = select(Job).outerjoin(Industry, Job.industry_id == Industry.id)
    if search and search.strip():
        query = query.where(_search_clause(search))
    if is_published is not None:
        query = query.where(Job.is_published == is_published)
    if industry_id:
        query = query.where(Job.industry_id == industry_id)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = (
        query.options(selectinload(Job.industry))
        .order_by(Job.created_at.desc(), Job.id.desc())
        .limit(limit)
        .offset(offset)
    )
    jobs = (await db.execute(query)).scalars().all()

    ids = [job.id for job in jobs]
    applications = await _counts(db, Application, ids)
    views = await _counts(db, JobView, ids)
    return {
        "jobs": [
            serialize_job(job, applications.get(job.id, 0), views.get(job.id, 0))
            for job in jobs
        ],
        "total": total,
    }


async def _admin_payload(db: AsyncSession, job: Job) -> Dict[str, Any]:
    applications = await _counts(db, Application, [job.id])
    views = await _counts(db, JobView, [job.id])
    return serialize_job(job, applications.get(job.id, 0), views.get(job.id, 0))


async def get_job(db: AsyncSession, job_id: int) -> Optional[Dict[str, Any]]:
    job = await load_job(db, job_id)
    if not job:
        return None
    return await _admin_payload(db, job)


async def get_job_preview(db: AsyncSession, job_number: str) -> Optional[Dict[str, Any]]:
    """Admin preview by job number, drafts included."""
    job = await load_job_by_number(db, job_number)
    if not job:
        return None
    return await _admin_payload(db, job)


async def _industry_exists(db: AsyncSession, industry_id: int) -> bool:
    result = await db.execute(select(Industry.id).where(Industry.id == industry_id))
    return result.first() is not None


def _apply_publish(job: Job, is_published: bool) -> None:
    job.is_published = is_published
    if is_published and job.published_at is None:
        job.published_at = now()
    elif not is_published:
        job.published_at = None


async def create_job(
    db: AsyncSession,
    actor: ActorContext,
    data: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Create a job under the next free job number.

    Returns:
        Dict with the created job, or an error dict
    """
    if not await _industry_exists(db, data["industry_id"]):
        return {"success": False, "error": "Invalid industry selected"}

    for _ in range(JOB_NUMBER_ATTEMPTS):
        job = Job(job_number=await next_job_number(db))
        for field in JOB_FIELDS:
            if field in data:
                setattr(job, field, data[field])
        _apply_publish(job, bool(data.get("is_published")))
        db.add(job)
        try:
            await db.commit()
            break
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Job number {job.job_number} was taken concurrently, retrying")
    else:
        return {"success": False, "error": "Could not allocate a job number, please retry"}

    log_audit_event(
        action=AuditAction.CREATE,
        resource_type=ResourceType.JOB,
        resource_id=job.job_number,
        user_id=actor.user_id,
        details={"title": job.title, "is_published": job.is_published},
    )
    logger.info(f"Job {job.job_number} created by user {actor.user_id}")

    job = await load_job(db, job.id)
    return {"success": True, "job": serialize_job(job)}


async def update_job(
    db: AsyncSession,
    actor: ActorContext,
    job_id: int,
    updates: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """Apply a partial update. The job number never changes."""
    job = await load_job(db, job_id)
    if not job:
        return None

    industry_id = updates.get("industry_id")
    if industry_id is not None and not await _industry_exists(db, industry_id):
        return {"success": False, "error": "Invalid industry selected"}

    exp_min = updates.get("experience_min", job.experience_min)
    exp_max = updates.get("experience_max", job.experience_max)
    if exp_max is not None and exp_min is not None and exp_max < exp_min:
        return {"success": False, "error": "Maximum experience cannot be less than minimum experience"}
    sal_min = updates.get("salary_min", job.salary_min)
    sal_max = updates.get("salary_max", job.salary_max)
    if sal_min is not None and sal_max is not None and sal_max < sal_min:
        return {"success": False, "error": "Maximum salary cannot be less than minimum salary"}

    for field in JOB_FIELDS:
        if field not in updates:
            continue
        if updates[field] is None and field not in CLEARABLE_FIELDS:
            continue
        setattr(job, field, updates[field])
    if updates.get("is_published") is not None:
        _apply_publish(job, updates["is_published"])
    await db.commit()

    log_audit_event(
        action=AuditAction.UPDATE,
        resource_type=ResourceType.JOB,
        resource_id=job.job_number,
        user_id=actor.user_id,
        details={"fields": sorted(updates)},
    )

    job = await load_job(db, job_id)
    return {"success": True, "job": serialize_job(job)}


async def toggle_publish(
    db: AsyncSession,
    actor: ActorContext,
    job_id: int,
) -> Optional[Dict[str, Any]]:
    job = await load_job(db, job_id)
    if not job:
        return None

    _apply_publish(job, not job.is_published)
    await db.commit()

    log_audit_event(
        action=AuditAction.PUBLISH if job.is_published else AuditAction.UNPUBLISH,
        resource_type=ResourceType.JOB,
        resource_id=job.job_number,
        user_id=actor.user_id,
    )

    job = await load_job(db, job_id)
    return {
        "success": True,
        "message": f"Job {'published' if job.is_published else 'unpublished'} successfully",
        "job": serialize_job(job),
    }


async def delete_job(
    db: AsyncSession,
    actor: ActorContext,
    job_id: int,
) -> Optional[Dict[str, Any]]:
    """Delete a job together with its applications, views and bookmarks."""
    job = await load_job(db, job_id)
    if not job:
        return None

    job_number = job.job_number
    await db.delete(job)
    await db.commit()

    log_audit_event(
        action=AuditAction.DELETE,
        resource_type=ResourceType.JOB,
        resource_id=job_number,
        user_id=actor.user_id,
    )
    return {"success": True, "message": "Job deleted successfully"}
