"""Industry service functions."""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.permissions import ActorContext
from core.security import AuditAction, ResourceType, log_audit_event
from core.utils.datetime import isoformat
from database.models.jobs import Industry, Job

logger = logging.getLogger(__name__)


def serialize_industry(industry: Industry, job_count: Optional[int] = None) -> Dict[str, Any]:
    data = {
        "id": industry.id,
        "name": industry.name,
        "description": industry.description,
        "is_active": industry.is_active,
        "created_at": isoformat(industry.created_at),
        "updated_at": isoformat(industry.updated_at),
    }
    if job_count is not None:
        data["job_count"] = job_count
    return data


def _job_count_subquery(published_only: bool):
    query = select(Job.industry_id, func.count(Job.id).label("job_count")).group_by(Job.industry_id)
    if published_only:
        query = query.where(Job.is_published == True)
    return query.subquery()


async def list_industries(db: AsyncSession, include_inactive: bool = False) -> list[Dict[str, Any]]:
    """
    Industries ordered by name with their job counts.

    The public list counts published jobs of active industries only; the
    admin list includes inactive industries and counts every job.
    """
    counts = _job_count_subquery(published_only=not include_inactive)
    query = (
        select(Industry, func.coalesce(counts.c.job_count, 0))
        .outerjoin(counts, counts.c.industry_id == Industry.id)
        .order_by(Industry.name)
    )
    if not include_inactive:
        query = query.where(Industry.is_active == True)

    result = await db.execute(query)
    return [serialize_industry(industry, count) for industry, count in result.all()]


async def _get(db: AsyncSession, industry_id: int) -> Optional[Industry]:
    result = await db.execute(select(Industry).where(Industry.id == industry_id))
    return result.scalar_one_or_none()


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Industry.id).where(func.lower(Industry.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Industry.id != exclude_id)
    return (await db.execute(query)).first() is not None


async def get_industry(
    db: AsyncSession,
    industry_id: int,
    include_inactive: bool = False,
) -> Optional[Dict[str, Any]]:
    industry = await _get(db, industry_id)
    if not industry or (not industry.is_active and not include_inactive):
        return None
    count = await db.execute(
        select(func.count(Job.id)).where(Job.industry_id == industry.id, Job.is_published == True)
    )
    return serialize_industry(industry, count.scalar() or 0)


async def create_industry(
    db: AsyncSession,
    actor: ActorContext,
    data: Dict[str, Any],
) -> Dict[str, Any]:
    if await _name_taken(db, data["name"]):
        return {"success": False, "error": "An industry with this name already exists"}

    industry = Industry(
        name=data["name"],
        description=data.get("description"),
        is_active=data.get("is_active", True),
    )
    db.add(industry)
    await db.commit()

    log_audit_event(
        action=AuditAction.CREATE,
        resource_type=ResourceType.INDUSTRY,
        resource_id=industry.id,
        user_id=actor.user_id,
        details={"name": industry.name},
    )
    return {"success": True, "industry": serialize_industry(industry)}


async def update_industry(
    db: AsyncSession,
    actor: ActorContext,
    industry_id: int,
    updates: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    industry = await _get(db, industry_id)
    if not industry:
        return None

    name = updates.get("name")
    if name and await _name_taken(db, name, exclude_id=industry.id):
        return {"success": False, "error": "An industry with this name already exists"}

    for field in ("name", "description", "is_active"):
        if field in updates:
            setattr(industry, field, updates[field])
    await db.commit()
    await db.refresh(industry)

    log_audit_event(
        action=AuditAction.UPDATE,
        resource_type=ResourceType.INDUSTRY,
        resource_id=industry.id,
        user_id=actor.user_id,
        details={"fields": sorted(updates)},
    )
    return {"success": True, "industry": serialize_industry(industry)}


async def toggle_industry(
    db: AsyncSession,
    actor: ActorContext,
    industry_id: int,
) -> Optional[Dict[str, Any]]:
    industry = await _get(db, industry_id)
    if not industry:
        return None

    industry.is_active = not industry.is_active
    await db.commit()
    await db.refresh(industry)

    log_audit_event(
        action=AuditAction.ACTIVATE if industry.is_active else AuditAction.DEACTIVATE,
        resource_type=ResourceType.INDUSTRY,
        resource_id=industry.id,
        user_id=actor.user_id,
    )
    return {"success": True, "industry": serialize_industry(industry)}


async def delete_industry(
    db: AsyncSession,
    actor: ActorContext,
    industry_id: int,
) -> Optional[Dict[str, Any]]:
    """
    Delete an industry.

    Jobs in the industry are kept and lose their industry; the response
    carries a warning with the number of affected jobs.
    """
    industry = await _get(db, industry_id)
    if not industry:
        return None

    jobs = (await db.execute(select(Job).where(Job.industry_id == industry.id))).scalars().all()
    for job in jobs:
        job.industry_id = None

    name = industry.name
    await db.delete(industry)
    await db.commit()

    warning = None
    if jobs:
        warning = f"{len(jobs)} job(s) no longer have an industry"
        logger.warning(f"Industry '{name}' deleted; {warning}")

    log_audit_event(
        action=AuditAction.DELETE,
        resource_type=ResourceType.INDUSTRY,
        resource_id=industry_id,
        user_id=actor.user_id,
        details={"name": name, "affected_jobs": len(jobs)},
    )
    return {"success": True, "message": "Industry deleted successfully", "warning": warning}
