"""
Application service functions.

Submission, applicant self-service and the admin workflow. Status changes
go through core.workflow; archiving is independent of status.
"""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import select, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.services.email_templates import load_template
from api.services.notifications import (
    STATUS_TEMPLATE_TYPES,
    ApplicantNotice,
    notice_from_application,
    template_type_for,
)
from core.config import settings
from core.middleware.authorization import InsufficientPermissions
from core.permissions import ActorContext
from core.security import AuditAction, ResourceType, log_audit_event
from core.storage.resumes import build_resume_key, get_resume_storage
from core.utils.datetime import isoformat, now
from core.utils.validators import validate_custom_field_values, validate_resume
from core.workflow import (
    INITIAL_STATUS,
    ApplicationStatus,
    allowed_transitions,
    can_transition,
    is_terminal,
    validate_transition,
)
from database.models.applications import Application
from database.models.communications import EmailTemplateType
from database.models.jobs import Job
from database.models.users import User

logger = logging.getLogger(__name__)

# Template emails that also move the application forward when legal
TEMPLATE_STATUS_CHANGES: dict[str, ApplicationStatus] = {
    "interview_invitation": ApplicationStatus.SHORTLISTED,
    "rejection": ApplicationStatus.REJECTED,
}


def serialize_application(application: Application, admin: bool = False) -> Dict[str, Any]:
    """
    Application payload.

    The admin variant adds internal notes and the workflow gates the UI
    uses to disable status actions.
    """
    job = application.job
    data = {
        "id": application.id,
        "job": {
            "id": job.id,
            "job_number": job.job_number,
            "title": job.title,
            "location": job.location,
            "is_published": job.is_published,
        },
        "user_id": application.user_id,
        "first_name": application.first_name,
        "last_name": application.last_name,
        "full_name": application.full_name,
        "email": application.email,
        "contact_number": application.contact_number,
        "address": application.address,
        "resume_url": application.resume_url,
        "resume_file_name": application.resume_file_name,
        "status": application.status.value,
        "custom_field_values": application.custom_field_values or {},
        "created_at": isoformat(application.created_at),
        "updated_at": isoformat(application.updated_at),
    }
    if admin:
        data.update({
            "notes": application.notes,
            "archived_at": isoformat(application.archived_at),
            "is_archived": application.is_archived,
            "is_terminal": is_terminal(application.status),
            "allowed_transitions": [s.value for s in allowed_transitions(application.status)],
            "custom_application_fields": job.custom_application_fields or [],
        })
    return data


async def load_application(db: AsyncSession, application_id: int) -> Optional[Application]:
    result = await db.execute(
        select(Application)
        .options(selectinload(Application.job))
        .where(Application.id == application_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _active_applications(job_id: int, email: str, user_id: Optional[int]):
    """Applications that block a new one: anything not rejected."""
    owner = Application.email == email.strip().lower()
    if user_id is not None:
        owner = or_(owner, Application.user_id == user_id)
    return select(Application.id).where(
        Application.job_id == job_id,
        owner,
        Application.status != ApplicationStatus.REJECTED,
    )


async def submit_application(
    db: AsyncSession,
    job_number: str,
    form: Dict[str, Any],
    custom_field_values: Dict[str, Any],
    resume_name: Optional[str],
    resume_type: Optional[str],
    resume_data: bytes,
    user: Optional[User] = None,
) -> Optional[Dict[str, Any]]:
    """
    Submit an application for a published job.

    A previously rejected applicant may apply again: the rejected record is
    left as it is and a new pending application is created.

    Returns:
        Dict with the application, plus the ApplicantNotice and template
        content for the confirmation email; None when the job does not
        exist or is not published; or an error dict
    """
    result = await db.execute(select(Job).where(Job.job_number == job_number.upper()))
    job = result.scalar_one_or_none()
    if not job or not job.is_published:
        return None
    if job.is_expired:
        return {"success": False, "error": "This job posting has expired"}

    ok, error = validate_resume(resume_name, resume_type, resume_data, settings.resume_max_size_bytes)
    if not ok:
        return {"success": False, "error": error}

    cleaned, errors = validate_custom_field_values(job.custom_application_fields or [], custom_field_values)
    if errors:
        return {"success": False, "error": "; ".join(errors), "details": errors}

    email = form["email"].strip().lower()
    user_id = user.id if user else None
    duplicate = await db.execute(_active_applications(job.id, email, user_id))
    if duplicate.first() is not None:
        return {"success": False, "error": "You have already applied for this position"}

    storage = get_resume_storage()
    key = build_resume_key(job.job_number, email, resume_name)
    resume_url = await storage.upload(resume_data, key, content_type="application/pdf")

    application = Application(
        job_id=job.id,
        user_id=user_id,
        first_name=form["first_name"].strip(),
        last_name=form["last_name"].strip(),
        email=email,
        contact_number=form["contact_number"].strip(),
        address=form["address"].strip(),
        resume_url=resume_url,
        resume_file_name=resume_name,
        status=INITIAL_STATUS,
        custom_field_values=cleaned,
    )
    db.add(application)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        await _discard_upload(storage, key)
        raise

    logger.info(f"Application {application.id} submitted for job {job.job_number}")
    application = await load_application(db, application.id)
    return {
        "success": True,
        "application": serialize_application(application),
        "notice": notice_from_application(application),
        "content": await load_template(db, EmailTemplateType.APPLICATION_CONFIRMATION),
    }


async def _discard_upload(storage, key: str) -> None:
    """Remove a resume whose application was never stored."""
    try:
        await storage.delete(key)
    except (OSError, ValueError) as e:
        logger.error(f"Could not remove orphaned resume {key}: {e}")
    else:
        logger.warning(f"Removed resume {key} after the application failed to save")


async def check_application(
    db: AsyncSession,
    job_number: str,
    email: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Optional[Dict[str, Any]]:
    """Whether the email or user already has a non-rejected application."""
    result = await db.execute(select(Job.id).where(Job.job_number == job_number.upper()))
    job_id = result.scalar_one_or_none()
    if job_id is None:
        return None
    if not email and user_id is None:
        return {"has_applied": False, "application": None}

    owner = []
    if email:
        owner.append(Application.email == email.strip().lower())
    if user_id is not None:
        owner.append(Application.user_id == user_id)
    result = await db.execute(
        select(Application)
        .where(
            Application.job_id == job_id,
            or_(*owner),
            Application.status != ApplicationStatus.REJECTED,
        )
        .order_by(Application.created_at.desc())
        .limit(1)
    )
    application = result.scalar_one_or_none()
    if application is None:
        return {"has_applied": False, "application": None}
    return {
        "has_applied": True,
        "application": {
            "id": application.id,
            "status": application.status.value,
            "created_at": isoformat(application.created_at),
        },
    }


async def list_my_applications(db: AsyncSession, user: User) -> Dict[str, Any]:
    result = await db.execute(
        select(Application)
        .options(selectinload(Application.job))
        .where(Application.user_id == user.id)
        .order_by(Application.created_at.desc(), Application.id.desc())
    )
    applications = result.scalars().all()
    return {"applications": [serialize_application(a) for a in applications]}


async def get_own_application(
    db: AsyncSession,
    user: User,
    application_id: int,
) -> Optional[Dict[str, Any]]:
    """
    Applicant view of one application.

    Raises:
        InsufficientPermissions: If the application belongs to someone else
    """
    application = await load_application(db, application_id)
    if not application:
        return None
    owns = application.user_id == user.id or (
        application.user_id is None and application.email == user.email.lower()
    )
    if not owns:
        raise InsufficientPermissions("You do not have permission to view this application")
    return serialize_application(application)


async def list_applications(
    db: AsyncSession,
    status: Optional[str] = None,
    search: Optional[str] = None,
    archived: bool = False,
    job_id: Optional[int] = None,
    user_id: Optional[int] = None,
    limit: int = 10,
    offset: int = 0,
) -> Dict[str, Any]:
    """
    Admin listing.

    Args:
        db: Database session
        status: A status value, or "all"/None for every status
        search: Matches applicant names, email, job title or job number
        archived: List archived applications instead of active ones
        job_id: Restrict to one job
        user_id: Restrict to one applicant account
        limit: Maximum results
        offset: Pagination offset

    Returns:
        Dictionary with applications and total
    """
    query = select(Application).join(Job, Application.job_id == Job.id)
    if archived:
        query = query.where(Application.archived_at.is_not(None))
    else:
        query = query.where(Application.archived_at.is_(None))

    if status and status != "all":
        query = query.where(Application.status == ApplicationStatus(status))
    if job_id is not None:
        query = query.where(Application.job_id == job_id)
    if user_id is not None:
        query = query.where(Application.user_id == user_id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                Application.first_name.ilike(pattern),
                Application.last_name.ilike(pattern),
                Application.email.ilike(pattern),
                Job.title.ilike(pattern),
                Job.job_number.ilike(pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    order = Application.archived_at.desc() if archived else Application.created_at.desc()
    query = (
        query.options(selectinload(Application.job))
        .order_by(order, Application.id.desc())
        .limit(limit)
        .offset(offset)
    )
    applications = (await db.execute(query)).scalars().all()
    return {
        "applications": [serialize_application(a, admin=True) for a in applications],
        "total": total,
    }


async def get_application(db: AsyncSession, application_id: int) -> Optional[Dict[str, Any]]:
    application = await load_application(db, application_id)
    if not application:
        return None
    return serialize_application(application, admin=True)


async def update_status(
    db: AsyncSession,
    actor: ActorContext,
    application_id: int,
    status: ApplicationStatus,
    notes: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Move an application to a new status.

    Notes, when given, replace the stored notes.

    Returns:
        Dict with the application, the ApplicantNotice and the editable
        template content (if any) for the status email; None if the
        application does not exist

    Raises:
        InvalidStatusTransition: If the workflow does not allow the move
    """
    application = await load_application(db, application_id)
    if not application:
        return None

    previous = application.status
    application.status = validate_transition(previous, status)
    if notes is not None:
        application.notes = notes
    await db.commit()

    log_audit_event(
        action=AuditAction.STATUS_CHANGE,
        resource_type=ResourceType.APPLICATION,
        resource_id=application.id,
        user_id=actor.user_id,
        details={"from": previous.value, "to": application.status.value},
    )
    logger.info(
        f"Application {application.id} moved {previous.value} -> {application.status.value}"
    )

    application = await load_application(db, application_id)
    template_type = STATUS_TEMPLATE_TYPES.get(application.status)
    return {
        "success": True,
        "application": serialize_application(application, admin=True),
        "notice": notice_from_application(application),
        "content": await load_template(db, template_type) if template_type else None,
    }


async def _set_archived(
    db: AsyncSession,
    actor: ActorContext,
    application_id: int,
    archived: bool,
) -> Optional[Dict[str, Any]]:
    application = await load_application(db, application_id)
    if not application:
        return None
    if application.is_archived == archived:
        state = "archived" if archived else "active"
        return {"success": False, "error": f"Application is already {state}"}

    application.archived_at = now() if archived else None
    await db.commit()

    log_audit_event(
        action=AuditAction.ARCHIVE if archived else AuditAction.RESTORE,
        resource_type=ResourceType.APPLICATION,
        resource_id=application.id,
        user_id=actor.user_id,
    )

    application = await load_application(db, application_id)
    return {"success": True, "application": serialize_application(application, admin=True)}


async def archive_application(db: AsyncSession, actor: ActorContext, application_id: int):
    return await _set_archived(db, actor, application_id, archived=True)


async def restore_application(db: AsyncSession, actor: ActorContext, application_id: int):
    return await _set_archived(db, actor, application_id, archived=False)


async def delete_application(
    db: AsyncSession,
    actor: ActorContext,
    application_id: int,
) -> Optional[Dict[str, Any]]:
    """Permanently delete an application and its stored resume."""
    application = await load_application(db, application_id)
    if not application:
        return None

    resume_url = application.resume_url
    await db.delete(application)
    await db.commit()

    storage = get_resume_storage()
    key = storage.key_from_url(resume_url)
    if key:
        try:
            await storage.delete(key)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not delete resume for application {application_id}: {e}")

    log_audit_event(
        action=AuditAction.DELETE,
        resource_type=ResourceType.APPLICATION,
        resource_id=application_id,
        user_id=actor.user_id,
    )
    return {"success": True, "message": "Application deleted successfully"}


async def prepare_custom_email(
    db: AsyncSession,
    actor: ActorContext,
    application_id: int,
    subject: str,
) -> Optional[ApplicantNotice]:
    """Recipient details for a free-form email, None if the application is missing."""
    application = await load_application(db, application_id)
    if not application:
        return None

    log_audit_event(
        action=AuditAction.EMAIL,
        resource_type=ResourceType.APPLICATION,
        resource_id=application.id,
        user_id=actor.user_id,
        details={"subject": subject},
    )
    return notice_from_application(application)


async def prepare_template_email(
    db: AsyncSession,
    actor: ActorContext,
    application_id: int,
    template: str,
) -> Optional[Dict[str, Any]]:
    """
    Recipient details for a template email, moving the status along when
    the template implies a legal transition. An offer never hires.

    Returns:
        Dict with the notice, the template content and the status outcome,
        None if the application is missing, or an error dict when an admin
        has disabled the template
    """
    application = await load_application(db, application_id)
    if not application:
        return None

    content = await load_template(db, template_type_for(template))
    if not content.is_active:
        return {"success": False, "error": "This email template is disabled"}

    previous = application.status
    target = TEMPLATE_STATUS_CHANGES.get(template)
    status_changed = target is not None and can_transition(previous, target)
    if status_changed:
        application.status = target
        await db.commit()
        log_audit_event(
            action=AuditAction.STATUS_CHANGE,
            resource_type=ResourceType.APPLICATION,
            resource_id=application.id,
            user_id=actor.user_id,
            details={"from": previous.value, "to": target.value, "template": template},
        )
        application = await load_application(db, application_id)

    log_audit_event(
        action=AuditAction.EMAIL,
        resource_type=ResourceType.APPLICATION,
        resource_id=application.id,
        user_id=actor.user_id,
        details={"template": template},
    )
    return {
        "success": True,
        "notice": notice_from_application(application),
        "content": content,
        "status_changed": status_changed,
        "status": application.status.value,
    }
