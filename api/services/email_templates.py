"""
Editable applicant email templates.

Every template type has built-in wording. Stored rows override it and are
created from the defaults the first time the catalogue is read, so sends
work before any admin has opened the settings page.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
import logging
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.permissions import ActorContext
from core.security import AuditAction, ResourceType, log_audit_event
from core.utils.datetime import isoformat
from database.models.communications import EmailTemplate, EmailTemplateType

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_]+)\s*\}\}")

_APPLICANT = [
    ("applicant_name", "Full name of the applicant"),
    ("first_name", "First name of the applicant"),
    ("job_title", "Title of the job"),
    ("job_number", "Job reference number"),
]
_NOTES = [("additional_notes", "Notes entered when sending (optional)")]

PLACEHOLDERS: dict[EmailTemplateType, list[tuple[str, str]]] = {
    EmailTemplateType.APPLICATION_CONFIRMATION: _APPLICANT + [
        ("job_location", "Location of the job"),
        ("job_url", "Link to the job posting"),
    ],
    EmailTemplateType.APPLICATION_REVIEWED: _APPLICANT + _NOTES,
    EmailTemplateType.APPLICATION_REJECTION: _APPLICANT + _NOTES,
    EmailTemplateType.INTERVIEW_INVITATION: _APPLICANT + [
        ("interview_date", "Date of the interview"),
        ("interview_time", "Time of the interview"),
        ("interview_type", "Format of the interview, e.g. Video call"),
        ("interview_location", "Location or meeting link"),
        ("interview_details", "Table of the interview fields that were filled in"),
    ] + _NOTES,
    EmailTemplateType.JOB_OFFER: _APPLICANT + [
        ("salary_display", "Formatted salary, e.g. ₱50,000 per month"),
        ("start_date", "Proposed start date"),
        ("offer_details", "Compensation table, or a note that a formal letter follows"),
    ] + _NOTES,
    EmailTemplateType.APPLICATION_FOLLOW_UP: _APPLICANT + _NOTES,
}

_POSITION = "<p>Position: <strong>{{job_title}}</strong> ({{job_number}})</p>"

DEFAULT_TEMPLATES: dict[EmailTemplateType, dict[str, str]] = {
    EmailTemplateType.APPLICATION_CONFIRMATION: {
        "name": "Application Confirmation",
        "subject": "Application Received - {{job_title}}",
        "body": (
            "<h1>Application Received</h1>\n"
            "<p>Dear {{first_name}},</p>\n"
            f"{_POSITION}\n"
            "<p>Thank you for applying. We have received your application and our "
            "hiring team will review it shortly.</p>\n"
            "<p>We will contact you by email about the next steps.</p>\n"
            '<p><a href="{{job_url}}">View the job posting</a></p>'
        ),
    },
    EmailTemplateType.APPLICATION_REVIEWED: {
        "name": "Application Reviewed",
        "subject": "Application Update - {{job_title}}",
        "body": (
            "<h1>Application Update</h1>\n"
            "<p>Dear {{first_name}},</p>\n"
            f"{_POSITION}\n"
            "<p>Your application has been reviewed by our hiring team and is now under "
            "active consideration. We will be in touch regarding the next steps.</p>\n"
            "{{additional_notes}}"
        ),
    },
    EmailTemplateType.APPLICATION_REJECTION: {
        "name": "Application Rejection",
        "subject": "Thank You for Applying - {{job_title}}",
        "body": (
            "<h1>Thank You for Your Interest</h1>\n"
            "<p>Dear {{first_name}},</p>\n"
            f"{_POSITION}\n"
            "<p>After careful consideration, we have decided to move forward with other "
            "candidates whose experience more closely matches our current needs. "
            "We encourage you to apply for future openings.</p>\n"
            "{{additional_notes}}"
        ),
    },
    EmailTemplateType.INTERVIEW_INVITATION: {
        "name": "Interview Invitation",
        "subject": "Interview Invitation - {{job_title}}",
        "body": (
            "<h1>Interview Invitation</h1>\n"
            "<p>Dear {{first_name}},</p>\n"
            f"{_POSITION}\n"
            "<p>We are pleased to inform you that your application has been "
            "shortlisted, and we would like to invite you to an interview.</p>\n"
            "{{interview_details}}\n"
            "{{additional_notes}}\n"
            "<p>Please confirm your attendance by replying to this email.</p>"
        ),
    },
    EmailTemplateType.JOB_OFFER: {
        "name": "Job Offer",
        "subject": "Job Offer - {{job_title}}",
        "body": (
            "<h1>Congratulations!</h1>\n"
            "<p>Dear {{first_name}},</p>\n"
            f"{_POSITION}\n"
            "<p>We are pleased to offer you the <strong>{{job_title}}</strong> position.</p>\n"
            "{{offer_details}}\n"
            "{{additional_notes}}\n"
            "<p>We look forward to welcoming you to our team!</p>"
        ),
    },
    EmailTemplateType.APPLICATION_FOLLOW_UP: {
        "name": "Application Follow-up",
        "subject": "Following Up - {{job_title}}",
        "body": (
            "<h1>Application Status Update</h1>\n"
            "<p>Dear {{first_name}},</p>\n"
            f"{_POSITION}\n"
            "<p>We wanted to follow up regarding your application for the "
            "{{job_title}} position.</p>\n"
            "<p>Your application is still under review, and we appreciate your "
            "patience during our selection process.</p>\n"
            "{{additional_notes}}"
        ),
    },
}


@dataclass(frozen=True)
class TemplateContent:
    """Template wording detached from the session, for background sends."""

    type: EmailTemplateType
    subject: str
    body: str
    is_active: bool = True


def default_template(template_type: EmailTemplateType) -> TemplateContent:
    default = DEFAULT_TEMPLATES[template_type]
    return TemplateContent(template_type, default["subject"], default["body"])


def render_placeholders(text: str, values: Mapping[str, str]) -> str:
    """Fill {{name}} markers; unknown or empty names render as nothing."""
    return PLACEHOLDER_PATTERN.sub(lambda m: values.get(m.group(1)) or "", text)


def unknown_placeholders(template_type: EmailTemplateType, text: str) -> list[str]:
    known = {name for name, _ in PLACEHOLDERS[template_type]}
    return sorted({m.group(1) for m in PLACEHOLDER_PATTERN.finditer(text)} - known)


def parse_template_type(value: str) -> Optional[EmailTemplateType]:
    """Accept any case and either separator, None for unknown types."""
    try:
        return EmailTemplateType(value.strip().lower().replace("-", "_"))
    except ValueError:
        return None


def serialize_template(template: EmailTemplate) -> Dict[str, Any]:
    return {
        "id": template.id,
        "type": template.type.value,
        "name": template.name,
        "subject": template.subject,
        "body": template.body,
        "is_active": template.is_active,
        "updated_by": template.updated_by,
        "created_at": isoformat(template.created_at),
        "updated_at": isoformat(template.updated_at),
    }


def _placeholder_list(template_type: EmailTemplateType) -> list[Dict[str, str]]:
    return [
        {"name": f"{{{{{name}}}}}", "description": description}
        for name, description in PLACEHOLDERS[template_type]
    ]


async def ensure_default_templates(db: AsyncSession) -> int:
    """Insert a default row for every type that has none. Does not commit."""
    existing = set((await db.execute(select(EmailTemplate.type))).scalars().all())
    created = 0
    for template_type, default in DEFAULT_TEMPLATES.items():
        if template_type in existing:
            continue
        db.add(EmailTemplate(type=template_type, is_active=True, **default))
        created += 1
    if created:
        await db.flush()
    return created


async def _get(db: AsyncSession, template_id: int) -> Optional[EmailTemplate]:
    result = await db.execute(
        select(EmailTemplate)
        .where(EmailTemplate.id == template_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_templates(db: AsyncSession) -> Dict[str, Any]:
    """Every template with the placeholders each type understands."""
    if await ensure_default_templates(db):
        await db.commit()
    result = await db.execute(select(EmailTemplate).order_by(EmailTemplate.id))
    return {
        "templates": [serialize_template(t) for t in result.scalars().all()],
        "placeholders": {t.value: _placeholder_list(t) for t in EmailTemplateType},
    }


async def get_template(db: AsyncSession, template_type: EmailTemplateType) -> Dict[str, Any]:
    if await ensure_default_templates(db):
        await db.commit()
    result = await db.execute(select(EmailTemplate).where(EmailTemplate.type == template_type))
    template = result.scalar_one()
    return {
        "template": serialize_template(template),
        "placeholders": _placeholder_list(template_type),
    }


async def load_template(db: AsyncSession, template_type: EmailTemplateType) -> TemplateContent:
    """Stored wording for a send, falling back to the built-in default."""
    result = await db.execute(select(EmailTemplate).where(EmailTemplate.type == template_type))
    template = result.scalar_one_or_none()
    if template is None:
        return default_template(template_type)
    return TemplateContent(template.type, template.subject, template.body, template.is_active)


async def update_template(
    db: AsyncSession,
    actor: ActorContext,
    template_id: int,
    updates: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """
    Change subject, body or active flag.

    Returns:
        Dict with the template, None if it does not exist, or an error
        dict naming placeholders the template type cannot fill
    """
    template = await _get(db, template_id)
    if not template:
        return None

    unknown = []
    for field in ("subject", "body"):
        if updates.get(field):
            unknown.extend(unknown_placeholders(template.type, updates[field]))
    if unknown:
        names = ", ".join(f"{{{{{name}}}}}" for name in sorted(set(unknown)))
        return {"success": False, "error": f"Unknown placeholders for this template: {names}"}

    for field in ("subject", "body", "is_active"):
        if field in updates and updates[field] is not None:
            setattr(template, field, updates[field])
    template.updated_by = actor.user_id
    await db.commit()

    log_audit_event(
        action=AuditAction.UPDATE,
        resource_type=ResourceType.EMAIL_TEMPLATE,
        resource_id=template.id,
        user_id=actor.user_id,
        details={"type": template.type.value, "fields": sorted(updates)},
    )
    template = await _get(db, template_id)
    return {
        "success": True,
        "message": "Template updated successfully",
        "template": serialize_template(template),
    }


async def toggle_template(
    db: AsyncSession,
    actor: ActorContext,
    template_id: int,
) -> Optional[Dict[str, Any]]:
    template = await _get(db, template_id)
    if not template:
        return None

    template.is_active = not template.is_active
    template.updated_by = actor.user_id
    await db.commit()

    log_audit_event(
        action=AuditAction.ACTIVATE if template.is_active else AuditAction.DEACTIVATE,
        resource_type=ResourceType.EMAIL_TEMPLATE,
        resource_id=template.id,
        user_id=actor.user_id,
        details={"type": template.type.value},
    )
    template = await _get(db, template_id)
    state = "enabled" if template.is_active else "disabled"
    return {
        "success": True,
        "message": f"Template {state} successfully",
        "template": serialize_template(template),
    }


async def reset_template(
    db: AsyncSession,
    actor: ActorContext,
    template_id: int,
) -> Optional[Dict[str, Any]]:
    """Restore the built-in subject and body and re-enable the template."""
    template = await _get(db, template_id)
    if not template:
        return None

    default = DEFAULT_TEMPLATES[template.type]
    template.subject = default["subject"]
    template.body = default["body"]
    template.is_active = True
    template.updated_by = actor.user_id
    await db.commit()

    log_audit_event(
        action=AuditAction.RESTORE,
        resource_type=ResourceType.EMAIL_TEMPLATE,
        resource_id=template.id,
        user_id=actor.user_id,
        details={"type": template.type.value},
    )
    logger.info(f"Email template {template.type.value} reset to default")
    template = await _get(db, template_id)
    return {
        "success": True,
        "message": "Template reset to default successfully",
        "template": serialize_template(template),
    }
