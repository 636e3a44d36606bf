"""
Applicant and account notification emails.

Every function here is synchronous and takes plain data, so routes can
hand it to BackgroundTasks after the database session has been committed
and closed. Editable wording arrives as a TemplateContent loaded by the
service beforehand; without one the built-in default is used. Delivery
problems are logged and reported as False; they never reach the caller.
"""

from dataclasses import dataclass
from html import escape
from typing import Any, Optional
import logging

from api.services.email_templates import (
    TemplateContent,
    default_template,
    render_placeholders,
)
from core.config import settings
from core.integrations.email import get_email_service
from core.utils.formatting import CURRENCY_SYMBOLS, SALARY_PERIOD_LABELS, text_to_html
from core.workflow import ApplicationStatus
from database.models.communications import EmailTemplateType

logger = logging.getLogger(__name__)

# Status changes whose email wording is editable
STATUS_TEMPLATE_TYPES: dict[ApplicationStatus, EmailTemplateType] = {
    ApplicationStatus.REVIEWED: EmailTemplateType.APPLICATION_REVIEWED,
    ApplicationStatus.REJECTED: EmailTemplateType.APPLICATION_REJECTION,
}

# Template emails an admin can send from an application
TEMPLATE_EMAIL_TYPES: dict[str, EmailTemplateType] = {
    "interview_invitation": EmailTemplateType.INTERVIEW_INVITATION,
    "rejection": EmailTemplateType.APPLICATION_REJECTION,
    "offer": EmailTemplateType.JOB_OFFER,
    "follow_up": EmailTemplateType.APPLICATION_FOLLOW_UP,
}


@dataclass(frozen=True)
class ApplicantNotice:
    """Everything an applicant email needs, detached from the ORM."""

    application_id: int
    email: str
    first_name: str
    last_name: str
    job_title: str
    job_number: str
    job_location: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def notice_from_application(application: Any) -> ApplicantNotice:
    """Snapshot an Application (with its job loaded) for a background send."""
    return ApplicantNotice(
        application_id=application.id,
        email=application.email,
        first_name=application.first_name,
        last_name=application.last_name,
        job_title=application.job.title,
        job_number=application.job.job_number,
        job_location=application.job.location,
    )


# ==================== Layout ==================== #

def _frame(content: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"{content}"
        '<p style="margin-top: 32px; font-size: 13px; color: #71717a;">'
        "If you have any questions, please don't hesitate to reach out.</p>"
        f'<p style="font-size: 13px; color: #71717a;">{escape(settings.from_name)}</p>'
        "</div>"
    )


def _layout(heading: str, *blocks: str) -> str:
    body = "\n".join(blocks)
    return _frame(f'<h1 style="font-size: 22px; color: #18181b;">{escape(heading)}</h1>{body}')


def _p(text: str) -> str:
    return f'<p style="font-size: 14px; color: #18181b; line-height: 1.6;">{text}</p>'


def _greeting(notice: ApplicantNotice) -> str:
    return _p(f"Dear {escape(notice.first_name)},")


def _position(notice: ApplicantNotice) -> str:
    return _p(
        f"Position: <strong>{escape(notice.job_title)}</strong> ({escape(notice.job_number)})"
    )


def _notes_block(notes: Optional[str]) -> str:
    if not notes or not notes.strip():
        return ""
    return _p(text_to_html(notes.strip()))


def _deliver(to_email: str, subject: str, body: str, context: str) -> bool:
    try:
        sent = get_email_service().send_email(to_email, subject, body, html=True)
    except Exception as e:
        logger.error(f"Email '{subject}' for {context} failed: {e}")
        return False
    if not sent:
        logger.warning(f"Email '{subject}' for {context} was not delivered")
    return sent


# ==================== Placeholder values ==================== #

def _detail_rows(rows: list[tuple[str, Optional[str]]]) -> str:
    filled = [
        f"<tr><td style=\"color: #71717a; padding-right: 16px;\">{label}:</td>"
        f"<td><strong>{escape(value)}</strong></td></tr>"
        for label, value in rows
        if value
    ]
    if not filled:
        return ""
    return f"<table>{''.join(filled)}</table>"


def _salary_display(data: dict[str, Any]) -> Optional[str]:
    amount = data.get("salary_amount")
    if not amount:
        return None
    currency = data.get("salary_currency") or "PHP"
    period = data.get("salary_period") or "MONTHLY"
    symbol = CURRENCY_SYMBOLS.get(currency, currency + " ")
    try:
        figure = f"{float(amount):,.0f}"
    except (TypeError, ValueError):
        figure = str(amount)
    return f"{symbol}{figure} {SALARY_PERIOD_LABELS.get(period, period.lower())}"


def _offer_details(data: dict[str, Any], salary: Optional[str]) -> str:
    if salary:
        return _detail_rows([
            ("Compensation", salary),
            ("Proposed start date", data.get("start_date")),
        ])
    return _p("Please expect the formal offer letter with complete details "
              "about compensation, benefits and start date shortly.")


def placeholder_values(
    notice: ApplicantNotice,
    data: Optional[dict[str, Any]] = None,
) -> tuple[dict[str, str], dict[str, str]]:
    """
    Values for template placeholders.

    Returns:
        (plain, html): plain text for subjects and escaped or pre-rendered
        HTML for bodies
    """
    data = data or {}
    salary = _salary_display(data)
    plain = {
        "applicant_name": notice.name,
        "first_name": notice.first_name,
        "job_title": notice.job_title,
        "job_number": notice.job_number,
        "job_location": notice.job_location or "",
        "job_url": f"{settings.app_url.rstrip('/')}/jobs/{notice.job_number}",
        "interview_date": data.get("interview_date") or "",
        "interview_time": data.get("interview_time") or "",
        "interview_type": data.get("interview_type") or "",
        "interview_location": data.get("interview_location") or "",
        "salary_display": salary or "",
        "start_date": data.get("start_date") or "",
    }
    html = {name: escape(value) for name, value in plain.items()}
    html.update({
        "interview_details": _detail_rows([
            ("Date", data.get("interview_date")),
            ("Time", data.get("interview_time")),
            ("Format", data.get("interview_type")),
            ("Location", data.get("interview_location")),
        ]),
        "offer_details": _offer_details(data, salary),
        "additional_notes": _notes_block(data.get("additional_notes")),
    })
    return plain, html


def render_template_email(
    content: TemplateContent,
    notice: ApplicantNotice,
    data: Optional[dict[str, Any]] = None,
) -> Optional[tuple[str, str]]:
    """Subject and framed body, None when the template is disabled."""
    if not content.is_active:
        return None
    plain, html = placeholder_values(notice, data)
    subject = render_placeholders(content.subject, plain)
    body = _frame(render_placeholders(content.body, html))
    return subject, body


# ==================== Application emails ==================== #

def build_confirmation_email(
    notice: ApplicantNotice,
    content: Optional[TemplateContent] = None,
) -> Optional[tuple[str, str]]:
    content = content or default_template(EmailTemplateType.APPLICATION_CONFIRMATION)
    return render_template_email(content, notice)


def send_application_confirmation(
    notice: ApplicantNotice,
    content: Optional[TemplateContent] = None,
) -> bool:
    message = build_confirmation_email(notice, content)
    if message is None:
        logger.info(f"Confirmation for application {notice.application_id} skipped: template disabled")
        return False
    subject, body = message
    return _deliver(notice.email, subject, body, f"application {notice.application_id}")


_STATUS_MESSAGES: dict[ApplicationStatus, tuple[str, str, str]] = {
    ApplicationStatus.SHORTLISTED: (
        "Interview Stage - {title}",
        "You Have Been Shortlisted",
        "We are pleased to let you know that your application has been "
        "shortlisted. Our team will contact you shortly to arrange an interview.",
    ),
    ApplicationStatus.HIRED: (
        "Congratulations - {title}",
        "Congratulations!",
        "We are delighted to confirm that you have been selected for this "
        "position. Our team will reach out with onboarding details.",
    ),
}


def build_status_email(
    notice: ApplicantNotice,
    status: ApplicationStatus,
    notes: Optional[str] = None,
    content: Optional[TemplateContent] = None,
) -> Optional[tuple[str, str]]:
    """
    Subject and body for a status change.

    Reviewed and rejected use their editable template; shortlisted and
    hired have fixed wording. None for statuses with no message and for
    disabled templates.
    """
    status = ApplicationStatus(status)
    template_type = STATUS_TEMPLATE_TYPES.get(status)
    if template_type is not None:
        content = content or default_template(template_type)
        return render_template_email(content, notice, {"additional_notes": notes})

    message = _STATUS_MESSAGES.get(status)
    if message is None:
        return None
    subject_tpl, heading, text = message
    body = _layout(
        heading,
        _greeting(notice),
        _position(notice),
        _p(text),
        _notes_block(notes),
    )
    return subject_tpl.format(title=notice.job_title), body


def send_status_notification(
    notice: ApplicantNotice,
    status: ApplicationStatus,
    notes: Optional[str] = None,
    content: Optional[TemplateContent] = None,
) -> bool:
    message = build_status_email(notice, status, notes, content)
    if message is None:
        return False
    subject, body = message
    return _deliver(notice.email, subject, body, f"application {notice.application_id}")


def send_custom_email(notice: ApplicantNotice, subject: str, message: str) -> bool:
    body = _layout(subject, _greeting(notice), _position(notice), _p(text_to_html(message)))
    return _deliver(notice.email, subject, body, f"application {notice.application_id}")


# ==================== Template emails ==================== #

def template_type_for(template: str) -> EmailTemplateType:
    """
    Raises:
        ValueError: For an unknown template name
    """
    try:
        return TEMPLATE_EMAIL_TYPES[template]
    except KeyError:
        raise ValueError(f"Unknown email template: {template}")


def build_template_email(
    notice: ApplicantNotice,
    template: str,
    data: Optional[dict[str, Any]] = None,
    content: Optional[TemplateContent] = None,
) -> Optional[tuple[str, str]]:
    """
    Render one of the predefined applicant templates.

    Raises:
        ValueError: For an unknown template name
    """
    content = content or default_template(template_type_for(template))
    return render_template_email(content, notice, data)


def send_template_email(
    notice: ApplicantNotice,
    template: str,
    data: Optional[dict[str, Any]] = None,
    content: Optional[TemplateContent] = None,
) -> bool:
    message = build_template_email(notice, template, data, content)
    if message is None:
        return False
    subject, body = message
    return _deliver(notice.email, subject, body, f"application {notice.application_id}")


# ==================== Account emails ==================== #

def _link(path: str, token: str) -> str:
    return f"{settings.app_url.rstrip('/')}/{path}?token={token}"


def invitation_link(token: str) -> str:
    return _link("accept-invitation", token)


def send_invitation_email(
    email: str,
    role: str,
    token: str,
    invited_by: Optional[str] = None,
) -> bool:
    link = invitation_link(token)
    inviter = f" by {escape(invited_by)}" if invited_by else ""
    body = _layout(
        "You're Invited",
        _p(f"You have been invited{inviter} to join {escape(settings.app_name)} "
           f"as <strong>{escape(role)}</strong>."),
        _p(f'<a href="{escape(link)}">Accept your invitation</a> to set your name '
           "and password."),
        _p(f"This link expires in {settings.invitation_expire_days} days."),
    )
    return _deliver(email, f"You're invited to {settings.app_name}", body, "invitation")


def send_verification_email(email: str, token: str) -> bool:
    link = _link("verify-email", token)
    body = _layout(
        "Verify Your Email",
        _p(f"Thanks for signing up to {escape(settings.app_name)}."),
        _p(f'<a href="{escape(link)}">Verify your email address</a> to finish '
           "setting up your account."),
        _p(f"This link expires in {settings.verification_expire_hours} hours."),
    )
    return _deliver(email, "Verify your email address", body, "email verification")


def send_password_reset_email(email: str, token: str) -> bool:
    link = _link("reset-password", token)
    body = _layout(
        "Reset Your Password",
        _p("We received a request to reset the password for your account."),
        _p(f'<a href="{escape(link)}">Choose a new password</a>.'),
        _p(f"This link expires in {settings.password_reset_expire_minutes} minutes. "
           "If you did not ask for a reset, you can ignore this email."),
    )
    return _deliver(email, "Reset your password", body, "password reset")


def send_magic_link_email(email: str, token: str) -> bool:
    link = _link("auth/magic-link", token)
    body = _layout(
        "Sign In",
        _p(f'<a href="{escape(link)}">Sign in to {escape(settings.app_name)}</a> '
           "without a password."),
        _p(f"This link expires in {settings.magic_link_expire_minutes} minutes and "
           "can be used once."),
    )
    return _deliver(email, f"Your sign-in link for {settings.app_name}", body, "magic link")
