from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Text,
    func,
    Enum as SQLEnum,
)
from database.engine import Base
from database.models.users import ID_TYPE
from datetime import datetime
from enum import Enum as PyEnum


# ============ Template Enums =============== #
class EmailTemplateType(str, PyEnum):
    """Applicant emails whose wording admins can edit."""

    APPLICATION_CONFIRMATION = "application_confirmation"
    APPLICATION_REVIEWED = "application_reviewed"
    APPLICATION_REJECTION = "application_rejection"
    INTERVIEW_INVITATION = "interview_invitation"
    JOB_OFFER = "job_offer"
    APPLICATION_FOLLOW_UP = "application_follow_up"


# ============ Email Template Model =============== #
class EmailTemplate(Base):
    """
    Stored wording for one applicant email.

    Subject and body carry {{placeholder}} markers filled at send time.
    A disabled template suppresses the email it stands for.
    """

    __tablename__ = "email_templates"
    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    type: Mapped[EmailTemplateType] = mapped_column(
        SQLEnum(
            EmailTemplateType,
            native_enum=False,
            length=50,
            values_callable=lambda e: [m.value for m in e],
        ),
        unique=True,
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # audit metadata
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    updated_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
