"""
Applications Module

Candidate submissions against a job. Guest submissions carry no user_id.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    func,
    Text,
    JSON,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base
from database.models.users import ID_TYPE
from core.utils.formatting import format_name
from core.workflow import ApplicationStatus, INITIAL_STATUS
from datetime import datetime
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.jobs import Job
    from database.models.users import User


class Application(Base):
    """
    Job application.

    status follows core.workflow. archived_at is independent of status:
    archived applications are hidden from default listings until restored
    or permanently deleted.
    """

    __tablename__: str = "applications"
    __table_args__ = (
        Index("ix_applications_job_email", "job_id", "email"),
        Index("ix_applications_status_archived", "status", "archived_at"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Applicant
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    contact_number: Mapped[str] = mapped_column(String(30), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)

    # Resume
    resume_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    resume_file_name: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(
            ApplicationStatus,
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=INITIAL_STATUS,
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    custom_field_values: Mapped[dict[str, Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    job: Mapped["Job"] = relationship("Job", back_populates="applications")
    user: Mapped[Optional["User"]] = relationship("User", back_populates="applications")

    @property
    def full_name(self) -> str:
        return format_name(self.first_name, self.last_name)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None
