"""
Jobs Module

Industries, job postings with their custom application fields, view
tracking and candidate bookmarks.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    Integer,
    DateTime,
    Numeric,
    func,
    Text,
    JSON,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base
from database.models.users import ID_TYPE
from core.utils.datetime import is_past
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.applications import Application
    from database.models.users import User


# ==================== Job Enums ===================== #
class WorkType(str, PyEnum):
    ONSITE = "ONSITE"
    REMOTE = "REMOTE"
    HYBRID = "HYBRID"


class JobType(str, PyEnum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    CONTRACT = "CONTRACT"
    FREELANCE = "FREELANCE"
    INTERNSHIP = "INTERNSHIP"
    TEMPORARY = "TEMPORARY"


class ShiftType(str, PyEnum):
    DAY = "DAY"
    NIGHT = "NIGHT"
    ROTATING = "ROTATING"
    FLEXIBLE = "FLEXIBLE"


class Currency(str, PyEnum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    PHP = "PHP"
    JPY = "JPY"
    AUD = "AUD"
    CAD = "CAD"
    SGD = "SGD"
    INR = "INR"
    CNY = "CNY"


class SalaryPeriod(str, PyEnum):
    HOURLY = "HOURLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


def _enum_column(enum_cls: type[PyEnum]) -> SQLEnum:
    return SQLEnum(enum_cls, native_enum=False, values_callable=lambda e: [m.value for m in e])


# ==================== Industry ===================== #
class Industry(Base):
    """Job categorisation."""

    __tablename__: str = "industries"
    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    jobs: Mapped[list["Job"]] = relationship("Job", back_populates="industry", passive_deletes=True)


# ==================== Job ===================== #
class Job(Base):
    """
    Job posting.

    job_number is the public identifier (JN-0001) and never changes after
    creation. A job with expires_at in the past stays listed but no longer
    accepts applications.
    """

    __tablename__: str = "jobs"
    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    job_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    industry_id: Mapped[int | None] = mapped_column(
        ForeignKey("industries.id", ondelete="SET NULL"), nullable=True, index=True
    )
    location: Mapped[str] = mapped_column(String(200), nullable=False)

    work_type: Mapped[WorkType] = mapped_column(_enum_column(WorkType), nullable=False)
    job_type: Mapped[JobType] = mapped_column(_enum_column(JobType), nullable=False)
    shift_type: Mapped[ShiftType] = mapped_column(_enum_column(ShiftType), nullable=False)

    experience_min: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    experience_max: Mapped[int | None] = mapped_column(Integer, nullable=True)

    salary_min: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    salary_max: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    salary_currency: Mapped[Currency] = mapped_column(
        _enum_column(Currency), default=Currency.USD, nullable=False
    )
    salary_period: Mapped[SalaryPeriod] = mapped_column(
        _enum_column(SalaryPeriod), default=SalaryPeriod.MONTHLY, nullable=False
    )

    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # [{key, label, type, required, options}]
    custom_application_fields: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    industry: Mapped[Optional["Industry"]] = relationship("Industry", back_populates="jobs")
    applications: Mapped[list["Application"]] = relationship(
        "Application", back_populates="job", cascade="all, delete-orphan"
    )
    views: Mapped[list["JobView"]] = relationship(
        "JobView", back_populates="job", cascade="all, delete-orphan"
    )
    saved_by: Mapped[list["SavedJob"]] = relationship(
        "SavedJob", back_populates="job", cascade="all, delete-orphan"
    )

    @property
    def is_expired(self) -> bool:
        return is_past(self.expires_at)

    @property
    def accepts_applications(self) -> bool:
        return self.is_published and not self.is_expired


# ==================== Job View ===================== #
class JobView(Base):
    """One counted view per signed-in user or per hashed client IP."""

    __tablename__: str = "job_views"
    __table_args__ = (
        UniqueConstraint("job_id", "user_id", name="uq_job_view_user"),
        UniqueConstraint("job_id", "ip_hash", name="uq_job_view_ip"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    ip_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    job: Mapped["Job"] = relationship("Job", back_populates="views")


# ==================== Saved Job ===================== #
class SavedJob(Base):
    """Candidate bookmark."""

    __tablename__: str = "saved_jobs"
    __table_args__ = (UniqueConstraint("user_id", "job_id", name="uq_saved_job"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="saved_jobs")
    job: Mapped["Job"] = relationship("Job", back_populates="saved_by")
