"""
Users Module

Accounts, the seeded role catalogue, role assignments carrying the
staff permission level, and one-time email links.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    BigInteger,
    Integer,
    DateTime,
    func,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
)
from database.engine import Base
from core.permissions import PermissionLevel, RoleName
from core.utils.formatting import format_name
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.applications import Application
    from database.models.jobs import SavedJob

# BIGINT primary keys do not autoincrement on SQLite
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


# ==================== Role ===================== #
class Role(Base):
    """Immutable role catalogue, seeded at setup."""

    __tablename__: str = "roles"
    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[RoleName] = mapped_column(
        SQLEnum(RoleName, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        unique=True,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ==================== User ===================== #
class User(Base):
    """
    Account identity.

    Invited users exist with no names and no password until they accept
    the invitation.
    """

    __tablename__: str = "users"
    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Profile resume, reusable across applications
    resume_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    resume_file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resume_uploaded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Invitation
    invitation_token_hash: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    invitation_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    roles: Mapped[list["UserRole"]] = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserRole.id",
    )
    applications: Mapped[list["Application"]] = relationship(
        "Application", back_populates="user", passive_deletes=True
    )
    saved_jobs: Mapped[list["SavedJob"]] = relationship(
        "SavedJob", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return format_name(self.first_name, self.last_name)

    @property
    def role_names(self) -> list[str]:
        return [assignment.role.name.value for assignment in self.roles]


# ==================== User Role ===================== #
class UserRole(Base):
    """Role assignment. permission_level is only set for staff."""

    __tablename__: str = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_role"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_id: Mapped[int] = mapped_column(
        ForeignKey("roles.id", ondelete="RESTRICT"), nullable=False
    )
    permission_level: Mapped[PermissionLevel | None] = mapped_column(
        SQLEnum(
            PermissionLevel,
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="roles")
    role: Mapped["Role"] = relationship("Role", lazy="joined")


# ==================== Email Token ===================== #
class EmailTokenPurpose(str, PyEnum):
    """What a mailed one-time link does when followed."""

    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"
    MAGIC_LINK = "magic_link"


class EmailToken(Base):
    """
    One-time link sent by email.

    Keyed by address rather than user so a request for an unknown email
    still leaves a row for the resend cooldown. Only the sha256 digest of
    the token is stored.
    """

    __tablename__: str = "email_tokens"
    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    purpose: Mapped[EmailTokenPurpose] = mapped_column(
        SQLEnum(
            EmailTokenPurpose,
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
