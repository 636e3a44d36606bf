"""Authentication and account schemas."""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from core.permissions import PermissionLevel, RoleName
from core.utils.validators import validate_password_strength


def _check_password(value: str) -> str:
    is_valid, errors = validate_password_strength(value)
    if not is_valid:
        raise ValueError("; ".join(errors))
    return value


def _check_name(value: Optional[str]) -> Optional[str]:
    """Strip a person's name; whitespace alone is not a name."""
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Name cannot be blank")
    return value


class SignupRequest(BaseModel):
    """Candidate self-registration."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    contact_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=500)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class InviteUserRequest(BaseModel):
    """Admin invitation of a new account."""
    email: EmailStr
    role: RoleName = RoleName.STAFF
    permission_level: Optional[PermissionLevel] = None


class AcceptInvitationRequest(BaseModel):
    token: str = Field(..., min_length=10)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class UpdateProfileRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    contact_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=500)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class EmailRequest(BaseModel):
    """Body of the endpoints that mail a one-time link to an address."""
    email: EmailStr


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=10, max_length=256)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=10, max_length=256)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)
