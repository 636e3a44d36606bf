"""Application workflow and applicant email schemas."""

from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from core.utils.validators import validate_phone
from core.workflow import ApplicationStatus


class ApplicationSubmit(BaseModel):
    """Form fields of a submission; the resume arrives as a separate upload."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    contact_number: str = Field(..., min_length=1, max_length=30)
    address: str = Field(..., min_length=1, max_length=500)

    @field_validator("contact_number")
    @classmethod
    def check_contact_number(cls, v: str) -> str:
        is_valid, error = validate_phone(v)
        if not is_valid:
            raise ValueError(error)
        return v.strip()

    @field_validator("first_name", "last_name", "address")
    @classmethod
    def check_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v


class UpdateStatusRequest(BaseModel):
    status: ApplicationStatus
    notes: Optional[str] = Field(None, max_length=5000, description="Replaces stored notes")


class CustomEmailRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=10000)


EmailTemplateName = Literal["interview_invitation", "rejection", "offer", "follow_up"]


class TemplateData(BaseModel):
    """Optional details merged into template emails."""
    interview_date: Optional[str] = None
    interview_time: Optional[str] = None
    interview_location: Optional[str] = None
    interview_type: Optional[str] = None
    additional_notes: Optional[str] = None
    salary_amount: Optional[str] = None
    salary_currency: Optional[str] = None
    salary_period: Optional[str] = None
    start_date: Optional[str] = None


class TemplateEmailRequest(BaseModel):
    template: EmailTemplateName
    custom_data: TemplateData = Field(default_factory=TemplateData)
