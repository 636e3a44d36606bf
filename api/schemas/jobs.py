"""Job posting schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from database.models.jobs import Currency, JobType, SalaryPeriod, ShiftType, WorkType


class CustomApplicationField(BaseModel):
    """Extra question asked on a job's application form."""
    key: str = Field(..., min_length=1, max_length=50, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")
    label: str = Field(..., min_length=1, max_length=200)
    type: Literal["text", "textarea", "number", "select"] = "text"
    required: bool = False
    options: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_options(self) -> "CustomApplicationField":
        if self.type == "select" and not self.options:
            raise ValueError(f"Select field '{self.key}' needs at least one option")
        if self.type != "select":
            self.options = []
        return self


class _JobFields(BaseModel):
    @field_validator("custom_application_fields", check_fields=False)
    @classmethod
    def unique_keys(cls, v: Optional[list[CustomApplicationField]]):
        if v:
            keys = [f.key for f in v]
            if len(keys) != len(set(keys)):
                raise ValueError("Custom field keys must be unique")
        return v

    @model_validator(mode="after")
    def check_ranges(self):
        exp_min = getattr(self, "experience_min", None)
        exp_max = getattr(self, "experience_max", None)
        if exp_min is not None and exp_max is not None and exp_max < exp_min:
            raise ValueError("Maximum experience cannot be less than minimum experience")
        sal_min = getattr(self, "salary_min", None)
        sal_max = getattr(self, "salary_max", None)
        if sal_min is not None and sal_max is not None and sal_max < sal_min:
            raise ValueError("Maximum salary cannot be less than minimum salary")
        return self


class JobCreate(_JobFields):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=10000)
    industry_id: int = Field(..., ge=1)
    location: str = Field(..., min_length=1, max_length=200)
    work_type: WorkType
    job_type: JobType
    shift_type: ShiftType
    experience_min: int = Field(0, ge=0, le=50)
    experience_max: Optional[int] = Field(None, ge=0, le=50)
    salary_min: Optional[Decimal] = Field(None, ge=0)
    salary_max: Optional[Decimal] = Field(None, ge=0)
    salary_currency: Currency = Currency.USD
    salary_period: SalaryPeriod = SalaryPeriod.MONTHLY
    is_published: bool = False
    expires_at: Optional[datetime] = None
    custom_application_fields: list[CustomApplicationField] = Field(default_factory=list)


class JobUpdate(_JobFields):
    """Partial update. job_number is not accepted: it never changes."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=10000)
    industry_id: Optional[int] = Field(None, ge=1)
    location: Optional[str] = Field(None, min_length=1, max_length=200)
    work_type: Optional[WorkType] = None
    job_type: Optional[JobType] = None
    shift_type: Optional[ShiftType] = None
    experience_min: Optional[int] = Field(None, ge=0, le=50)
    experience_max: Optional[int] = Field(None, ge=0, le=50)
    salary_min: Optional[Decimal] = Field(None, ge=0)
    salary_max: Optional[Decimal] = Field(None, ge=0)
    salary_currency: Optional[Currency] = None
    salary_period: Optional[SalaryPeriod] = None
    is_published: Optional[bool] = None
    expires_at: Optional[datetime] = None
    custom_application_fields: Optional[list[CustomApplicationField]] = None
