"""Email template schemas."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class EmailTemplateUpdate(BaseModel):
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    body: Optional[str] = Field(None, min_length=1, max_length=50000)
    is_active: Optional[bool] = None

    @field_validator("subject", "body")
    @classmethod
    def check_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v
