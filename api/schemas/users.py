"""User administration schemas."""

from typing import Optional
from pydantic import BaseModel, Field

from core.permissions import PermissionLevel


class UpdateRoleRequest(BaseModel):
    """Replace a user's role assignment."""
    role_id: int = Field(..., ge=1)
    permission_level: Optional[PermissionLevel] = Field(
        None, description="Only applied to the staff role; defaults to canRead"
    )


class UpdatePermissionLevelRequest(BaseModel):
    permission_level: PermissionLevel
