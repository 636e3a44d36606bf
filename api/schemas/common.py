"""Common Pydantic schemas shared across the API."""

from typing import Any, Optional
from pydantic import BaseModel, Field


class Pagination(BaseModel):
    """Pagination block returned by every list endpoint."""

    page: int = Field(ge=1, description="Current page number")
    limit: int = Field(ge=1, le=100, description="Items per page")
    total: int = Field(ge=0, description="Total number of items across all pages")
    total_pages: int = Field(ge=0, description="Total number of pages")

    @classmethod
    def create(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit,
        )


def paginated(key: str, items: list[Any], total: int, page: int, limit: int) -> dict:
    """List payload in the shape the dashboard tables consume."""
    return {
        key: items,
        "pagination": Pagination.create(total, page, limit).model_dump(),
    }


class MessageResponse(BaseModel):
    """Simple acknowledgement."""

    success: bool = True
    message: str
    warning: Optional[str] = None
