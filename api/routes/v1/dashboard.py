"""Admin dashboard endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.services import dashboard as dashboard_service
from core.middleware.authorization import require_dashboard_access
from database.engine import get_db

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/stats",
    summary="Dashboard Statistics",
    description="Job, application, user and industry totals with recent activity. Admin and staff only.",
    dependencies=[Depends(require_dashboard_access)],
)
async def get_stats(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.get_stats(db)
