"""Industry endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.industries import IndustryCreate, IndustryUpdate
from api.services import industries as industry_service
from core.middleware.authorization import require_permission
from core.permissions import ActorContext, Permission
from database.engine import get_db

router = APIRouter(prefix="/industries", tags=["industries"])


@router.get("", summary="List Industries")
async def list_industries(db: AsyncSession = Depends(get_db)):
    """Active industries with their published job counts."""
    return {"industries": await industry_service.list_industries(db)}


@router.get(
    "/admin",
    summary="List All Industries",
    description="Includes inactive industries. Requires industries:view.",
    dependencies=[Depends(require_permission(Permission.INDUSTRIES_VIEW))],
)
async def list_all_industries(db: AsyncSession = Depends(get_db)):
    return {"industries": await industry_service.list_industries(db, include_inactive=True)}


@router.get("/{industry_id}", summary="Get Industry")
async def get_industry(
    industry_id: int = Path(..., description="Industry ID"),
    db: AsyncSession = Depends(get_db),
):
    result = await industry_service.get_industry(db, industry_id)
    if not result:
        raise HTTPException(status_code=404, detail="Industry not found")
    return result


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create Industry")
async def create_industry(
    request: IndustryCreate,
    actor: ActorContext = Depends(require_permission(Permission.INDUSTRIES_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    result = await industry_service.create_industry(db, actor, request.model_dump())
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))
    return result


@router.put("/{industry_id}", summary="Update Industry")
async def update_industry(
    request: IndustryUpdate,
    industry_id: int = Path(..., description="Industry ID"),
    actor: ActorContext = Depends(require_permission(Permission.INDUSTRIES_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    updates = request.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")

    result = await industry_service.update_industry(db, actor, industry_id, updates)
    if result is None:
        raise HTTPException(status_code=404, detail="Industry not found")
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))
    return result


@router.patch("/{industry_id}/toggle", summary="Toggle Industry")
async def toggle_industry(
    industry_id: int = Path(..., description="Industry ID"),
    actor: ActorContext = Depends(require_permission(Permission.INDUSTRIES_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    result = await industry_service.toggle_industry(db, actor, industry_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Industry not found")
    return result


@router.delete(
    "/{industry_id}",
    summary="Delete Industry",
    description="Jobs in the industry are kept without an industry; the response warns how many.",
)
async def delete_industry(
    industry_id: int = Path(..., description="Industry ID"),
    actor: ActorContext = Depends(require_permission(Permission.INDUSTRIES_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    result = await industry_service.delete_industry(db, actor, industry_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Industry not found")
    return result
