from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.dependencies import get_current_user
from georise.core.exceptions import NotFoundError
from georise.core.plan_limits import check_brand_limit
from georise.db.postgres import get_db
from georise.models.analysis_run import AnalysisRun
from georise.models.brand import Brand
from georise.models.insight import Insight
from georise.models.user import User
from georise.schemas.analysis import InsightResponse, RunStatusResponse
from georise.schemas.brand import BrandCreate, BrandResponse, BrandUpdate
from georise.schemas.common import MessageResponse

router = APIRouter(prefix="/brands", tags=["brands"])


async def get_user_brand(brand_id: UUID, user: User, db: AsyncSession) -> Brand:
    result = await db.execute(select(Brand).where(Brand.id == brand_id, Brand.user_id == user.id))
    brand = result.scalar_one_or_none()
    if not brand:
        raise NotFoundError("Brand not found")
    return brand


@router.get("/", response_model=list[BrandResponse])
async def list_brands(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(select(Brand).where(Brand.user_id == user.id).order_by(Brand.created_at))
    return result.scalars().all()


@router.post("/", response_model=BrandResponse, status_code=201)
async def create_brand(
    body: BrandCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await check_brand_limit(db, user.id, user.plan)

    brand = Brand(user_id=user.id, **body.model_dump())
    db.add(brand)
    await db.flush()
    await db.refresh(brand)
    return brand


@router.get("/{brand_id}", response_model=BrandResponse)
async def get_brand(
    brand_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await get_user_brand(brand_id, user, db)


@router.put("/{brand_id}", response_model=BrandResponse)
async def update_brand(
    brand_id: UUID,
    body: BrandUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Edit name, topic and competitor names. Score and last run belong to the analysis pipeline."""
    brand = await get_user_brand(brand_id, user, db)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(brand, field, value)
    await db.flush()
    await db.refresh(brand)
    return brand


@router.delete("/{brand_id}", response_model=MessageResponse)
async def delete_brand(
    brand_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    brand = await get_user_brand(brand_id, user, db)
    await db.delete(brand)
    await db.flush()
    return MessageResponse(message="Brand deleted")


@router.get("/{brand_id}/runs", response_model=list[RunStatusResponse])
async def list_brand_runs(
    brand_id: UUID,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Run history, newest first."""
    brand = await get_user_brand(brand_id, user, db)
    result = await db.execute(
        select(AnalysisRun)
        .where(AnalysisRun.brand_id == brand.id)
        .order_by(AnalysisRun.created_at.desc(), AnalysisRun.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


@router.get("/{brand_id}/insights", response_model=list[InsightResponse])
async def list_brand_insights(
    brand_id: UUID,
    run_id: UUID | None = Query(None, description="Defaults to the latest run with insights"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    brand = await get_user_brand(brand_id, user, db)

    if run_id is None:
        latest = await db.execute(
            select(Insight.run_id)
            .where(Insight.brand_id == brand.id)
            .order_by(Insight.created_at.desc(), Insight.id.desc())
            .limit(1)
        )
        run_id = latest.scalar_one_or_none()
        if run_id is None:
            return []

    result = await db.execute(
        select(Insight)
        .where(Insight.brand_id == brand.id, Insight.run_id == run_id)
        .order_by(Insight.position, Insight.id)
    )
    return result.scalars().all()
