from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.dependencies import Caller, require_admin, require_admin_caller
from georise.core.exceptions import BadRequestError, NotFoundError
from georise.core.plan_limits import PLANS
from georise.db.postgres import get_db
from georise.models.user import User
from georise.schemas.auth import UserResponse
from georise.schemas.credits import AllowanceAdjustRequest, AllowancePeriodResponse, CreditSettingsPayload
from georise.services.credit_service import adjust_allowance, get_credit_settings, save_credit_settings

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=list[UserResponse], dependencies=[Depends(require_admin)])
async def list_users(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).order_by(User.created_at).offset(offset).limit(limit))
    return result.scalars().all()


@router.put("/users/{user_id}/plan", response_model=UserResponse, dependencies=[Depends(require_admin)])
async def set_user_plan(
    user_id: UUID,
    plan: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Grant a plan manually (e.g. giftedPro); paid plans normally come from the payment provider."""
    if plan not in PLANS:
        raise BadRequestError(f"Unknown plan '{plan}'")
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    user.plan = plan
    await db.flush()
    return user


@router.get("/credit-settings", response_model=CreditSettingsPayload, dependencies=[Depends(require_admin)])
async def read_credit_settings(db: AsyncSession = Depends(get_db)):
    return await get_credit_settings(db)


@router.put("/credit-settings", response_model=CreditSettingsPayload, dependencies=[Depends(require_admin)])
async def update_credit_settings(body: CreditSettingsPayload, db: AsyncSession = Depends(get_db)):
    return await save_credit_settings(db, body.model_dump())


@router.put("/users/{user_id}/allowance", response_model=AllowancePeriodResponse)
async def update_user_allowance(
    user_id: UUID,
    body: AllowanceAdjustRequest,
    caller: Caller = Depends(require_admin_caller),
    db: AsyncSession = Depends(get_db),
):
    if body.tokens_granted is None and body.tokens_used is None:
        raise BadRequestError("Nothing to update")
    if not await db.get(User, user_id):
        raise NotFoundError("User not found")
    return await adjust_allowance(
        db, caller.user_id, user_id, tokens_granted=body.tokens_granted, tokens_used=body.tokens_used
    )
