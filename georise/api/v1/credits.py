from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.dependencies import Caller, get_caller, get_current_user
from georise.core.exceptions import BadRequestError, ForbiddenError
from georise.db.postgres import get_db
from georise.models.user import User
from georise.schemas.credits import (
    AllowanceEnvelope,
    AllowancePeriodResponse,
    AllowanceRequest,
    BatchInitResponse,
    CreditsSummary,
)
from georise.services.credit_service import (
    describe_credits,
    ensure_user_allowance,
    get_credit_settings,
    initialize_all_users,
)

router = APIRouter(prefix="/credits", tags=["credits"])


@router.post("/allowance", response_model=AllowanceEnvelope | BatchInitResponse)
async def ensure_allowance(
    body: AllowanceRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Ensure the current allowance period exists.

    ``batch_init`` initializes every user and, like managing another user's
    allowance, needs an admin or the service role.
    """
    if body.batch_init:
        if not caller.is_admin:
            raise ForbiddenError("Admin privileges required for batch_init")
        return BatchInitResponse(**await initialize_all_users(db))

    user_id = body.user_id or caller.user_id
    if user_id is None:
        raise BadRequestError("user_id required or must be authenticated")
    if user_id != caller.user_id and not caller.is_admin:
        raise ForbiddenError("Admin privileges required to manage other users")

    period = await ensure_user_allowance(db, user_id)
    return AllowanceEnvelope(period=AllowancePeriodResponse.model_validate(period))


@router.get("/me", response_model=CreditsSummary)
async def my_credits(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    settings = await get_credit_settings(db)
    period = await ensure_user_allowance(db, user.id)
    return describe_credits(period, settings, user.plan)
