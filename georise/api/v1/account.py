"""Account endpoints: profile, password change, account deletion."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.dependencies import get_current_user
from georise.core.exceptions import BadRequestError, ConflictError
from georise.core.plan_limits import MAX_BRANDS, next_run_at
from georise.core.security import hash_password, verify_password
from georise.db.postgres import get_db
from georise.models.brand import Brand
from georise.models.user import User
from georise.schemas.account import AccountResponse, ChangePasswordRequest, DeleteAccountRequest, UpdateProfileRequest
from georise.schemas.common import MessageResponse

router = APIRouter(prefix="/account", tags=["account"])


async def _build_account_response(user: User, db: AsyncSession) -> AccountResponse:
    result = await db.execute(
        select(func.count(Brand.id), func.max(Brand.last_run)).where(Brand.user_id == user.id)
    )
    brand_count, last_run = result.one()
    return AccountResponse(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        bio=user.bio,
        avatar_url=user.avatar_url,
        plan=user.plan,
        role=user.role,
        is_active=user.is_active,
        brand_count=brand_count or 0,
        max_brands=MAX_BRANDS.get(user.plan, MAX_BRANDS["free"]),
        last_run=last_run,
        next_run_at=next_run_at(user.plan, last_run),
        created_at=user.created_at,
    )


@router.get("/me", response_model=AccountResponse)
async def get_account(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Current user profile with plan limits and next allowed run."""
    return await _build_account_response(user, db)


@router.patch("/me", response_model=AccountResponse)
async def update_profile(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if body.email and body.email != user.email:
        existing = await db.execute(select(User).where(User.email == body.email))
        if existing.scalar_one_or_none():
            raise ConflictError("Email already in use")
        user.email = body.email

    for field in ("display_name", "bio", "avatar_url"):
        value = getattr(body, field)
        if value is not None:
            setattr(user, field, value)
    await db.flush()

    return await _build_account_response(user, db)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change password. Requires current password."""
    if not verify_password(body.current_password, user.password_hash):
        raise BadRequestError("Current password is incorrect")

    if body.current_password == body.new_password:
        raise BadRequestError("New password must differ from current")

    user.password_hash = hash_password(body.new_password)
    await db.flush()
    return MessageResponse(message="Password changed successfully")


@router.delete("/me", response_model=MessageResponse)
async def delete_account(
    body: DeleteAccountRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Danger zone: delete the account with all brands, runs, results and insights."""
    if not verify_password(body.password, user.password_hash):
        raise BadRequestError("Password is incorrect")

    await db.delete(user)
    await db.flush()
    return MessageResponse(message="Account deleted")
