"""Monthly AI token allowance ledger.

Each user has one allowance period per UTC calendar month. A new period
grants ``credits_for_plan * tokens_per_credit`` tokens plus the unused
balance of the previous period, capped at one month's base grant. Only AI
features (chat coach) draw from it; analysis runs do not.
"""

import logging
import time
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.exceptions import NotFoundError
from georise.core.plan_limits import PAID_PLANS, as_utc, credit_plan_tier
from georise.models.credit import AllowancePeriod, CreditSetting, LlmUsageEvent
from georise.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_CREDIT_SETTINGS: dict[str, int] = {
    "tokens_per_credit": 200,
    "credits_free_per_month": 0,
    "credits_pro_per_month": 1500,
    "credits_business_per_month": 5000,
}

SETTING_DESCRIPTIONS: dict[str, str] = {
    "tokens_per_credit": "LLM tokens that make up one credit",
    "credits_free_per_month": "Monthly credits for the free plan",
    "credits_pro_per_month": "Monthly credits for pro plans",
    "credits_business_per_month": "Monthly credits for business plans",
}


async def get_credit_settings(db: AsyncSession) -> dict[str, int]:
    """Stored settings over the defaults. Unknown keys are ignored."""
    settings = dict(DEFAULT_CREDIT_SETTINGS)
    result = await db.execute(select(CreditSetting.key, CreditSetting.value_int))
    for key, value in result.all():
        if key in settings:
            settings[key] = value
    return settings


async def save_credit_settings(db: AsyncSession, values: dict[str, int]) -> dict[str, int]:
    for key, value in values.items():
        if key not in DEFAULT_CREDIT_SETTINGS:
            continue
        row = await db.get(CreditSetting, key)
        if row:
            row.value_int = value
        else:
            db.add(CreditSetting(key=key, value_int=value, description=SETTING_DESCRIPTIONS.get(key)))
    await db.flush()
    return await get_credit_settings(db)


def credits_for_plan(plan: str, settings: dict[str, int]) -> int:
    return settings[f"credits_{credit_plan_tier(plan)}_per_month"]


def period_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    """First instant of the current UTC month and of the next one."""
    now = as_utc(now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    if now.month == 12:
        end = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)
    return start, end


async def get_current_period(db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None) -> AllowancePeriod | None:
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(AllowancePeriod)
        .where(
            AllowancePeriod.user_id == user_id,
            AllowancePeriod.period_start <= now,
            AllowancePeriod.period_end > now,
        )
        .order_by(AllowancePeriod.period_start.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def ensure_user_allowance(db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None) -> AllowancePeriod:
    """Return the user's current period, creating it (with rollover) when missing."""
    now = now or datetime.now(timezone.utc)
    existing = await get_current_period(db, user_id, now)
    if existing:
        logger.debug("Found existing period for user %s", user_id)
        return existing

    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    settings = await get_credit_settings(db)
    plan_credits = credits_for_plan(user.plan, settings)
    tokens_per_credit = settings["tokens_per_credit"]
    base_tokens = plan_credits * tokens_per_credit
    period_start, period_end = period_bounds(now)

    rollover_tokens = 0
    result = await db.execute(
        select(AllowancePeriod)
        .where(AllowancePeriod.user_id == user_id, AllowancePeriod.period_end <= period_start)
        .order_by(AllowancePeriod.period_end.desc())
        .limit(1)
    )
    previous = result.scalar_one_or_none()
    if previous:
        remaining = previous.tokens_granted - previous.tokens_used
        rollover_tokens = max(0, min(remaining, base_tokens))
        logger.info("Rollover from previous period for user %s: %d tokens", user_id, rollover_tokens)

    period = AllowancePeriod(
        user_id=user_id,
        tokens_granted=base_tokens + rollover_tokens,
        tokens_used=0,
        period_start=period_start,
        period_end=period_end,
        source="subscription" if user.plan in PAID_PLANS else "free_tier",
        metadata_={
            "base_tokens": base_tokens,
            "rollover_tokens": rollover_tokens,
            "plan": user.plan,
            "credits_granted": plan_credits + rollover_tokens / tokens_per_credit,
        },
    )
    db.add(period)
    await db.flush()
    logger.info("Created period for user %s: %d tokens granted", user_id, period.tokens_granted)
    return period


async def initialize_all_users(db: AsyncSession, now: datetime | None = None) -> dict:
    """Make sure every active user has a current period."""
    now = now or datetime.now(timezone.utc)
    users = (await db.execute(select(User.id).where(User.is_active == True))).scalars().all()  # noqa: E712
    with_period = set(
        (
            await db.execute(
                select(AllowancePeriod.user_id).where(
                    AllowancePeriod.period_start <= now, AllowancePeriod.period_end > now
                )
            )
        )
        .scalars()
        .all()
    )

    initialized = 0
    skipped = 0
    errors: list[str] = []
    for user_id in users:
        if user_id in with_period:
            skipped += 1
            continue
        try:
            await ensure_user_allowance(db, user_id, now)
            initialized += 1
        except Exception as e:
            msg = f"Failed to initialize user {user_id}: {e}"
            logger.error(msg)
            errors.append(msg)

    logger.info(
        "Batch init complete: %d initialized, %d skipped, %d errors", initialized, skipped, len(errors)
    )
    return {"initialized": initialized, "skipped": skipped, "errors": errors}


def describe_credits(period: AllowancePeriod | None, settings: dict[str, int], plan: str) -> dict:
    """Balance summary in tokens and credits for the account screen."""
    tokens_per_credit = settings["tokens_per_credit"]
    plan_base_credits = credits_for_plan(plan, settings)
    if period is None:
        return {
            "tokens_per_credit": tokens_per_credit,
            "plan_base_credits": plan_base_credits,
            "base_tokens": plan_base_credits * tokens_per_credit,
        }

    meta = period.metadata_ or {}
    remaining = max(0, period.tokens_granted - period.tokens_used)
    return {
        "id": period.id,
        "tokens_granted": period.tokens_granted,
        "tokens_used": period.tokens_used,
        "remaining_tokens": remaining,
        "credits_granted": round(period.tokens_granted / tokens_per_credit, 2),
        "credits_used": round(period.tokens_used / tokens_per_credit, 2),
        "remaining_credits": round(remaining / tokens_per_credit, 2),
        "period_start": period.period_start,
        "period_end": period.period_end,
        "source": period.source,
        "rollover_tokens": int(meta.get("rollover_tokens", 0)),
        "base_tokens": int(meta.get("base_tokens", plan_base_credits * tokens_per_credit)),
        "plan_base_credits": plan_base_credits,
        "tokens_per_credit": tokens_per_credit,
    }


async def record_usage(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    feature: str,
    model: str,
    provider: str,
    prompt_tokens: int = 0,
    completion_tokens: int = 0,
    total_tokens: int | None = None,
    metadata: dict | None = None,
) -> LlmUsageEvent:
    """Log one AI call and draw its tokens from the current period."""
    total = total_tokens if total_tokens is not None else prompt_tokens + completion_tokens
    settings = await get_credit_settings(db)

    event = LlmUsageEvent(
        user_id=user_id,
        idempotency_key=f"{feature}_{user_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}",
        feature=feature,
        model=model,
        provider=provider,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total,
        credits_charged=total / settings["tokens_per_credit"],
        metadata_=metadata or {},
    )
    db.add(event)

    period = await ensure_user_allowance(db, user_id)
    await db.execute(
        update(AllowancePeriod)
        .where(AllowancePeriod.id == period.id)
        .values(tokens_used=AllowancePeriod.tokens_used + total, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    await db.refresh(period)
    logger.info(
        "Usage tracked: %d tokens, %.2f credits for user %s", total, event.credits_charged, user_id
    )
    return event


async def adjust_allowance(
    db: AsyncSession,
    admin_id: uuid.UUID | None,
    user_id: uuid.UUID,
    *,
    tokens_granted: int | None = None,
    tokens_used: int | None = None,
) -> AllowancePeriod:
    """Admin override of the current period's balance, logged as a zero-token usage event."""
    period = await ensure_user_allowance(db, user_id)
    before = {"tokens_granted": period.tokens_granted, "tokens_used": period.tokens_used}
    if tokens_granted is not None:
        period.tokens_granted = tokens_granted
    if tokens_used is not None:
        period.tokens_used = tokens_used

    db.add(
        LlmUsageEvent(
            user_id=user_id,
            idempotency_key=f"admin_adjust_{user_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}",
            feature="admin_balance_adjustment",
            provider="admin",
            metadata_={
                "admin_id": str(admin_id) if admin_id else "service_role",
                "before": before,
                "after": {"tokens_granted": period.tokens_granted, "tokens_used": period.tokens_used},
            },
        )
    )
    await db.flush()
    logger.info("Allowance of user %s adjusted by %s: %s", user_id, admin_id or "service_role", before)
    return period
