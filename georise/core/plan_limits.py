"""Plan policy: run frequency, brand quota, coach access and monthly credits."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.exceptions import PlanLimitError
from georise.models.brand import Brand

PLANS = ("free", "pro", "giftedPro", "business", "giftedAgency")
PAID_PLANS = ("pro", "giftedPro", "business", "giftedAgency")

# Minimum time between analysis runs
RUN_INTERVALS: dict[str, timedelta] = {
    "free": timedelta(hours=168),
    "pro": timedelta(hours=24),
    "giftedPro": timedelta(hours=24),
    "business": timedelta(hours=24),
    "giftedAgency": timedelta(hours=24),
}

MAX_BRANDS: dict[str, int] = {
    "free": 1,
    "pro": 3,
    "giftedPro": 3,
    "business": 10,
    "giftedAgency": 10,
}

# Chat coach: None means no daily cap
COACH_DAILY_LIMITS: dict[str, int | None] = {
    "pro": 50,
    "giftedPro": 50,
    "business": None,
    "giftedAgency": None,
}


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def can_run(plan: str, last_run_at: datetime | None, now: datetime | None = None) -> bool:
    """Whether a new analysis run is allowed. The first run always is; after that unknown plans never are."""
    if last_run_at is None:
        return True
    interval = RUN_INTERVALS.get(plan)
    if interval is None:
        return False
    now = as_utc(now or datetime.now(timezone.utc))
    return now - as_utc(last_run_at) >= interval


def next_run_at(plan: str, last_run_at: datetime | None) -> datetime | None:
    interval = RUN_INTERVALS.get(plan)
    if interval is None or last_run_at is None:
        return None
    return as_utc(last_run_at) + interval


def credit_plan_tier(plan: str) -> str:
    """Map a plan to its credit tier (free | pro | business). Unknown plans get the free tier."""
    if plan in ("pro", "giftedPro"):
        return "pro"
    if plan in ("business", "giftedAgency"):
        return "business"
    return "free"


async def check_brand_limit(db: AsyncSession, user_id: UUID, plan: str) -> None:
    """Raise PlanLimitError if the user already owns the maximum number of brands."""
    max_brands = MAX_BRANDS.get(plan, MAX_BRANDS["free"])
    result = await db.execute(select(func.count()).select_from(Brand).where(Brand.user_id == user_id))
    current_count = result.scalar() or 0

    if current_count >= max_brands:
        raise PlanLimitError(
            f"Plan '{plan}' allows max {max_brands} brands. "
            f"Current: {current_count}. Upgrade your plan to add more."
        )
