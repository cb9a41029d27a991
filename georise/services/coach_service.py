"""Chat coach: a plan-gated assistant grounded in the brand's latest analysis data."""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import httpx
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from georise.analysis.scoring import round_half_up
from georise.collectors.ai_gateway import PROVIDER, AiGatewayClient, GatewayReply
from georise.core.exceptions import (
    ForbiddenError,
    GatewayError,
    NotFoundError,
    PlanLimitError,
    RateLimitedError,
    UpstreamError,
)
from georise.core.metrics import GATEWAY_CALLS
from georise.core.plan_limits import COACH_DAILY_LIMITS
from georise.models.analysis_result import AnalysisResult
from georise.models.brand import Brand
from georise.models.coach import CoachMessage
from georise.models.insight import Insight
from georise.models.user import User
from georise.services.credit_service import record_usage

logger = logging.getLogger(__name__)

FEATURE_NAME = "chat_coach"
HISTORY_LIMIT = 20
RECENT_ANALYSES = 20
RECENT_INSIGHTS = 5

SYSTEM_PROMPT = """You are the GEORISE Optimization Coach, an AI assistant that helps users improve their AI visibility across different AI search engines.

Current User Data:
- Brand: {brand}
- Topic/Industry: {topic}
- Visibility Score: {score}/100
- Mentioned on: {engines}
- Total queries tested: {total_queries}
- Mention rate: {mention_rate}%
- Missing from queries like: {missing}
- Recent insights: {insights}

Your role:
1. Analyze visibility gaps based on real data
2. Provide specific, actionable recommendations
3. Explain why certain AI engines don't mention them
4. Suggest content topics and strategies
5. Be encouraging but honest about improvement areas

Keep responses:
- Concise (under 250 words)
- Specific to their actual data
- Actionable with clear next steps
- Professional but friendly tone
- Use the brand name naturally

Do not:
- Make up data you don't have
- Promise specific score increases
- Recommend unethical tactics
- Be vague or generic"""


async def check_coach_access(db: AsyncSession, user: User, now: datetime | None = None) -> None:
    """Free plans have no coach; pro plans are capped per rolling 24 hours."""
    if user.plan not in COACH_DAILY_LIMITS:
        raise ForbiddenError("Pro plan required")

    limit = COACH_DAILY_LIMITS[user.plan]
    if limit is None:
        return

    since = (now or datetime.now(timezone.utc)) - timedelta(days=1)
    result = await db.execute(
        select(func.count())
        .select_from(CoachMessage)
        .where(CoachMessage.user_id == user.id, CoachMessage.role == "user", CoachMessage.created_at >= since)
    )
    if (result.scalar() or 0) >= limit:
        raise RateLimitedError(f"Daily message limit reached ({limit}/day)")


async def get_owned_brand(db: AsyncSession, user: User, brand_id: uuid.UUID) -> Brand:
    result = await db.execute(select(Brand).where(Brand.id == brand_id, Brand.user_id == user.id))
    brand = result.scalar_one_or_none()
    if not brand:
        raise NotFoundError("Brand not found or unauthorized")
    return brand


async def build_system_prompt(db: AsyncSession, brand: Brand) -> str:
    analyses = (
        await db.execute(
            select(AnalysisResult)
            .where(AnalysisResult.brand_id == brand.id)
            .order_by(AnalysisResult.occurred_at.desc(), AnalysisResult.id.desc())
            .limit(RECENT_ANALYSES)
        )
    ).scalars().all()
    insights = (
        await db.execute(
            select(Insight.text)
            .where(Insight.brand_id == brand.id)
            .order_by(Insight.created_at.desc(), Insight.id.desc())
            .limit(RECENT_INSIGHTS)
        )
    ).scalars().all()

    mentioned = [a for a in analyses if a.position]
    engines = sorted({a.ai_engine for a in mentioned})
    missing = [a.query for a in analyses if not a.position][:5]
    total_queries = len({a.query for a in analyses})
    mention_rate = round_half_up(len(mentioned) / len(analyses) * 100) if total_queries else 0

    return SYSTEM_PROMPT.format(
        brand=brand.name,
        topic=brand.topic,
        score=brand.visibility_score,
        engines=", ".join(engines) if engines else "None yet",
        total_queries=total_queries,
        mention_rate=mention_rate,
        missing=", ".join(missing) if missing else "N/A",
        insights=". ".join(insights) if insights else "No insights yet",
    )


async def get_history(db: AsyncSession, brand_id: uuid.UUID, limit: int = HISTORY_LIMIT) -> list[CoachMessage]:
    """Latest ``limit`` messages of a brand, oldest first."""
    result = await db.execute(
        select(CoachMessage)
        .where(CoachMessage.brand_id == brand_id)
        .order_by(CoachMessage.created_at.desc(), CoachMessage.id.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))


async def send_message(
    db: AsyncSession,
    user: User,
    brand_id: uuid.UUID,
    message: str,
    gateway: AiGatewayClient | None = None,
) -> tuple[Brand, GatewayReply]:
    """Answer one coach message and store both sides of the exchange."""
    await check_coach_access(db, user)
    brand = await get_owned_brand(db, user, brand_id)

    messages = [{"role": "system", "content": await build_system_prompt(db, brand)}]
    messages += [{"role": m.role, "content": m.message} for m in await get_history(db, brand.id)]
    messages.append({"role": "user", "content": message})

    gateway = gateway or AiGatewayClient()
    try:
        reply = await gateway.chat(messages, temperature=0.7, max_tokens=400)
    except GatewayError as e:
        GATEWAY_CALLS.labels(feature=FEATURE_NAME, status=str(e.status_code)).inc()
        if e.status_code == 429:
            raise RateLimitedError("AI service rate limit reached. Please try again later.")
        if e.status_code == 402:
            raise PlanLimitError("AI credits depleted. Please contact support.")
        raise UpstreamError(f"AI gateway error: {e.status_code}")
    except httpx.HTTPError as e:
        GATEWAY_CALLS.labels(feature=FEATURE_NAME, status="transport_error").inc()
        logger.error("AI gateway unreachable: %s: %s", type(e).__name__, e)
        raise UpstreamError("AI gateway unavailable")
    GATEWAY_CALLS.labels(feature=FEATURE_NAME, status="ok").inc()

    db.add(CoachMessage(user_id=user.id, brand_id=brand.id, role="user", message=message))
    await db.flush()
    db.add(CoachMessage(user_id=user.id, brand_id=brand.id, role="assistant", message=reply.text))
    await db.flush()
    return brand, reply


async def track_usage(
    session_factory: Callable,
    user_id: uuid.UUID,
    brand_id: uuid.UUID,
    brand_name: str,
    message: str,
    reply: GatewayReply,
) -> None:
    """Record coach token usage in its own session. Runs after the response is sent."""
    async with session_factory() as session:
        try:
            await record_usage(
                session,
                user_id,
                feature=FEATURE_NAME,
                model=reply.model,
                provider=PROVIDER,
                prompt_tokens=reply.prompt_tokens,
                completion_tokens=reply.completion_tokens,
                total_tokens=reply.total_tokens,
                metadata={
                    "brand_id": str(brand_id),
                    "brand_name": brand_name,
                    "message_length": len(message),
                    "reply_length": len(reply.text),
                },
            )
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Failed to track usage for user %s", user_id)
