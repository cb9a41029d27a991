"""Analysis run orchestrator.

Guards (validation, ownership, plan rate limit, per-brand lock) run before
any run row exists. After that the run moves pending -> processing ->
completed | failed, and every per-query result is committed as it arrives
together with the run's progress counters, so pollers see live progress.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from georise.analysis.batch_runner import run_batches
from georise.analysis.insights import generate_insights
from georise.analysis.mention import BrandMatcher, SubstringMatcher, WordBoundaryMatcher
from georise.analysis.query_generator import generate_queries
from georise.analysis.scoring import calculate_run_stats, calculate_score
from georise.analysis.types import QueryOutcome
from georise.collectors.llm_base import BaseLlmCollector
from georise.collectors.llm_perplexity import PerplexityCollector
from georise.core.config import settings
from georise.core.dependencies import Caller
from georise.core.exceptions import (
    AppError,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    RateLimitedError,
)
from georise.core.metrics import ANALYSIS_RUNS, UPSTREAM_QUERIES
from georise.core.plan_limits import can_run
from georise.models.analysis_result import AnalysisResult
from georise.models.analysis_run import TERMINAL_STATUSES, AnalysisRun
from georise.models.brand import Brand
from georise.models.insight import Insight
from georise.models.user import User
from georise.schemas.analysis import AnalysisRunRequest, AnalysisRunResponse

logger = logging.getLogger(__name__)

AI_ENGINE = "perplexity"
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Upgrade your plan for more frequent analyses."

CheckerFactory = Callable[[str], BaseLlmCollector]

MATCHERS: dict[str, type] = {"substring": SubstringMatcher, "word_boundary": WordBoundaryMatcher}


def _default_checker_factory(matcher: BrandMatcher | None = None) -> CheckerFactory:
    def _factory(api_key: str) -> BaseLlmCollector:
        return PerplexityCollector(api_key=api_key, model=settings.perplexity_model, matcher=matcher)

    return _factory


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisOrchestrator:
    """Runs one analysis for a brand synchronously, start to finish."""

    def __init__(
        self,
        db: AsyncSession,
        checker_factory: CheckerFactory | None = None,
        *,
        concurrency: int | None = None,
        delay: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.checker_factory = checker_factory or _default_checker_factory(MATCHERS[settings.mention_matcher]())
        self.concurrency = concurrency or settings.analysis_concurrency
        self.delay = settings.analysis_batch_delay_ms / 1000 if delay is None else delay
        self.clock = clock

    # --- Guards ---

    @staticmethod
    def _validate(request: AnalysisRunRequest) -> tuple[uuid.UUID, str, str, uuid.UUID]:
        values = [request.brand_id, request.brand_name, request.topic, request.user_id]
        if any(v is None or not str(v).strip() for v in values):
            raise BadRequestError("brandId, brandName, topic and userId are required")
        try:
            brand_id = uuid.UUID(request.brand_id)
            user_id = uuid.UUID(request.user_id)
        except ValueError:
            raise BadRequestError("brandId and userId must be valid UUIDs")
        return brand_id, request.brand_name.strip(), request.topic.strip(), user_id

    async def _authorize(self, caller: Caller, brand_id: uuid.UUID, user_id: uuid.UUID) -> tuple[Brand, User]:
        if not caller.is_service_role and caller.user_id != user_id:
            raise ForbiddenError("Unauthorized")

        result = await self.db.execute(select(Brand).where(Brand.id == brand_id, Brand.user_id == user_id))
        brand = result.scalar_one_or_none()
        owner = await self.db.get(User, user_id)
        if not brand or not owner:
            logger.warning("Brand %s not found or not owned by %s", brand_id, user_id)
            raise ForbiddenError("Unauthorized")
        return brand, owner

    async def _check_rate_limit(self, owner: User, now: datetime) -> None:
        # The gate is per user: the most recent run across all of the user's brands counts
        result = await self.db.execute(select(func.max(Brand.last_run)).where(Brand.user_id == owner.id))
        last_run = result.scalar()
        if not can_run(owner.plan, last_run, now):
            logger.info("Rate limit hit for user %s (plan=%s, last_run=%s)", owner.id, owner.plan, last_run)
            raise RateLimitedError(RATE_LIMIT_MESSAGE)

    async def _acquire_lock(self, brand_id: uuid.UUID, now: datetime) -> None:
        stale_before = now - timedelta(minutes=settings.analysis_lock_minutes)
        result = await self.db.execute(
            update(Brand)
            .where(
                Brand.id == brand_id,
                or_(Brand.analysis_locked_at.is_(None), Brand.analysis_locked_at < stale_before),
            )
            .values(analysis_locked_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise ConflictError("An analysis is already running for this brand")
        await self.db.commit()

    async def _release_lock(self, brand_id: uuid.UUID) -> None:
        await self.db.execute(
            update(Brand)
            .where(Brand.id == brand_id)
            .values(analysis_locked_at=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    # --- Run ---

    async def run(self, request: AnalysisRunRequest, caller: Caller) -> AnalysisRunResponse:
        brand_id, brand_name, topic, user_id = self._validate(request)
        brand, owner = await self._authorize(caller, brand_id, user_id)
        now = self.clock()
        await self._check_rate_limit(owner, now)
        await self._acquire_lock(brand_id, now)

        run_uuid = uuid.uuid4()
        run_pk: int | None = None
        logger.info(
            "Starting analysis for brand: %s (%s)",
            brand_name,
            topic,
            extra={"run_id": str(run_uuid), "brand_id": str(brand_id)},
        )
        try:
            queries = generate_queries(topic, brand_name)
            run = AnalysisRun(
                run_id=run_uuid,
                brand_id=brand_id,
                user_id=user_id,
                brand_name=brand_name,
                topic=topic,
                ai_engine=AI_ENGINE,
                status="pending",
                total_queries=len(queries),
            )
            self.db.add(run)
            await self.db.commit()
            run_pk = run.id

            run.status = "processing"
            await self.db.commit()

            response = await self._execute(run, brand, queries)
        except Exception as e:
            await self._mark_failed(run_pk, run_uuid, e)
            raise AppError(str(e) or type(e).__name__) from e
        finally:
            await self._release_lock(brand_id)

        return response

    async def _execute(self, run: AnalysisRun, brand: Brand, queries: list[str]) -> AnalysisRunResponse:
        # Raises MissingCredentialError before any upstream call
        checker = self.checker_factory(settings.perplexity_api_key)

        total = len(queries)
        completed = 0

        async def _persist(outcome: QueryOutcome) -> None:
            nonlocal completed
            check = outcome.check
            self.db.add(
                AnalysisResult(
                    brand_id=run.brand_id,
                    run_id=run.run_id,
                    ai_engine=AI_ENGINE,
                    query=outcome.query,
                    query_index=outcome.index,
                    mentioned=check.mentioned,
                    position=check.position,
                    context=check.context,
                    full_response=check.full_response,
                    mention_type=check.mention_type,
                    sentiment="neutral" if check.mentioned else None,
                    url=check.url,
                    citations=check.citations,
                    error=outcome.error,
                    occurred_at=self.clock(),
                )
            )
            completed += 1
            run.queries_completed = completed
            run.progress = completed * 100 // total if total else 100
            await self.db.commit()

            if outcome.error:
                UPSTREAM_QUERIES.labels(engine=AI_ENGINE, outcome="error").inc()
            else:
                UPSTREAM_QUERIES.labels(
                    engine=AI_ENGINE, outcome="mentioned" if check.mentioned else "not_mentioned"
                ).inc()

        logger.info("Running %d queries...", total, extra={"run_id": str(run.run_id)})
        outcomes = await run_batches(
            queries,
            check=lambda q: checker.check(q, run.brand_name),
            persist=_persist,
            concurrency=self.concurrency,
            delay=self.delay,
        )

        score = calculate_score(outcomes)
        stats = calculate_run_stats(outcomes)
        insight_texts = generate_insights(outcomes, run.topic, run.brand_name, score)
        logger.info("Calculated visibility score: %d", score, extra={"run_id": str(run.run_id)})

        finished_at = self.clock()
        for i, text in enumerate(insight_texts):
            self.db.add(
                Insight(brand_id=run.brand_id, run_id=run.run_id, type="quick_win", position=i, text=text)
            )

        brand.visibility_score = score
        brand.last_run = finished_at

        run.status = "completed"
        run.progress = 100
        run.visibility_score = score
        run.total_mentions = stats.mentions
        run.avg_position = stats.avg_position
        run.mention_rate = stats.mention_rate
        run.top_position_count = stats.top_position_count
        run.citation_count = stats.citation_count
        run.completed_at = finished_at
        await self.db.commit()

        ANALYSIS_RUNS.labels(status="completed").inc()
        logger.info(
            "Analysis complete! Score: %d, Mentions: %d/%d",
            score,
            stats.mentions,
            total,
            extra={"run_id": str(run.run_id)},
        )
        return AnalysisRunResponse(
            success=True,
            score=score,
            mentions=stats.mentions,
            total_queries=len(outcomes),
            run_id=run.run_id,
        )

    async def _mark_failed(self, run_pk: int | None, run_uuid: uuid.UUID, exc: Exception) -> None:
        """Move the run to failed. Results already written stay; the brand is not touched."""
        logger.error("Analysis error: %s: %s", type(exc).__name__, exc, extra={"run_id": str(run_uuid)})
        ANALYSIS_RUNS.labels(status="failed").inc()
        await self.db.rollback()
        if run_pk is None:
            return
        await self.db.execute(
            update(AnalysisRun)
            .where(AnalysisRun.id == run_pk, AnalysisRun.status.not_in(TERMINAL_STATUSES))
            .values(status="failed", error_message=str(exc) or type(exc).__name__, completed_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
