"""Celery tasks for the AI allowance ledger."""

import asyncio
import logging

from georise.core.sentry import init_sentry
from georise.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

init_sentry("worker")


def _make_session_factory():
    """Create a fresh async engine + session factory for Celery worker context.

    The module-level engine from georise.db.postgres is bound to uvicorn's event
    loop and cannot be reused in the new event loop created by _run_async().
    """
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from georise.core.config import settings

    engine = create_async_engine(settings.postgres_url, echo=False, pool_pre_ping=True)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _run_async(coro):
    """Run an async coroutine from sync Celery task context on a fresh event loop."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _initialize_allowances_async() -> dict:
    from georise.services.credit_service import initialize_all_users

    engine, session_factory = _make_session_factory()
    try:
        async with session_factory() as db:
            result = await initialize_all_users(db)
            await db.commit()
            return result
    finally:
        await engine.dispose()


@celery_app.task(name="initialize_allowances", bind=True, max_retries=2, default_retry_delay=300)
def initialize_allowances_task(self):
    """Create the current allowance period for every active user.

    Runs on the 1st of each month at 00:05 UTC via Celery Beat. Users who
    already have a period are skipped, so reruns are harmless.
    """
    logger.info("Initializing monthly AI allowances...")
    try:
        result = _run_async(_initialize_allowances_async())
    except Exception as exc:
        logger.error("Allowance initialization failed: %s", exc)
        raise self.retry(exc=exc)
    logger.info(
        "Allowances: %d initialized, %d skipped, %d errors",
        result["initialized"],
        result["skipped"],
        len(result["errors"]),
    )
    return result
