"""Bounded-concurrency driver for the mention checker.

Queries run in fixed batches of ``concurrency`` with a short pause between
batches. A failing check never aborts the run: it becomes a non-mention
outcome carrying the error text. ``persist`` is called once per query as
soon as its check finishes, one call at a time, since callers share a
single database session. If ``persist`` raises, no further outcome is
persisted and the rest of the batch is cancelled before the error propagates.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from georise.analysis.types import MentionCheck, QueryOutcome

logger = logging.getLogger(__name__)

CheckFn = Callable[[str], Awaitable[MentionCheck]]
PersistFn = Callable[[QueryOutcome], Awaitable[None]]


async def run_batches(
    queries: list[str],
    check: CheckFn,
    persist: PersistFn | None = None,
    *,
    concurrency: int = 4,
    delay: float = 0.2,
) -> list[QueryOutcome]:
    """Check every query and return one outcome per query (completion order)."""
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    outcomes: list[QueryOutcome] = []
    persist_lock = asyncio.Lock()
    aborted = False

    async def _run_one(index: int, query: str) -> None:
        nonlocal aborted
        try:
            result = await check(query)
            outcome = QueryOutcome(query=query, index=index, check=result)
        except Exception as e:
            logger.error("Error checking query %d (%s): %s: %s", index, query[:60], type(e).__name__, e)
            outcome = QueryOutcome(query=query, index=index, error=f"{type(e).__name__}: {e}")

        async with persist_lock:
            # No writes once another persist has failed
            if aborted:
                return
            if persist is not None:
                try:
                    await persist(outcome)
                except BaseException:
                    aborted = True
                    raise
            outcomes.append(outcome)

    for start in range(0, len(queries), concurrency):
        batch = queries[start : start + concurrency]
        tasks = [asyncio.create_task(_run_one(start + i, q)) for i, q in enumerate(batch)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        if delay > 0 and start + concurrency < len(queries):
            await asyncio.sleep(delay)

    logger.info(
        "Batch run done: %d queries, %d mentioned, %d errors",
        len(outcomes),
        sum(1 for o in outcomes if o.mentioned),
        sum(1 for o in outcomes if o.error),
    )
    return outcomes
