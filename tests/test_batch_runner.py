import asyncio

import pytest

from georise.analysis.batch_runner import run_batches
from georise.analysis.types import MentionCheck


@pytest.mark.asyncio
async def test_every_query_gets_one_outcome():
    async def check(query):
        return MentionCheck(mentioned=query.endswith("1"), position=1 if query.endswith("1") else None)

    queries = [f"q{i}" for i in range(10)]
    outcomes = await run_batches(queries, check, concurrency=4, delay=0)

    assert sorted(o.index for o in outcomes) == list(range(10))
    assert {o.query for o in outcomes} == set(queries)
    assert sum(1 for o in outcomes if o.mentioned) == 1


@pytest.mark.asyncio
async def test_failure_becomes_non_mention_outcome():
    async def check(query):
        if query == "bad":
            raise RuntimeError("upstream exploded")
        return MentionCheck(mentioned=True, position=1)

    outcomes = await run_batches(["good", "bad", "good"], check, concurrency=2, delay=0)

    failed = [o for o in outcomes if o.error]
    assert len(outcomes) == 3
    assert len(failed) == 1
    assert failed[0].query == "bad"
    assert failed[0].mentioned is False
    assert failed[0].error == "RuntimeError: upstream exploded"


@pytest.mark.asyncio
async def test_concurrency_bound():
    in_flight = 0
    peak = 0

    async def check(query):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return MentionCheck()

    await run_batches([str(i) for i in range(9)], check, concurrency=3, delay=0)
    assert peak == 3


@pytest.mark.asyncio
async def test_persist_called_once_per_query():
    persisted = []

    async def check(query):
        return MentionCheck()

    async def persist(outcome):
        persisted.append(outcome.index)

    outcomes = await run_batches(["a", "b", "c", "d", "e"], check, persist, concurrency=2, delay=0)
    assert sorted(persisted) == [0, 1, 2, 3, 4]
    assert len(outcomes) == 5


@pytest.mark.asyncio
async def test_sleeps_between_batches_only(monkeypatch):
    sleeps = []
    real_sleep = asyncio.sleep

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        await real_sleep(0)

    monkeypatch.setattr("georise.analysis.batch_runner.asyncio.sleep", fake_sleep)

    async def check(query):
        return MentionCheck()

    await run_batches([str(i) for i in range(8)], check, concurrency=4, delay=0.2)
    assert sleeps == [0.2]


@pytest.mark.asyncio
async def test_invalid_concurrency():
    async def check(query):
        return MentionCheck()

    with pytest.raises(ValueError):
        await run_batches(["a"], check, concurrency=0)


@pytest.mark.asyncio
async def test_persist_failure_stops_the_batch(monkeypatch):
    persisted = []
    pending = []

    async def check(query):
        if query != "q0":
            await asyncio.sleep(0.01)
        return MentionCheck()

    async def persist(outcome):
        if outcome.index == 0:
            raise RuntimeError("database is gone")
        persisted.append(outcome.index)

    real_create_task = asyncio.create_task

    def tracking_create_task(coro):
        task = real_create_task(coro)
        pending.append(task)
        return task

    monkeypatch.setattr("georise.analysis.batch_runner.asyncio.create_task", tracking_create_task)
    with pytest.raises(RuntimeError, match="database is gone"):
        await run_batches(["q0", "q1", "q2", "q3", "q4"], check, persist, concurrency=4, delay=0)
    monkeypatch.undo()

    assert len(pending) == 4
    assert all(task.done() for task in pending)
    await asyncio.sleep(0.05)
    assert persisted == []


@pytest.mark.asyncio
async def test_no_persist_after_failure_in_same_batch():
    persisted = []

    async def check(query):
        return MentionCheck()

    async def persist(outcome):
        if outcome.index == 1:
            raise RuntimeError("commit failed")
        persisted.append(outcome.index)

    with pytest.raises(RuntimeError):
        await run_batches(["a", "b", "c", "d"], check, persist, concurrency=4, delay=0)
    await asyncio.sleep(0.01)

    assert persisted == [0]
