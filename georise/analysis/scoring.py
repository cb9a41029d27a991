"""Visibility scorer.

    score = mention_rate * 70 + min(30, position_bonus)

where position_bonus adds 1.5 / 1.0 / 0.5 / 0 for every mentioned result in
bucket 1 / 2 / 3 / 4. The total is capped at 100 and rounded half-up.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Protocol

from georise.analysis.types import RunStats

MENTION_WEIGHT = 70
POSITION_BONUS_CAP = 30
POSITION_BONUS: dict[int, float] = {1: 1.5, 2: 1.0, 3: 0.5}


class ScoredResult(Protocol):
    mentioned: bool
    position: int | None


def round_half_up(value: float) -> int:
    """Round like ``Math.round``: .5 always goes up (Python's round() goes to even)."""
    return int(math.floor(value + 0.5))


def position_bonus(results: Iterable[ScoredResult]) -> float:
    bonus = 0.0
    for r in results:
        if r.mentioned and r.position:
            bonus += POSITION_BONUS.get(r.position, 0.0)
    return min(POSITION_BONUS_CAP, bonus)


def calculate_score(results: Iterable[ScoredResult]) -> int:
    """Integer visibility score 0-100. An empty result set scores 0."""
    results = list(results)
    if not results:
        return 0

    mentions = sum(1 for r in results if r.mentioned)
    score = (mentions / len(results)) * MENTION_WEIGHT + position_bonus(results)
    return round_half_up(min(100, score))


def calculate_run_stats(results: Iterable) -> RunStats:
    """Aggregates for the run row. Items need mentioned, position and citations."""
    results = list(results)
    total = len(results)
    mentioned = [r for r in results if r.mentioned]
    positions = [r.position for r in mentioned if r.position]

    return RunStats(
        mentions=len(mentioned),
        total=total,
        mention_rate=round(len(mentioned) / total * 100, 1) if total else 0.0,
        avg_position=round(sum(positions) / len(positions), 2) if positions else None,
        top_position_count=sum(1 for p in positions if p <= 2),
        citation_count=sum(1 for r in mentioned if r.citations),
    )
