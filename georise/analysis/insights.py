"""Template-based recommendations derived from a run's results."""

from __future__ import annotations

from collections.abc import Iterable

from georise.analysis.scoring import round_half_up


def _first_unmentioned(results: list) -> str | None:
    # Results may arrive in completion order; pick by query index so the
    # suggestion does not depend on which request finished first.
    missing = [r for r in results if not r.mentioned]
    if not missing:
        return None
    missing.sort(key=lambda r: getattr(r, "index", 0))
    return missing[0].query


def generate_insights(results: Iterable, topic: str, brand_name: str, score: int) -> list[str]:
    """Ordered recommendation strings for one run.

    Items need ``mentioned``, ``position``, ``query``, ``citations`` and
    optionally ``index``.
    """
    results = list(results)
    insights: list[str] = []
    total = len(results)
    mentions = sum(1 for r in results if r.mentioned)
    mention_rate = (mentions / total * 100) if total else 0.0

    insights.append(
        f"Your brand appears in {mentions} out of {total} relevant queries "
        f"({round_half_up(mention_rate)}% mention rate)."
    )

    top_positions = sum(1 for r in results if r.mentioned and r.position and r.position <= 2)
    if top_positions > 0:
        insights.append(f"Strong performance: You appear in top 2 results for {top_positions} queries.")
    elif mentions > 0:
        insights.append(
            "Focus on getting ranked higher. Currently not appearing in top positions for most queries."
        )

    gap_query = _first_unmentioned(results)
    if gap_query is not None:
        insights.append(f'Opportunity: Create content specifically about "{gap_query}" to improve visibility.')

    if score < 40:
        insights.append(
            "Your visibility score is below industry average. Publish 2-3 authoritative articles "
            f"about {topic} with clear examples and case studies."
        )
    elif score < 70:
        insights.append(
            "Good foundation! Increase visibility by contributing to industry publications "
            f"and podcasts about {topic}."
        )
    else:
        insights.append(
            "Excellent visibility! Maintain momentum by regularly sharing insights and engaging "
            f"with the {topic} community."
        )

    if mentions > 0:
        with_citations = sum(1 for r in results if r.mentioned and r.citations)
        citation_rate = with_citations / mentions * 100
        advice = (
            "Improve this by building a stronger online presence with verifiable credentials."
            if citation_rate < 50
            else "Great work on authoritative content!"
        )
        insights.append(f"{round_half_up(citation_rate)}% of your mentions include source citations. {advice}")

    return insights
