"""Competitor analysis: ask the AI gateway to name a brand's competitors from a run's stored answers.

The model is asked for a JSON array of ``{name, score, gap}``. Answers wrapped in
markdown fences are accepted, as is an object carrying the array under
``competitors`` (what JSON mode tends to produce). An answer that does not
validate is retried once with a clarification; a second failure raises
``CompetitorParseError``.
"""

from __future__ import annotations

import json
import logging
import re
import uuid

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from georise.collectors.ai_gateway import AiGatewayClient
from georise.core.dependencies import Caller
from georise.core.exceptions import CompetitorParseError, NotFoundError
from georise.core.metrics import GATEWAY_CALLS
from georise.models.analysis_result import AnalysisResult
from georise.models.analysis_run import AnalysisRun
from georise.schemas.competitor import CompetitorList, CompetitorScore

logger = logging.getLogger(__name__)

FEATURE_NAME = "competitor_analysis"
CONTENT_LIMIT = 1000

SYSTEM_PROMPT = """You are a Competitor Intelligence Analyst.
Your task is to analyze search results for the brand "{brand}" (Topic: {topic}) and identify its top competitors.

Input Data: A list of search results from various AI engines.

Output Requirements:
1. Identify the top 3-5 competitors mentioned in the search results.
2. For each competitor, estimate a "Visibility Score" (0-100) based on how frequently and positively they appear compared to others.
3. Write a "Gap Analysis" (1 short sentence) explaining why this competitor is performing well or what they are doing that "{brand}" is not (e.g., "Frequently mentioned for pricing," "Cited in top 10 lists," "Stronger technical documentation").
4. Return ONLY a valid JSON array.

Format:
[
  {{
    "name": "Competitor Name",
    "score": 85,
    "gap": "Consistently recommended for enterprise features."
  }},
  ...
]"""

CLARIFICATION = (
    "Your previous answer could not be parsed. Reply with ONLY a JSON array of 3-5 objects, "
    'each with "name" (string), "score" (integer 0-100) and "gap" (one sentence). '
    "No markdown, no commentary."
)


def strip_code_fences(raw: str) -> str:
    """Remove markdown code fences (```json ... ```) around a model answer."""
    cleaned = re.sub(r"```(?:json)?\s*", "", raw).strip()
    cleaned = re.sub(r"```\s*$", "", cleaned).strip()
    return cleaned


def parse_competitor_payload(raw: str) -> list[CompetitorScore]:
    """Parse and validate a gateway answer. Raises CompetitorParseError."""
    cleaned = strip_code_fences(raw or "")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise CompetitorParseError(f"Competitor data is not valid JSON: {e.msg}", raw=raw) from e

    if isinstance(data, dict) and "competitors" in data:
        data = data["competitors"]
    if not isinstance(data, list):
        raise CompetitorParseError("Competitor data must be a JSON array", raw=raw)

    try:
        return CompetitorList.model_validate(data).root
    except ValidationError as e:
        raise CompetitorParseError(f"Competitor data failed validation: {e.errors()[0]['msg']}", raw=raw) from e


def summarize_results(results: list[AnalysisResult]) -> list[dict]:
    return [
        {
            "engine": r.ai_engine,
            "query": r.query,
            "content": (r.full_response or r.context or "")[:CONTENT_LIMIT],
        }
        for r in results
    ]


async def analyze_competitors(
    db: AsyncSession,
    run_id: uuid.UUID,
    caller: Caller,
    gateway: AiGatewayClient | None = None,
) -> dict:
    """Identify competitors for a run and store them on the run row."""
    result = await db.execute(select(AnalysisRun).where(AnalysisRun.run_id == run_id))
    run = result.scalar_one_or_none()
    if not run or (not caller.is_service_role and run.user_id != caller.user_id):
        raise NotFoundError("Analysis run not found")

    rows = await db.execute(
        select(AnalysisResult).where(AnalysisResult.run_id == run_id).order_by(AnalysisResult.query_index)
    )
    analyses = list(rows.scalars().all())
    if not analyses:
        return {"message": "No analyses found for this run"}

    gateway = gateway or AiGatewayClient()
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT.format(brand=run.brand_name, topic=run.topic)},
        {"role": "user", "content": json.dumps(summarize_results(analyses), ensure_ascii=False)},
    ]

    competitors: list[CompetitorScore] | None = None
    for attempt in range(2):
        reply = await gateway.chat(messages, temperature=0.5, json_mode=True)
        GATEWAY_CALLS.labels(feature=FEATURE_NAME, status="ok").inc()
        try:
            competitors = parse_competitor_payload(reply.text)
            break
        except CompetitorParseError as e:
            logger.warning("Run %s: unparseable competitor answer (attempt %d): %s", run_id, attempt + 1, e)
            if attempt == 1:
                raise CompetitorParseError("Failed to parse competitor data from AI", raw=reply.text) from e
            messages = messages + [
                {"role": "assistant", "content": reply.text},
                {"role": "user", "content": CLARIFICATION},
            ]

    data = [c.model_dump() for c in competitors]
    run.competitor_data = data
    await db.flush()
    logger.info("Run %s: stored %d competitors", run_id, len(data))
    return {"success": True, "data": data}
