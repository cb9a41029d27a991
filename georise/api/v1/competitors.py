import logging

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.dependencies import Caller, get_caller
from georise.core.exceptions import (
    AppError,
    BadRequestError,
    CompetitorParseError,
    GatewayError,
    MissingCredentialError,
    UpstreamError,
)
from georise.db.postgres import get_db
from georise.schemas.competitor import CompetitorAnalysisRequest
from georise.services.competitor_analysis import analyze_competitors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["competitors"])


@router.post("/competitors")
async def run_competitor_analysis(
    body: CompetitorAnalysisRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Identify the top competitors of a completed run.

    Returns ``{success, data}``, or ``{message}`` when the run has no results.
    """
    if body.run_id is None:
        raise BadRequestError("runId is required")

    try:
        return await analyze_competitors(db, body.run_id, caller)
    except (MissingCredentialError, CompetitorParseError) as e:
        logger.error("Competitor analysis for run %s failed: %s", body.run_id, e)
        raise AppError(str(e))
    except GatewayError as e:
        raise UpstreamError(f"AI API error: {e.status_code}")
    except httpx.HTTPError as e:
        logger.error("AI gateway unreachable: %s: %s", type(e).__name__, e)
        raise UpstreamError("AI gateway unavailable")
