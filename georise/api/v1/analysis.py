from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.dependencies import Caller, get_caller
from georise.core.exceptions import NotFoundError
from georise.core.rate_limit import limiter
from georise.db.postgres import get_db
from georise.models.analysis_result import AnalysisResult
from georise.models.analysis_run import AnalysisRun
from georise.schemas.analysis import (
    AnalysisResultResponse,
    AnalysisRunRequest,
    AnalysisRunResponse,
    RunStatusResponse,
)
from georise.services.analysis_service import AnalysisOrchestrator

router = APIRouter(prefix="/analysis", tags=["analysis"])


def get_orchestrator(db: AsyncSession = Depends(get_db)) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(db)


async def _get_visible_run(run_id: UUID, caller: Caller, db: AsyncSession) -> AnalysisRun:
    result = await db.execute(select(AnalysisRun).where(AnalysisRun.run_id == run_id))
    run = result.scalar_one_or_none()
    if not run or (not caller.is_service_role and run.user_id != caller.user_id):
        raise NotFoundError("Analysis run not found")
    return run


@router.post("/run", response_model=AnalysisRunResponse)
@limiter.limit("10/minute")
async def run_analysis(
    request: Request,
    body: AnalysisRunRequest,
    caller: Caller = Depends(get_caller),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Run a full analysis synchronously and return the score once every query is done."""
    return await orchestrator.run(body, caller)


@router.get("/runs/{run_id}", response_model=RunStatusResponse)
async def get_run_status(
    run_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Status and progress of a run, for polling while the trigger call is in flight."""
    return await _get_visible_run(run_id, caller, db)


@router.get("/runs/{run_id}/results", response_model=list[AnalysisResultResponse])
async def get_run_results(
    run_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    run = await _get_visible_run(run_id, caller, db)
    result = await db.execute(
        select(AnalysisResult).where(AnalysisResult.run_id == run.run_id).order_by(AnalysisResult.query_index)
    )
    return result.scalars().all()
