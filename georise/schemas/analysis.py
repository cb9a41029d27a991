"""Analysis run schemas (camelCase on the wire)."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError

from georise.schemas.common import CamelModel


class AnalysisRunRequest(CamelModel):
    """Trigger body. Fields are checked by the orchestrator so missing ones give 400."""

    brand_id: str | None = None
    brand_name: str | None = None
    topic: str | None = None
    user_id: str | None = None


class AnalysisRunResponse(CamelModel):
    success: bool = True
    score: int
    mentions: int
    total_queries: int
    run_id: UUID


class RunStatusResponse(CamelModel):
    run_id: UUID
    brand_id: UUID
    status: str
    progress: int
    queries_completed: int
    total_queries: int
    visibility_score: int | None = None
    total_mentions: int | None = None
    avg_position: float | None = None
    mention_rate: float | None = None
    top_position_count: int | None = None
    citation_count: int | None = None
    competitor_data: list[dict[str, Any]] | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class AnalysisResultResponse(CamelModel):
    id: int
    run_id: UUID
    ai_engine: str
    query: str
    query_index: int | None = None
    mentioned: bool
    position: int | None = None
    context: str | None = None
    mention_type: str | None = None
    sentiment: str | None = None
    url: str | None = None
    citations: list[str] | None = None
    error: str | None = None
    occurred_at: datetime


class InsightResponse(CamelModel):
    id: int
    run_id: UUID | None = None
    type: str
    text: str
    created_at: datetime


# --- Trigger response normalization ---


class TriggerResult(BaseModel):
    """Normalized outcome of a trigger call, whatever envelope the server used."""

    run_id: UUID
    score: int | None = None
    mentions: int | None = None
    total_queries: int | None = None


class TriggerFailedError(ValueError):
    """The trigger payload reports a failure or carries no run id."""


class _TriggerEnvelope(CamelModel):
    success: bool = True
    run_id: UUID | None = None
    score: int | None = None
    mentions: int | None = None
    total_queries: int | None = None
    error: str | None = None
    data: "_TriggerEnvelope | None" = Field(default=None)


_TriggerEnvelope.model_rebuild()


def normalize_trigger_response(payload: dict[str, Any]) -> TriggerResult:
    """Accept both ``{"data": {"runId": ...}}`` and top-level ``{"runId": ...}``."""
    try:
        envelope = _TriggerEnvelope.model_validate(payload)
    except ValidationError as e:
        raise TriggerFailedError(f"Malformed trigger response: {e.errors()[0]['msg']}") from e

    if envelope.error or not envelope.success:
        raise TriggerFailedError(envelope.error or "Analysis trigger reported failure")

    source = envelope.data if envelope.data is not None and envelope.data.run_id else envelope
    if source.run_id is None:
        raise TriggerFailedError("Trigger response carries no runId")

    return TriggerResult(
        run_id=source.run_id,
        score=source.score,
        mentions=source.mentions,
        total_queries=source.total_queries,
    )
