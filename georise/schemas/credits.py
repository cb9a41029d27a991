from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class AllowanceRequest(BaseModel):
    user_id: UUID | None = None
    batch_init: bool = False


class AllowancePeriodResponse(BaseModel):
    id: UUID
    user_id: UUID
    tokens_granted: int
    tokens_used: int
    period_start: datetime
    period_end: datetime
    source: str | None = None
    metadata: dict = Field(default_factory=dict, validation_alias=AliasChoices("metadata_", "metadata"))
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AllowanceEnvelope(BaseModel):
    period: AllowancePeriodResponse


class BatchInitResponse(BaseModel):
    initialized: int
    skipped: int
    errors: list[str]


class CreditsSummary(BaseModel):
    id: UUID | None = None
    tokens_granted: int = 0
    tokens_used: int = 0
    remaining_tokens: int = 0
    credits_granted: float = 0
    credits_used: float = 0
    remaining_credits: float = 0
    period_start: datetime | None = None
    period_end: datetime | None = None
    source: str | None = None
    rollover_tokens: int = 0
    base_tokens: int = 0
    plan_base_credits: int = 0
    tokens_per_credit: int = 200


class CreditSettingsPayload(BaseModel):
    tokens_per_credit: int = Field(200, gt=0)
    credits_free_per_month: int = Field(0, ge=0)
    credits_pro_per_month: int = Field(1500, ge=0)
    credits_business_per_month: int = Field(5000, ge=0)


class AllowanceAdjustRequest(BaseModel):
    tokens_granted: int | None = Field(None, ge=0)
    tokens_used: int | None = Field(None, ge=0)
