from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class BrandCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    topic: str = Field(min_length=1, max_length=500)
    competitor_1: str | None = Field(None, max_length=255)
    competitor_2: str | None = Field(None, max_length=255)
    competitor_3: str | None = Field(None, max_length=255)


class BrandUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    topic: str | None = Field(None, min_length=1, max_length=500)
    competitor_1: str | None = Field(None, max_length=255)
    competitor_2: str | None = Field(None, max_length=255)
    competitor_3: str | None = Field(None, max_length=255)


class BrandResponse(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    topic: str
    competitor_1: str | None = None
    competitor_2: str | None = None
    competitor_3: str | None = None
    visibility_score: int
    last_run: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
