from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from georise.schemas.common import CamelModel


class CoachMessageRequest(CamelModel):
    message: str = Field(min_length=1, max_length=4000)
    brand_id: UUID


class CoachReply(BaseModel):
    reply: str


class CoachMessageResponse(CamelModel):
    id: int
    role: str
    message: str
    created_at: datetime
