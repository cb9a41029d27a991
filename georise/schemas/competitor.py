from uuid import UUID

from pydantic import BaseModel, Field, RootModel

from georise.schemas.common import CamelModel


class CompetitorScore(BaseModel):
    name: str = Field(min_length=1)
    score: int = Field(ge=0, le=100)
    gap: str = ""


class CompetitorList(RootModel[list[CompetitorScore]]):
    pass


class CompetitorAnalysisRequest(CamelModel):
    run_id: UUID | None = None
