import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from georise.db.base import Base


class AnalysisResult(Base):
    """Outcome of one query within a run. Written once, never updated."""

    __tablename__ = "analyses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    brand_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
    )
    run_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    ai_engine: Mapped[str] = mapped_column(String(30), nullable=False)
    query: Mapped[str] = mapped_column(String(2000), nullable=False)
    query_index: Mapped[int | None] = mapped_column(Integer, nullable=True)

    mentioned: Mapped[bool] = mapped_column(Boolean, default=False)
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-4 bucket, null when not mentioned
    context: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    full_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    mention_type: Mapped[str | None] = mapped_column(String(20), nullable=True)  # citation | name_only
    sentiment: Mapped[str | None] = mapped_column(String(20), nullable=True)
    url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    citations: Mapped[list | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)  # per-query upstream failure

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    brand: Mapped["Brand"] = relationship("Brand", back_populates="analyses")  # noqa: F821
