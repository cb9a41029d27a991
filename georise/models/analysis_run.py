import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from georise.db.base import Base

TERMINAL_STATUSES = ("completed", "failed")


class AnalysisRun(Base):
    """One invocation of the analysis pipeline for a brand."""

    __tablename__ = "analysis_runs"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'processing', 'completed', 'failed')", name="ck_analysis_runs_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False, index=True)
    brand_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    brand_name: Mapped[str] = mapped_column(String(255), nullable=False)
    topic: Mapped[str] = mapped_column(String(500), nullable=False)
    ai_engine: Mapped[str] = mapped_column(String(30), default="perplexity")

    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending | processing | completed | failed
    total_queries: Mapped[int] = mapped_column(Integer, default=0)
    queries_completed: Mapped[int] = mapped_column(Integer, default=0)
    progress: Mapped[int] = mapped_column(Integer, default=0)  # 0-100

    # Aggregates (set on completion)
    visibility_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_mentions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    avg_position: Mapped[float | None] = mapped_column(Float, nullable=True)
    mention_rate: Mapped[float | None] = mapped_column(Float, nullable=True)  # percent, 0-100
    top_position_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    citation_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    competitor_data: Mapped[list | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    brand: Mapped["Brand"] = relationship("Brand", back_populates="runs")  # noqa: F821
