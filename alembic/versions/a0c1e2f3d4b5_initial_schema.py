"""initial schema: users, brands, analysis runs, results, insights, credits, coach

Revision ID: a0c1e2f3d4b5
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "a0c1e2f3d4b5"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # =========================================================
    # 1. Users
    # =========================================================
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.String(1000), nullable=True),
        sa.Column("plan", sa.String(20), nullable=False, server_default="free"),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
    )

    # =========================================================
    # 2. Brands (score cache + per-brand run lock)
    # =========================================================
    op.create_table(
        "brands",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("topic", sa.String(500), nullable=False),
        sa.Column("competitor_1", sa.String(255), nullable=True),
        sa.Column("competitor_2", sa.String(255), nullable=True),
        sa.Column("competitor_3", sa.String(255), nullable=True),
        sa.Column("visibility_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("analysis_locked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # =========================================================
    # 3. Analysis runs and per-query results
    # =========================================================
    op.create_table(
        "analysis_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("run_id", UUID(as_uuid=True), nullable=False, unique=True, index=True),
        sa.Column(
            "brand_id", UUID(as_uuid=True), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("brand_name", sa.String(255), nullable=False),
        sa.Column("topic", sa.String(500), nullable=False),
        sa.Column("ai_engine", sa.String(30), nullable=False, server_default="perplexity"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("total_queries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("queries_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("visibility_score", sa.Integer(), nullable=True),
        sa.Column("total_mentions", sa.Integer(), nullable=True),
        sa.Column("avg_position", sa.Float(), nullable=True),
        sa.Column("mention_rate", sa.Float(), nullable=True),
        sa.Column("top_position_count", sa.Integer(), nullable=True),
        sa.Column("citation_count", sa.Integer(), nullable=True),
        sa.Column("competitor_data", JSONB(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')", name="ck_analysis_runs_status"
        ),
    )

    op.create_table(
        "analyses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "brand_id", UUID(as_uuid=True), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("run_id", UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("ai_engine", sa.String(30), nullable=False),
        sa.Column("query", sa.String(2000), nullable=False),
        sa.Column("query_index", sa.Integer(), nullable=True),
        sa.Column("mentioned", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("context", sa.String(1000), nullable=True),
        sa.Column("full_response", sa.Text(), nullable=True),
        sa.Column("mention_type", sa.String(20), nullable=True),
        sa.Column("sentiment", sa.String(20), nullable=True),
        sa.Column("url", sa.String(2000), nullable=True),
        sa.Column("citations", JSONB(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # =========================================================
    # 4. Insights
    # =========================================================
    op.create_table(
        "insights",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "brand_id", UUID(as_uuid=True), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("run_id", UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("type", sa.String(30), nullable=False, server_default="quick_win"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # =========================================================
    # 5. AI credit ledger
    # =========================================================
    op.create_table(
        "ai_credit_settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_int", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
    )
    op.bulk_insert(
        sa.table(
            "ai_credit_settings",
            sa.column("key", sa.String),
            sa.column("value_int", sa.Integer),
            sa.column("description", sa.String),
        ),
        [
            {"key": "tokens_per_credit", "value_int": 200, "description": "LLM tokens that make up one credit"},
            {"key": "credits_free_per_month", "value_int": 0, "description": "Monthly credits for the free plan"},
            {"key": "credits_pro_per_month", "value_int": 1500, "description": "Monthly credits for pro plans"},
            {
                "key": "credits_business_per_month",
                "value_int": 5000,
                "description": "Monthly credits for business plans",
            },
        ],
    )

    op.create_table(
        "ai_allowance_periods",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("tokens_granted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tokens_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source", sa.String(30), nullable=True),
        sa.Column("metadata", JSONB(), nullable=False, server_default="{}"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "period_start", name="uq_allowance_user_period"),
    )

    op.create_table(
        "llm_usage_events",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("idempotency_key", sa.String(255), nullable=False, unique=True),
        sa.Column("feature", sa.String(50), nullable=True),
        sa.Column("model", sa.String(100), nullable=True),
        sa.Column("provider", sa.String(50), nullable=True),
        sa.Column("prompt_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completion_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("credits_charged", sa.Float(), nullable=False, server_default="0"),
        sa.Column("metadata", JSONB(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # =========================================================
    # 6. Chat coach history
    # =========================================================
    op.create_table(
        "coach_conversations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column(
            "brand_id", UUID(as_uuid=True), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_coach_conversations_user_created", "coach_conversations", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_coach_conversations_user_created", table_name="coach_conversations")
    op.drop_table("coach_conversations")
    op.drop_table("llm_usage_events")
    op.drop_table("ai_allowance_periods")
    op.drop_table("ai_credit_settings")
    op.drop_table("insights")
    op.drop_table("analyses")
    op.drop_table("analysis_runs")
    op.drop_table("brands")
    op.drop_table("users")
