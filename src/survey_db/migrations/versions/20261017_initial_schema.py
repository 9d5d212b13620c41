"""Create survey_sessions, survey_responses, region_quotas, participant_admissions.

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261017_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- Sessions ---
    op.create_table(
        "survey_sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.Text, nullable=False, unique=True),
        sa.Column("participant_id", sa.Text, nullable=False, unique=True),
        sa.Column("region", sa.String(20), nullable=False),
        sa.Column(
            "demographics",
            JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'active'"),
        ),
        sa.Column("completion_reason", sa.String(30), nullable=True),
        sa.Column(
            "slot_released",
            sa.Boolean,
            nullable=False,
            server_default=sa.text("false"),
        ),
        # Position
        sa.Column("category_index", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("subcategory_index", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("topic_index", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("question_index", sa.Integer, nullable=False, server_default=sa.text("0")),
        # Progress counters
        sa.Column("completed_questions", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("total_questions", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("attention_checks_passed", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("attention_checks_failed", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("last_attention_check_at", sa.Integer, nullable=False, server_default=sa.text("0")),
        # Timing
        sa.Column("started_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
        sa.Column("total_time_seconds", sa.Integer, nullable=True),
        sa.Column("total_time_formatted", sa.Text, nullable=True),
        sa.Column("last_active_at", TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint(
            "category_index >= 0 AND subcategory_index >= 0 "
            "AND topic_index >= 0 AND question_index >= 0",
            name="ck_position_non_negative",
        ),
        sa.CheckConstraint(
            "status = 'active' OR status = 'quota_full' OR completion_reason IS NOT NULL",
            name="ck_finalised_has_reason",
        ),
    )
    op.create_index("ix_survey_sessions_region", "survey_sessions", ["region"])
    op.create_index("ix_survey_sessions_status", "survey_sessions", ["status"])
    op.create_index(
        "ix_sessions_last_active", "survey_sessions", ["session_id", "last_active_at"]
    )

    # --- Responses ---
    op.create_table(
        "survey_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.Text, nullable=False),
        sa.Column("question_id", sa.Text, nullable=False),
        sa.Column("category_index", sa.Integer, nullable=False),
        sa.Column("subcategory_index", sa.Integer, nullable=False),
        sa.Column("topic_index", sa.Integer, nullable=False),
        sa.Column("question_index", sa.Integer, nullable=False),
        sa.Column("category", sa.Text, nullable=False),
        sa.Column("subcategory", sa.Text, nullable=False),
        sa.Column("topic", sa.Text, nullable=False),
        sa.Column("question", sa.Text, nullable=False),
        sa.Column("answer", sa.Text, nullable=False),
        sa.Column("time_spent", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("quality_score", sa.Integer, nullable=True),
        sa.Column(
            "is_attention_check",
            sa.Boolean,
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("attention_check_kind", sa.String(20), nullable=True),
        sa.Column("expected_answer", sa.Text, nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("session_id", "question_id", name="uq_session_question"),
        sa.CheckConstraint(
            "char_length(answer) BETWEEN 1 AND 5000 "
            "AND (is_attention_check OR char_length(answer) >= 4)",
            name="ck_answer_length",
        ),
        sa.CheckConstraint("time_spent >= 0", name="ck_time_spent_non_negative"),
    )
    op.create_index("ix_survey_responses_session_id", "survey_responses", ["session_id"])
    op.create_index(
        "ix_survey_responses_is_attention_check",
        "survey_responses",
        ["is_attention_check"],
    )
    op.create_index(
        "ix_responses_position",
        "survey_responses",
        [
            "session_id",
            "category_index",
            "subcategory_index",
            "topic_index",
            "question_index",
        ],
    )

    # --- Region quotas ---
    op.create_table(
        "region_quotas",
        sa.Column("region", sa.String(20), primary_key=True),
        sa.Column("current_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("max_quota", sa.Integer, nullable=False),
        sa.Column("last_updated", TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint(
            "current_count >= 0 AND current_count <= max_quota",
            name="ck_count_within_quota",
        ),
        sa.CheckConstraint("max_quota >= 0", name="ck_max_quota_non_negative"),
    )

    # --- Admissions ---
    op.create_table(
        "participant_admissions",
        sa.Column("participant_id", sa.Text, primary_key=True),
        sa.Column("region", sa.String(20), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("session_id", sa.Text, nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("participant_admissions")
    op.drop_table("region_quotas")
    op.drop_table("survey_responses")
    op.drop_table("survey_sessions")
