"""Add attention_check column for server-held attention checks.

Adds a nullable JSONB ``attention_check`` column to ``survey_sessions``
holding the last check issued to the session: its accepted answers, the
answered count it was issued at, and once answered, the verdict.  Check
answers are validated against this row, never against client input.

Revision ID: 20261017_attention_check
Revises: 20261017_initial
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision = "20261017_attention_check"
down_revision = "20261017_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "survey_sessions",
        sa.Column("attention_check", JSONB, nullable=True),
    )


def downgrade() -> None:
    op.drop_column("survey_sessions", "attention_check")
