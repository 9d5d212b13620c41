"""SurveySession ORM model — one row per admitted participant.

The participant identity is globally unique: a participant can take the
survey exactly once, ever.  Progress counters live on the row so a
session snapshot is a single-row read.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from survey_db.models.base import Base
from survey_db.models.enums import SessionStatus


class SurveySession(Base):
    """One row per survey session."""

    __tablename__ = "survey_sessions"

    # --- Primary key ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    # Opaque token handed to the client
    session_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    # External participant identity (24 alphanumeric characters)
    participant_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    region: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # --- Intake ---
    # Flat dict: {"age": 34, "years_in_region": 12, "state": "Kerala"}
    demographics: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )

    # --- Lifecycle ---
    status: Mapped[SessionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SessionStatus.ACTIVE,
        index=True,
    )
    completion_reason: Mapped[str | None] = mapped_column(String(30), nullable=True)
    # Flipped exactly once when the region slot goes back to the pool
    slot_released: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false"),
    )

    # --- Position in the question tree ---
    category_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subcategory_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    topic_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    question_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # --- Progress counters ---
    completed_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attention_checks_passed: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    attention_checks_failed: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    # Highest answered-question count at which a check was injected
    last_attention_check_at: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    # Last issued check, keyed by the count above:
    # {"answered_count": 7, "kind": "basic", "question": "...",
    #  "accepted_answers": [...], "passed": null, "response_id": null}
    attention_check: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # --- Timing ---
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    total_time_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_time_formatted: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_active_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "category_index >= 0 AND subcategory_index >= 0 "
            "AND topic_index >= 0 AND question_index >= 0",
            name="ck_position_non_negative",
        ),
        # Finalised sessions must say why
        CheckConstraint(
            "status = 'active' OR status = 'quota_full' OR completion_reason IS NOT NULL",
            name="ck_finalised_has_reason",
        ),
        Index("ix_sessions_last_active", "session_id", "last_active_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SurveySession(session={self.session_id!r}, "
            f"participant={self.participant_id!r}, region={self.region!r}, "
            f"status={self.status!r})>"
        )
