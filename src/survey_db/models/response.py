"""SurveyResponse ORM model — one row per (session, question_id).

Position indices are duplicated from the question id so responses can be
sorted in tree order without parsing strings.  The text columns are a
snapshot taken at write time, which makes catalogue drift detectable.
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
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from survey_db.models.base import Base


class SurveyResponse(Base):
    """A single stored answer."""

    __tablename__ = "survey_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    session_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    # Tree id "c-s-t-q" or ATTENTION_CHECK_{count}_{c-s-t-q}
    question_id: Mapped[str] = mapped_column(Text, nullable=False)

    category_index: Mapped[int] = mapped_column(Integer, nullable=False)
    subcategory_index: Mapped[int] = mapped_column(Integer, nullable=False)
    topic_index: Mapped[int] = mapped_column(Integer, nullable=False)
    question_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # --- Text snapshot ---
    category: Mapped[str] = mapped_column(Text, nullable=False)
    subcategory: Mapped[str] = mapped_column(Text, nullable=False)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)

    answer: Mapped[str] = mapped_column(Text, nullable=False)
    time_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quality_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # --- Attention checks ---
    is_attention_check: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True,
    )
    attention_check_kind: Mapped[str | None] = mapped_column(String(20), nullable=True)
    expected_answer: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        # Upsert key: a question is answered at most once per session
        UniqueConstraint("session_id", "question_id", name="uq_session_question"),
        CheckConstraint(
            "char_length(answer) BETWEEN 1 AND 5000 "
            "AND (is_attention_check OR char_length(answer) >= 4)",
            name="ck_answer_length",
        ),
        CheckConstraint("time_spent >= 0", name="ck_time_spent_non_negative"),
        # Tree-order reads for GET /responses/{session_id}
        Index(
            "ix_responses_position",
            "session_id",
            "category_index",
            "subcategory_index",
            "topic_index",
            "question_index",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<SurveyResponse(session={self.session_id!r}, "
            f"question_id={self.question_id!r})>"
        )
