"""Session, response and admission models — the contract between the
controller and API callers.

These models are intentionally decoupled from the ORM models in
``survey_db`` so that API consumers never see database internals.
"""

import enum
from datetime import datetime

from pydantic import BaseModel, Field

from survey_engine.models.attention import IssuedAttentionCheck
from survey_engine.models.quality import PatternAnalysis, QualityScore
from survey_engine.models.tree import QuestionPosition


class AdmissionState(str, enum.Enum):
    """States of the admission gate.

    PENDING_IDENTITY_CHECK -> REJECTED_DUPLICATE_IDENTITY
    PENDING_IDENTITY_CHECK -> PENDING_QUOTA -> ADMITTED
    PENDING_IDENTITY_CHECK -> PENDING_QUOTA -> REJECTED_QUOTA_FULL
    """

    PENDING_IDENTITY_CHECK = "pending_identity_check"
    REJECTED_DUPLICATE_IDENTITY = "rejected_duplicate_identity"
    PENDING_QUOTA = "pending_quota"
    ADMITTED = "admitted"
    REJECTED_QUOTA_FULL = "rejected_quota_full"


class AdmissionResult(BaseModel):
    """Outcome of running an identity through the admission gate."""

    participant_id: str
    region: str
    state: AdmissionState
    message: str

    @property
    def available(self) -> bool:
        return self.state == AdmissionState.ADMITTED


class Demographics(BaseModel):
    """Intake answers collected before the first question."""

    age: int | None = Field(None, ge=18, le=100)
    years_in_region: int | None = Field(None, ge=0)
    state: str | None = None


class SessionProgress(BaseModel):
    completed_questions: int
    total_questions: int
    percent_complete: float
    attention_checks_passed: int = 0
    attention_checks_failed: int = 0
    last_attention_check_at: int = 0


class SessionInfo(BaseModel):
    """Public view of a session, mapped from the ORM row."""

    session_id: str
    participant_id: str
    region: str
    status: str
    position: QuestionPosition
    progress: SessionProgress
    started_at: datetime
    completed_at: datetime | None = None
    completion_reason: str | None = None
    total_time_seconds: int | None = None
    total_time_formatted: str | None = None


class CreatedSession(BaseModel):
    """Returned by a successful session creation."""

    session_id: str
    total_questions: int
    started_at: datetime


class CompletionResult(BaseModel):
    session_id: str
    status: str
    completion_reason: str
    total_time_seconds: int
    total_time_formatted: str
    slot_released: bool


class ResponseSubmission(BaseModel):
    """An answer as submitted by the client.

    ``question`` is the text the client displayed; the stored snapshot
    always comes from the catalogue, the client copy is only compared.
    """

    session_id: str
    question_id: str
    position: QuestionPosition
    answer: str
    time_spent: int = Field(0, ge=0)
    question: str | None = None


class ResponseRecord(BaseModel):
    """A stored answer as returned to clients."""

    question_id: str
    position: QuestionPosition
    category: str
    subcategory: str
    topic: str
    question: str
    answer: str
    time_spent: int
    is_attention_check: bool = False
    attention_check_kind: str | None = None
    expected_answer: str | None = None
    quality_score: int | None = None


class SaveResult(BaseModel):
    """Outcome of a single upsert.

    ``attention_check`` is set when this save brought the regular-answer
    count to a multiple of the check interval for the first time.
    """

    question_id: str
    inserted: bool
    completed_questions: int
    quality: QualityScore | None = None
    pattern: PatternAnalysis | None = None
    attention_check: IssuedAttentionCheck | None = None


class BatchSaveResult(BaseModel):
    inserted: int
    updated: int
    completed_questions: int


class TimingSummary(BaseModel):
    """Duration statistics over a group of finished sessions (seconds)."""

    count: int = 0
    average_seconds: int | None = None
    median_seconds: int | None = None
    fastest_seconds: int | None = None
    slowest_seconds: int | None = None
    average_formatted: str | None = None


class TimingStats(BaseModel):
    overall: TimingSummary
    by_reason: dict[str, TimingSummary] = Field(default_factory=dict)
    by_region: dict[str, TimingSummary] = Field(default_factory=dict)
