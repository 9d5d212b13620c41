"""Public model re-exports for survey_engine.

Consumers should import from ``survey_engine.models`` rather than
reaching into sub-modules directly.
"""

# --- Tree ---
from survey_engine.models.tree import (
    Category,
    QuestionContext,
    QuestionPosition,
    Subcategory,
    Topic,
)

# --- Attention checks ---
from survey_engine.models.attention import (
    AttentionCheck,
    AttentionCheckKind,
    AttentionCheckResult,
    AttentionCheckSubmission,
    IssuedAttentionCheck,
    CheckContext,
)

# --- Quotas ---
from survey_engine.models.quota import QuotaStatus

# --- Quality ---
from survey_engine.models.quality import PatternAnalysis, PatternIssue, QualityScore

# --- Session / response ---
from survey_engine.models.session import (
    AdmissionResult,
    AdmissionState,
    BatchSaveResult,
    CompletionResult,
    CreatedSession,
    Demographics,
    ResponseRecord,
    ResponseSubmission,
    SaveResult,
    SessionInfo,
    SessionProgress,
    TimingStats,
    TimingSummary,
)

__all__ = [
    # Tree
    "Category",
    "QuestionContext",
    "QuestionPosition",
    "Subcategory",
    "Topic",
    # Attention checks
    "AttentionCheck",
    "AttentionCheckKind",
    "AttentionCheckResult",
    "AttentionCheckSubmission",
    "IssuedAttentionCheck",
    "CheckContext",
    # Quotas
    "QuotaStatus",
    # Quality
    "PatternAnalysis",
    "PatternIssue",
    "QualityScore",
    # Session / response
    "AdmissionResult",
    "AdmissionState",
    "BatchSaveResult",
    "CompletionResult",
    "CreatedSession",
    "Demographics",
    "ResponseRecord",
    "ResponseSubmission",
    "SaveResult",
    "SessionInfo",
    "SessionProgress",
    "TimingStats",
    "TimingSummary",
]
