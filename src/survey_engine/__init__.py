"""survey_engine — cultural-knowledge survey SDK.

Public API:
    SessionController       — orchestrates admission, answers, checks and completion
    QuestionTree            — loads the question catalogue with positional lookup
    ProgressCursor          — next / previous / resume over tree positions
    RegionQuotaManager      — atomic per-region reservation and the admission gate
    AttentionCheckScheduler — check cadence, generation and answer validation
    SurveyForm              — participant-side flow as an explicit state machine

Quality scoring:
    ResponseQualityPolicy    — ABC for answer-quality scoring
    HeuristicQualityAnalyzer — default regex/counting implementation

Errors:
    SurveyError and its subclasses ValidationError, ConflictError,
    DuplicateIdentityError, QuotaFullError, NotFoundError,
    InvalidTransitionError, TransientStoreError
"""

from survey_engine.attention import AttentionCheckScheduler
from survey_engine.controller import SessionController, format_duration
from survey_engine.cursor import ProgressCursor, estimate_time_remaining
from survey_engine.errors import (
    ConflictError,
    DuplicateIdentityError,
    InvalidTransitionError,
    NotFoundError,
    QuotaFullError,
    SurveyError,
    TransientStoreError,
    ValidationError,
)
from survey_engine.form import FormMode, SurveyForm
from survey_engine.interfaces import ResponseQualityPolicy
from survey_engine.models.session import AdmissionResult, AdmissionState, SessionInfo
from survey_engine.models.tree import QuestionPosition
from survey_engine.quality import HeuristicQualityAnalyzer
from survey_engine.quota import RegionQuotaManager
from survey_engine.tree import QuestionTree

__all__ = [
    # Orchestration
    "SessionController",
    "SurveyForm",
    "FormMode",
    # Catalogue & navigation
    "QuestionTree",
    "QuestionPosition",
    "ProgressCursor",
    "estimate_time_remaining",
    # Quotas
    "RegionQuotaManager",
    "AdmissionResult",
    "AdmissionState",
    # Attention / quality
    "AttentionCheckScheduler",
    "ResponseQualityPolicy",
    "HeuristicQualityAnalyzer",
    # Session view
    "SessionInfo",
    "format_duration",
    # Errors
    "SurveyError",
    "ValidationError",
    "ConflictError",
    "DuplicateIdentityError",
    "QuotaFullError",
    "NotFoundError",
    "InvalidTransitionError",
    "TransientStoreError",
]
