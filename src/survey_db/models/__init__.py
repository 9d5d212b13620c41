"""ORM models for survey_db."""

from survey_db.models.base import Base
from survey_db.models.enums import (
    AdmissionStatus,
    CompletionReason,
    Region,
    SessionStatus,
)
from survey_db.models.quota import ParticipantAdmission, RegionQuota
from survey_db.models.response import SurveyResponse
from survey_db.models.session import SurveySession

__all__ = [
    "Base",
    "AdmissionStatus",
    "CompletionReason",
    "Region",
    "SessionStatus",
    "ParticipantAdmission",
    "RegionQuota",
    "SurveyResponse",
    "SurveySession",
]
