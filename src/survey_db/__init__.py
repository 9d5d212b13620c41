"""survey_db — PostgreSQL persistence layer for the cultural survey.

This package provides the ORM models, async engine factory, and the
repositories for sessions, responses, region quotas and admissions.  All
shared counters and idempotent writes are single atomic SQL statements.
"""

from survey_db.engine import get_engine, get_session_factory
from survey_db.models.enums import (
    AdmissionStatus,
    CompletionReason,
    Region,
    SessionStatus,
)
from survey_db.models.quota import ParticipantAdmission, RegionQuota
from survey_db.models.response import SurveyResponse
from survey_db.models.session import SurveySession
from survey_db.repository import (
    AdmissionRepository,
    QuotaRepository,
    ResponseRepository,
    SessionRepository,
)

__all__ = [
    "AdmissionStatus",
    "CompletionReason",
    "Region",
    "SessionStatus",
    "ParticipantAdmission",
    "RegionQuota",
    "SurveyResponse",
    "SurveySession",
    "get_engine",
    "get_session_factory",
    "AdmissionRepository",
    "QuotaRepository",
    "ResponseRepository",
    "SessionRepository",
]
