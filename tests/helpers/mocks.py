"""In-memory stand-ins for the survey_db repositories.

Each mock mirrors the async interface of the real repository so the SDK
can be exercised end-to-end without PostgreSQL.  Conditional updates are
compare-and-set on plain attributes; because nothing awaits between the
compare and the set, they are atomic with respect to other coroutines,
just like the single-statement SQL they replace.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from survey_db.models.enums import AdmissionStatus, SessionStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =====================================================================
# Rows
# =====================================================================


@dataclass
class MockSessionRow:
    """Mimics a SurveySession ORM row for testing."""

    session_id: str
    participant_id: str
    region: str
    demographics: dict = field(default_factory=dict)
    status: str = SessionStatus.ACTIVE.value
    completion_reason: str | None = None
    slot_released: bool = False
    category_index: int = 0
    subcategory_index: int = 0
    topic_index: int = 0
    question_index: int = 0
    completed_questions: int = 0
    total_questions: int = 0
    attention_checks_passed: int = 0
    attention_checks_failed: int = 0
    last_attention_check_at: int = 0
    attention_check: dict | None = None
    started_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None
    total_time_seconds: int | None = None
    total_time_formatted: str | None = None
    last_active_at: datetime = field(default_factory=_now)


@dataclass
class MockResponseRow:
    """Mimics a SurveyResponse ORM row."""

    session_id: str
    question_id: str
    category_index: int
    subcategory_index: int
    topic_index: int
    question_index: int
    category: str
    subcategory: str
    topic: str
    question: str
    answer: str
    time_spent: int = 0
    quality_score: int | None = None
    is_attention_check: bool = False
    attention_check_kind: str | None = None
    expected_answer: str | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


@dataclass
class MockQuotaRow:
    region: str
    max_quota: int
    current_count: int = 0
    last_updated: datetime = field(default_factory=_now)


@dataclass
class MockAdmissionRow:
    participant_id: str
    region: str
    status: str
    reason: str | None = None
    session_id: str | None = None
    created_at: datetime = field(default_factory=_now)


# =====================================================================
# Repositories
# =====================================================================


class MockSessionRepository:
    """In-memory session store keyed by session_id."""

    def __init__(self):
        self.sessions: dict[str, MockSessionRow] = {}

    async def create_session(
        self, db, *, session_id, participant_id, region, demographics,
        total_questions,
    ):
        if any(s.participant_id == participant_id for s in self.sessions.values()):
            raise IntegrityError(
                "INSERT INTO survey_sessions", {}, Exception("uq participant_id")
            )
        row = MockSessionRow(
            session_id=session_id,
            participant_id=participant_id,
            region=region,
            demographics=demographics,
            total_questions=total_questions,
        )
        self.sessions[session_id] = row
        return row

    async def get_by_session_id(self, db, session_id):
        return self.sessions.get(session_id)

    async def get_by_participant(self, db, participant_id):
        for row in self.sessions.values():
            if row.participant_id == participant_id:
                return row
        return None

    async def list_finished(self, db):
        rows = [
            r for r in self.sessions.values()
            if r.completed_at is not None and r.total_time_seconds is not None
        ]
        return sorted(rows, key=lambda r: r.completed_at)

    async def update_position(self, db, session, position):
        (
            session.category_index,
            session.subcategory_index,
            session.topic_index,
            session.question_index,
        ) = position
        session.last_active_at = _now()
        return session

    async def set_progress_counts(
        self, db, session, *, completed_questions, total_questions,
    ):
        session.completed_questions = completed_questions
        session.total_questions = total_questions
        return session

    async def issue_attention_check(self, db, session, count, check):
        if session.last_attention_check_at >= count:
            return False
        session.last_attention_check_at = count
        session.attention_check = {
            **check, "answered_count": count, "passed": None, "response_id": None,
        }
        return True

    async def resolve_attention_check(self, db, session, *, passed, response_id):
        record = session.attention_check or {}
        if (
            record.get("answered_count") != session.last_attention_check_at
            or record.get("passed") is not None
        ):
            return False
        session.attention_check = {**record, "passed": passed, "response_id": response_id}
        if passed:
            session.attention_checks_passed += 1
        else:
            session.attention_checks_failed += 1
        return True

    async def finalize_session(
        self, db, session, *, status, reason, completed_at, total_seconds,
        total_formatted,
    ):
        session.status = SessionStatus(status).value
        session.completion_reason = reason
        session.completed_at = completed_at
        session.total_time_seconds = total_seconds
        session.total_time_formatted = total_formatted
        return session

    async def claim_slot_release(self, db, session):
        if session.slot_released:
            return False
        session.slot_released = True
        return True


class MockResponseRepository:
    """In-memory response store keyed by (session_id, question_id)."""

    def __init__(self):
        self.rows: dict[tuple[str, str], MockResponseRow] = {}

    async def upsert(self, db, values):
        key = (values["session_id"], values["question_id"])
        existing = self.rows.get(key)
        if existing is None:
            row = MockResponseRow(**values)
            self.rows[key] = row
            return row.id, True
        for name, value in values.items():
            setattr(existing, name, value)
        existing.updated_at = _now()
        return existing.id, False

    async def get(self, db, session_id, question_id):
        return self.rows.get((session_id, question_id))

    async def list_for_session(self, db, session_id):
        rows = [r for (sid, _), r in self.rows.items() if sid == session_id]
        return sorted(
            rows,
            key=lambda r: (
                r.category_index, r.subcategory_index, r.topic_index,
                r.question_index, r.is_attention_check, r.question_id,
            ),
        )

    async def count_actual(self, db, session_id):
        return sum(
            1 for (sid, _), r in self.rows.items()
            if sid == session_id and not r.is_attention_check
        )


class MockQuotaRepository:
    """In-memory region counters with conditional increment/decrement."""

    def __init__(self):
        self.quotas: dict[str, MockQuotaRow] = {}

    async def upsert_limits(self, db, limits):
        for region, max_quota in limits.items():
            row = self.quotas.get(region)
            if row is None:
                self.quotas[region] = MockQuotaRow(region=region, max_quota=max_quota)
            else:
                row.max_quota = max(max_quota, row.current_count)
                row.last_updated = _now()

    async def get(self, db, region):
        return self.quotas.get(region)

    async def list_all(self, db):
        return [self.quotas[r] for r in sorted(self.quotas)]

    async def try_increment(self, db, region):
        # Yield first so concurrent reservations interleave.
        await asyncio.sleep(0)
        row = self.quotas.get(region)
        if row is None or row.current_count >= row.max_quota:
            return False
        row.current_count += 1
        return True

    async def try_decrement(self, db, region):
        await asyncio.sleep(0)
        row = self.quotas.get(region)
        if row is None or row.current_count <= 0:
            return False
        row.current_count -= 1
        return True


class MockAdmissionRepository:
    """In-memory admission outcomes keyed by participant identity."""

    def __init__(self):
        self.admissions: dict[str, MockAdmissionRow] = {}

    async def get(self, db, participant_id):
        return self.admissions.get(participant_id)

    async def record(self, db, *, participant_id, region, status, reason=None):
        if participant_id in self.admissions:
            return False
        self.admissions[participant_id] = MockAdmissionRow(
            participant_id=participant_id,
            region=region,
            status=AdmissionStatus(status).value,
            reason=reason,
        )
        return True

    async def attach_session(self, db, participant_id, session_id):
        row = self.admissions.get(participant_id)
        if (
            row is None
            or row.status != AdmissionStatus.ADMITTED.value
            or row.session_id is not None
        ):
            return False
        row.session_id = session_id
        return True


@dataclass
class MockStore:
    """All four mock repositories, shared by a quota manager and controller."""

    sessions: MockSessionRepository = field(default_factory=MockSessionRepository)
    responses: MockResponseRepository = field(default_factory=MockResponseRepository)
    quotas: MockQuotaRepository = field(default_factory=MockQuotaRepository)
    admissions: MockAdmissionRepository = field(default_factory=MockAdmissionRepository)


def wire_quota_manager(manager, store: MockStore):
    """Point a RegionQuotaManager at the mock repositories."""
    manager._quota_repo = store.quotas
    manager._admission_repo = store.admissions
    manager._session_repo = store.sessions
    return manager


def wire_controller(controller, store: MockStore):
    """Point a SessionController (and its quota manager) at the mocks."""
    controller._repo = store.sessions
    controller._response_repo = store.responses
    wire_quota_manager(controller.quotas, store)
    return controller


def participant_id(n: int) -> str:
    """A valid 24-character alphanumeric identity derived from ``n``."""
    return f"P{n:023d}"
