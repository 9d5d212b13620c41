"""Async repositories for sessions, responses, region quotas and admissions.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries; they ``flush()`` but never ``commit()``.

Anything that can race between two requests is a single conditional SQL
statement (``UPDATE ... WHERE ... RETURNING`` or ``INSERT ... ON CONFLICT``).
There is no read-then-write on shared counters anywhere in this module.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, literal_column, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.models.enums import AdmissionStatus, SessionStatus
from survey_db.models.quota import ParticipantAdmission, RegionQuota
from survey_db.models.response import SurveyResponse
from survey_db.models.session import SurveySession

# Columns overwritten when a (session_id, question_id) pair is saved again.
_RESPONSE_UPDATE_COLUMNS = (
    "category_index",
    "subcategory_index",
    "topic_index",
    "question_index",
    "category",
    "subcategory",
    "topic",
    "question",
    "answer",
    "time_spent",
    "quality_score",
    "is_attention_check",
    "attention_check_kind",
    "expected_answer",
)


class SessionRepository:
    """Async read/write operations on the ``survey_sessions`` table."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_session(
        self,
        db: AsyncSession,
        *,
        session_id: str,
        participant_id: str,
        region: str,
        demographics: dict[str, Any],
        total_questions: int,
    ) -> SurveySession:
        """Insert a new active session row and return it.

        The unique constraint on ``participant_id`` is the authoritative
        one-session-per-identity guard.  The caller must commit.
        """
        session = SurveySession(
            session_id=session_id,
            participant_id=participant_id,
            region=region,
            demographics=demographics,
            total_questions=total_questions,
            status=SessionStatus.ACTIVE,
        )
        db.add(session)
        await db.flush()
        return session

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_session_id(
        self, db: AsyncSession, session_id: str
    ) -> SurveySession | None:
        """Fetch a session by its public token."""
        stmt = select(SurveySession).where(SurveySession.session_id == session_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_participant(
        self, db: AsyncSession, participant_id: str
    ) -> SurveySession | None:
        """Fetch the (single) session owned by a participant identity."""
        stmt = select(SurveySession).where(
            SurveySession.participant_id == participant_id
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_finished(self, db: AsyncSession) -> list[SurveySession]:
        """Return finalised sessions that carry a measured duration."""
        stmt = (
            select(SurveySession)
            .where(
                SurveySession.completed_at.is_not(None),
                SurveySession.total_time_seconds.is_not(None),
            )
            .order_by(SurveySession.completed_at.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Update: progress
    # ------------------------------------------------------------------

    async def update_position(
        self,
        db: AsyncSession,
        session: SurveySession,
        position: tuple[int, int, int, int],
    ) -> SurveySession:
        """Overwrite the saved cursor.  Idempotent by construction."""
        (
            session.category_index,
            session.subcategory_index,
            session.topic_index,
            session.question_index,
        ) = position
        session.last_active_at = datetime.now(timezone.utc)
        await db.flush()
        return session

    async def set_progress_counts(
        self,
        db: AsyncSession,
        session: SurveySession,
        *,
        completed_questions: int,
        total_questions: int,
    ) -> SurveySession:
        """Store recomputed progress counters (never incremented blindly)."""
        session.completed_questions = completed_questions
        session.total_questions = total_questions
        session.last_active_at = datetime.now(timezone.utc)
        await db.flush()
        return session

    async def issue_attention_check(
        self,
        db: AsyncSession,
        session: SurveySession,
        count: int,
        check: dict[str, Any],
    ) -> bool:
        """Move the watermark forward to ``count`` and store the issued check.

        Conditional on the stored watermark being lower, so two racing
        submissions cannot both issue a check at the same count.
        Returns True iff this call issued the check.
        """
        record = {**check, "answered_count": count, "passed": None, "response_id": None}
        stmt = (
            update(SurveySession)
            .where(
                SurveySession.session_id == session.session_id,
                SurveySession.last_attention_check_at < count,
            )
            .values(last_attention_check_at=count, attention_check=record)
            .returning(SurveySession.last_attention_check_at)
        )
        result = await db.execute(stmt)
        issued = result.scalar_one_or_none() is not None
        if issued:
            session.last_attention_check_at = count
            session.attention_check = record
        return issued

    async def resolve_attention_check(
        self,
        db: AsyncSession,
        session: SurveySession,
        *,
        passed: bool,
        response_id: str,
    ) -> bool:
        """Store the verdict on the pending check and bump one counter.

        Applies only while the check at the current watermark is still
        unanswered, so a replayed submission never counts twice.
        Returns True iff this call recorded the verdict.
        """
        record = {**(session.attention_check or {}), "passed": passed, "response_id": response_id}
        column = (
            SurveySession.attention_checks_passed
            if passed
            else SurveySession.attention_checks_failed
        )
        stmt = (
            update(SurveySession)
            .where(
                SurveySession.session_id == session.session_id,
                SurveySession.last_attention_check_at == record.get("answered_count"),
                SurveySession.attention_check["passed"].astext.is_(None),
            )
            .values({column: column + 1, SurveySession.attention_check: record})
            .returning(
                SurveySession.attention_checks_passed,
                SurveySession.attention_checks_failed,
            )
        )
        result = await db.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return False
        session.attention_checks_passed = row[0]
        session.attention_checks_failed = row[1]
        session.attention_check = record
        return True

    # ------------------------------------------------------------------
    # Update: terminal states
    # ------------------------------------------------------------------

    async def finalize_session(
        self,
        db: AsyncSession,
        session: SurveySession,
        *,
        status: SessionStatus,
        reason: str,
        completed_at: datetime,
        total_seconds: int,
        total_formatted: str,
    ) -> SurveySession:
        """Write the terminal status and timing fields."""
        session.status = status
        session.completion_reason = reason
        session.completed_at = completed_at
        session.total_time_seconds = total_seconds
        session.total_time_formatted = total_formatted
        session.last_active_at = completed_at
        await db.flush()
        return session

    async def claim_slot_release(
        self, db: AsyncSession, session: SurveySession
    ) -> bool:
        """Flip ``slot_released`` from false to true.

        Returns True for exactly one caller per session, which is then
        responsible for decrementing the region counter.
        """
        stmt = (
            update(SurveySession)
            .where(
                SurveySession.session_id == session.session_id,
                SurveySession.slot_released.is_(False),
            )
            .values(slot_released=True)
            .returning(SurveySession.session_id)
        )
        result = await db.execute(stmt)
        claimed = result.scalar_one_or_none() is not None
        if claimed:
            session.slot_released = True
        return claimed


class ResponseRepository:
    """Async read/write operations on the ``survey_responses`` table."""

    async def upsert(
        self, db: AsyncSession, values: dict[str, Any]
    ) -> tuple[uuid.UUID, bool]:
        """Insert or overwrite the row keyed by (session_id, question_id).

        Returns ``(row_id, inserted)``.  ``inserted`` is derived from
        PostgreSQL's ``xmax`` system column, which is zero only for rows
        created by this statement.
        """
        stmt = pg_insert(SurveyResponse).values(**values)
        set_ = {col: stmt.excluded[col] for col in _RESPONSE_UPDATE_COLUMNS}
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            constraint="uq_session_question",
            set_=set_,
        ).returning(
            SurveyResponse.id,
            literal_column("(xmax = 0)").label("inserted"),
        )
        result = await db.execute(stmt)
        row = result.one()
        return row[0], bool(row[1])

    async def get(
        self, db: AsyncSession, session_id: str, question_id: str
    ) -> SurveyResponse | None:
        stmt = select(SurveyResponse).where(
            SurveyResponse.session_id == session_id,
            SurveyResponse.question_id == question_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_session(
        self, db: AsyncSession, session_id: str
    ) -> list[SurveyResponse]:
        """All responses of a session in tree order (checks sort last at a tie)."""
        stmt = (
            select(SurveyResponse)
            .where(SurveyResponse.session_id == session_id)
            .order_by(
                SurveyResponse.category_index,
                SurveyResponse.subcategory_index,
                SurveyResponse.topic_index,
                SurveyResponse.question_index,
                SurveyResponse.is_attention_check,
                SurveyResponse.question_id,
            )
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def count_actual(self, db: AsyncSession, session_id: str) -> int:
        """Number of stored answers to real tree questions."""
        stmt = select(func.count()).where(
            SurveyResponse.session_id == session_id,
            SurveyResponse.is_attention_check.is_(False),
        )
        result = await db.execute(stmt)
        return int(result.scalar_one())


class QuotaRepository:
    """Atomic counter operations on the ``region_quotas`` table."""

    async def upsert_limits(
        self, db: AsyncSession, limits: dict[str, int]
    ) -> None:
        """Create missing rows at zero and refresh ``max_quota`` on existing ones.

        ``current_count`` is never written for an existing row, so a
        redeploy does not reset a live quota.  A lowered limit is clamped
        to the live count to keep the table constraint satisfied.
        """
        if not limits:
            return
        now = datetime.now(timezone.utc)
        stmt = pg_insert(RegionQuota).values(
            [
                {
                    "region": region,
                    "current_count": 0,
                    "max_quota": max_quota,
                    "last_updated": now,
                }
                for region, max_quota in limits.items()
            ]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[RegionQuota.region],
            set_={
                "max_quota": func.greatest(
                    stmt.excluded.max_quota, RegionQuota.current_count
                ),
                "last_updated": stmt.excluded.last_updated,
            },
        )
        await db.execute(stmt)
        await db.flush()

    async def get(self, db: AsyncSession, region: str) -> RegionQuota | None:
        """Read one quota row (advisory; may be stale by the time it is used)."""
        return await db.get(RegionQuota, region, populate_existing=True)

    async def list_all(self, db: AsyncSession) -> list[RegionQuota]:
        """All quota rows ordered by region."""
        result = await db.execute(select(RegionQuota).order_by(RegionQuota.region))
        return list(result.scalars().all())

    async def try_increment(self, db: AsyncSession, region: str) -> bool:
        """``current_count += 1`` only if ``current_count < max_quota``."""
        stmt = (
            update(RegionQuota)
            .where(
                RegionQuota.region == region,
                RegionQuota.current_count < RegionQuota.max_quota,
            )
            .values(
                current_count=RegionQuota.current_count + 1,
                last_updated=func.now(),
            )
            .returning(RegionQuota.current_count)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def try_decrement(self, db: AsyncSession, region: str) -> bool:
        """``current_count -= 1`` only if ``current_count > 0``."""
        stmt = (
            update(RegionQuota)
            .where(
                RegionQuota.region == region,
                RegionQuota.current_count > 0,
            )
            .values(
                current_count=RegionQuota.current_count - 1,
                last_updated=func.now(),
            )
            .returning(RegionQuota.current_count)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None


class AdmissionRepository:
    """Operations on ``participant_admissions``."""

    async def get(
        self, db: AsyncSession, participant_id: str
    ) -> ParticipantAdmission | None:
        """Fetch the admission outcome recorded for an identity."""
        return await db.get(ParticipantAdmission, participant_id)

    async def record(
        self,
        db: AsyncSession,
        *,
        participant_id: str,
        region: str,
        status: AdmissionStatus,
        reason: str | None = None,
    ) -> bool:
        """Insert an outcome unless the identity already has one.

        Returns True iff this call created the row.
        """
        stmt = (
            pg_insert(ParticipantAdmission)
            .values(
                participant_id=participant_id,
                region=region,
                status=status.value,
                reason=reason,
                created_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=[ParticipantAdmission.participant_id])
            .returning(ParticipantAdmission.participant_id)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def attach_session(
        self, db: AsyncSession, participant_id: str, session_id: str
    ) -> bool:
        """Bind a session to an unconsumed ``admitted`` row.

        Returns False if the admission is missing, rejected, or already
        consumed by another session.
        """
        stmt = (
            update(ParticipantAdmission)
            .where(
                ParticipantAdmission.participant_id == participant_id,
                ParticipantAdmission.status == AdmissionStatus.ADMITTED.value,
                ParticipantAdmission.session_id.is_(None),
            )
            .values(session_id=session_id)
            .returning(ParticipantAdmission.participant_id)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None
