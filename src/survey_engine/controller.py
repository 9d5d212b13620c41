"""SessionController — orchestrates admission, answers, checks and completion.

Stateless between calls: every method loads what it needs from the
database through the repositories and returns a pydantic model.  The
caller owns the transaction (``await db.commit()``), which keeps each
request's writes atomic.

Flow::

    admit (identity check -> quota reservation)
      -> create_session
      -> save_response (upsert by question id, recount progress,
                        maybe hand out an attention check)
      -> submit_attention_check (on failure: save draft, terminate)
      -> complete_session (duration, release the slot exactly once)

Every mutation is safe to retry: responses are upserts, counters are
conditional updates, and completion of an already finalised session
returns the stored result.
"""

from __future__ import annotations

import logging
import random
import statistics
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.models.enums import CompletionReason, SessionStatus
from survey_db.models.response import SurveyResponse
from survey_db.models.session import SurveySession
from survey_db.repository import ResponseRepository, SessionRepository

from survey_engine.attention import (
    AttentionCheckScheduler,
    attention_check_id,
    is_attention_check_id,
)
from survey_engine.constants import ATTENTION_CHECK_INTERVAL
from survey_engine.cursor import ProgressCursor
from survey_engine.errors import (
    DuplicateIdentityError,
    InvalidTransitionError,
    NotFoundError,
    QuotaFullError,
    ValidationError,
)
from survey_engine.interfaces import ResponseQualityPolicy
from survey_engine.models.attention import (
    AttentionCheck,
    AttentionCheckResult,
    AttentionCheckSubmission,
    CheckContext,
    IssuedAttentionCheck,
)
from survey_engine.models.quality import PatternAnalysis, QualityScore
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
from survey_engine.models.tree import QuestionContext, QuestionPosition
from survey_engine.quality import HeuristicQualityAnalyzer
from survey_engine.quota import RegionQuotaManager
from survey_engine.state import parse_reason, status_for_reason, transition
from survey_engine.tree import QuestionTree
from survey_engine.validation import (
    normalize_region,
    validate_answer,
    validate_participant_id,
)

logger = logging.getLogger(__name__)


def format_duration(seconds: int) -> str:
    """``3723`` -> ``"1h 2m 3s"``; zero renders as ``"0s"``."""
    seconds = max(int(seconds), 0)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def summarize_durations(seconds: Sequence[int]) -> TimingSummary:
    """Count, floor-average, floor-median, fastest and slowest."""
    if not seconds:
        return TimingSummary()
    ordered = sorted(seconds)
    average = sum(ordered) // len(ordered)
    return TimingSummary(
        count=len(ordered),
        average_seconds=average,
        median_seconds=int(statistics.median(ordered)),
        fastest_seconds=ordered[0],
        slowest_seconds=ordered[-1],
        average_formatted=format_duration(average),
    )


class SessionController:
    """Coordinates the question tree, quotas, attention checks and scoring.

    Args:
        tree: a loaded :class:`QuestionTree`
        quotas: the region quota manager
        quality: answer-quality policy (advisory only)
        attention_interval: attention-check cadence K
        rng: random source for picking attention checks
    """

    def __init__(
        self,
        tree: QuestionTree,
        quotas: RegionQuotaManager | None = None,
        quality: ResponseQualityPolicy | None = None,
        *,
        attention_interval: int = ATTENTION_CHECK_INTERVAL,
        rng: random.Random | None = None,
    ) -> None:
        self._tree = tree
        self._cursor = ProgressCursor(tree)
        self._quotas = quotas or RegionQuotaManager()
        self._quality = quality or HeuristicQualityAnalyzer()
        self._attention_interval = attention_interval
        self._rng = rng or random.Random()
        self._repo = SessionRepository()
        self._response_repo = ResponseRepository()

    @property
    def tree(self) -> QuestionTree:
        return self._tree

    @property
    def quotas(self) -> RegionQuotaManager:
        return self._quotas

    @property
    def quality(self) -> ResponseQualityPolicy:
        return self._quality

    # ==================================================================
    # Admission / session lifecycle
    # ==================================================================

    async def admit(
        self, db: AsyncSession, *, participant_id: str, region: str
    ) -> AdmissionResult:
        """Validate inputs and run the admission gate (no session is created)."""
        participant_id = validate_participant_id(participant_id)
        region = normalize_region(region)
        return await self._quotas.admit(db, participant_id, region)

    async def participant_exists(self, db: AsyncSession, participant_id: str) -> bool:
        participant_id = validate_participant_id(participant_id)
        return await self._repo.get_by_participant(db, participant_id) is not None

    async def create_session(
        self,
        db: AsyncSession,
        *,
        participant_id: str,
        region: str,
        demographics: Demographics | dict[str, Any] | None = None,
    ) -> CreatedSession:
        """Admit the participant and create their single session.

        Consumes an admission made earlier through :meth:`admit`, or runs
        the gate now.  The caller must commit, including after a
        :class:`QuotaFullError`, so that the rejection is recorded.

        Raises:
            ValidationError: malformed identity, region or demographics.
            DuplicateIdentityError: the identity already has a session.
            QuotaFullError: no free slot in the region.
        """
        if isinstance(demographics, dict) or demographics is None:
            try:
                demographics = Demographics.model_validate(demographics or {})
            except ValueError as exc:
                raise ValidationError(f"Invalid demographics: {exc}") from None

        admission = await self.admit(db, participant_id=participant_id, region=region)
        if admission.state == AdmissionState.REJECTED_DUPLICATE_IDENTITY:
            raise DuplicateIdentityError(admission.message)
        if admission.state == AdmissionState.REJECTED_QUOTA_FULL:
            raise QuotaFullError(admission.message)

        session_id = uuid.uuid4().hex
        try:
            row = await self._repo.create_session(
                db,
                session_id=session_id,
                participant_id=admission.participant_id,
                region=admission.region,
                demographics=demographics.model_dump(exclude_none=True),
                total_questions=self._tree.total_question_count,
            )
        except IntegrityError:
            raise DuplicateIdentityError(
                "This participant ID has already been used"
            ) from None
        if not await self._quotas.consume(db, admission.participant_id, session_id):
            raise DuplicateIdentityError("This participant ID has already been used")

        logger.info(
            "Session %s created for participant %s in region %s",
            session_id, admission.participant_id, admission.region,
        )
        return CreatedSession(
            session_id=row.session_id,
            total_questions=row.total_questions,
            started_at=row.started_at,
        )

    async def get_session(self, db: AsyncSession, session_id: str) -> SessionInfo:
        row = await self._load_session(db, session_id)
        return self._to_session_info(row)

    async def update_position(
        self, db: AsyncSession, session_id: str, position: QuestionPosition
    ) -> SessionInfo:
        """Store the cursor.  Positions outside the tree are rejected."""
        if not self._tree.is_valid_position(position):
            raise ValidationError(f"Position {position.question_id} is not in the question tree")
        row = await self._load_session(db, session_id)
        await self._repo.update_position(db, row, position.as_tuple())
        return self._to_session_info(row)

    async def resume_position(self, db: AsyncSession, session_id: str) -> QuestionPosition | None:
        """First unanswered tree question of the session."""
        await self._load_session(db, session_id)
        rows = await self._response_repo.list_for_session(db, session_id)
        return self._cursor.resume_from(r.question_id for r in rows)

    # ==================================================================
    # Responses
    # ==================================================================

    async def save_response(
        self, db: AsyncSession, submission: ResponseSubmission
    ) -> SaveResult:
        """Upsert one answer and refresh the session's progress counters.

        When the save brings the regular-answer count to a new multiple of
        the check interval, an attention check is issued, stored on the
        session and attached to the result.  Finished sessions accept
        re-sends of already stored answers only and never get a check.
        Quality scoring never blocks the save.
        """
        row = await self._load_session(db, submission.session_id)
        await self._guard_finished(db, row, [submission.question_id])
        quality, inserted = await self._store(db, row, submission)
        completed = await self._refresh_progress(db, row)

        check = None
        if SessionStatus(row.status) == SessionStatus.ACTIVE:
            check = await self._maybe_issue_check(db, row, submission.position, completed)
        pattern = await self._pattern_for(db, row.session_id)
        if pattern.suspicious_pattern:
            logger.warning(
                "Suspicious answer pattern in session %s: %s",
                row.session_id, "; ".join(pattern.warnings),
            )

        return SaveResult(
            question_id=submission.question_id,
            inserted=inserted,
            completed_questions=completed,
            quality=quality,
            pattern=pattern,
            attention_check=check,
        )

    async def save_batch(
        self,
        db: AsyncSession,
        session_id: str,
        submissions: Iterable[ResponseSubmission],
    ) -> BatchSaveResult:
        """Upsert several answers of one session; same semantics as single saves.

        Every submission is validated before the first write, so a bad item
        rejects the whole batch.
        """
        row = await self._load_session(db, session_id)
        items = list(submissions)
        for item in items:
            if item.session_id != session_id:
                raise ValidationError(
                    f"Response {item.question_id} belongs to session {item.session_id}, "
                    f"not {session_id}"
                )
            self._prepare(item)
        await self._guard_finished(db, row, [item.question_id for item in items])

        inserted = updated = 0
        for item in items:
            _, was_inserted = await self._store(db, row, item)
            if was_inserted:
                inserted += 1
            else:
                updated += 1
        completed = await self._refresh_progress(db, row)
        logger.info(
            "Batch save for session %s: %d inserted, %d updated",
            session_id, inserted, updated,
        )
        return BatchSaveResult(inserted=inserted, updated=updated, completed_questions=completed)

    async def list_responses(self, db: AsyncSession, session_id: str) -> list[ResponseRecord]:
        """All stored answers in tree order."""
        await self._load_session(db, session_id)
        rows = await self._response_repo.list_for_session(db, session_id)
        return [self._to_response_record(r) for r in rows]

    async def get_response(
        self, db: AsyncSession, session_id: str, question_id: str
    ) -> ResponseRecord | None:
        row = await self._response_repo.get(db, session_id, question_id)
        return self._to_response_record(row) if row is not None else None

    async def analyze_session(self, db: AsyncSession, session_id: str) -> PatternAnalysis:
        await self._load_session(db, session_id)
        return await self._pattern_for(db, session_id)

    # ==================================================================
    # Attention checks
    # ==================================================================

    async def submit_attention_check(
        self, db: AsyncSession, submission: AttentionCheckSubmission
    ) -> AttentionCheckResult:
        """Validate a check answer against the check the server issued.

        The check is looked up by ``answered_count``; a submission for a
        count with no issued check is rejected.  Replaying the answer to a
        check that already has a verdict returns that verdict unchanged.

        On failure the in-flight draft (if long enough to be valid) is saved
        under its real question id, then the session is finalised as
        ``attention_failed``.

        Raises:
            ValidationError: no check issued at that count, or an empty answer.
            InvalidTransitionError: the session finished before the check
                was answered.
        """
        row = await self._load_session(db, submission.session_id)
        issued = row.attention_check
        if not issued or issued.get("answered_count") != submission.answered_count:
            raise ValidationError(
                f"No attention check was issued to session {row.session_id} "
                f"at {submission.answered_count} answers"
            )
        if issued.get("passed") is not None:
            logger.info(
                "Session %s replayed attention check %s",
                row.session_id, issued.get("response_id"),
            )
            return self._check_result(row, issued["passed"], issued["response_id"])
        if SessionStatus(row.status) != SessionStatus.ACTIVE:
            raise InvalidTransitionError(
                f"Session {row.session_id} is {SessionStatus(row.status).value}; "
                "the attention check can no longer be answered"
            )

        position = QuestionPosition.from_question_id(submission.question_id)
        context = self._require_context(position)
        answer = submission.answer.strip()
        if not answer:
            raise ValidationError("Please answer the attention check")

        check = AttentionCheck.model_validate(issued)
        passed = AttentionCheckScheduler.validate(answer, check.accepted_answers)
        response_id = attention_check_id(submission.answered_count, submission.question_id)
        await self._response_repo.upsert(
            db,
            self._response_values(
                row.session_id,
                response_id,
                context,
                question=check.question,
                answer=answer,
                time_spent=submission.time_spent,
                quality_score=None,
                is_attention_check=True,
                attention_check_kind=check.kind,
                expected_answer=check.expected_answer,
            ),
        )
        if not await self._repo.resolve_attention_check(
            db, row, passed=passed, response_id=response_id
        ):
            raise InvalidTransitionError(
                f"Attention check at {submission.answered_count} answers was "
                "answered concurrently; retry to read its verdict"
            )

        if passed:
            logger.info("Session %s passed attention check %s", row.session_id, response_id)
        else:
            logger.warning("Session %s failed attention check %s", row.session_id, response_id)
            await self._save_draft(db, row, submission, context)
            await self.complete_session(
                db, row.session_id, CompletionReason.ATTENTION_CHECK_FAILED
            )

        return self._check_result(row, passed, response_id)

    # ==================================================================
    # Completion / release
    # ==================================================================

    async def complete_session(
        self,
        db: AsyncSession,
        session_id: str,
        reason: CompletionReason | str = CompletionReason.COMPLETED,
    ) -> CompletionResult:
        """Finalise the session and release its region slot exactly once.

        Completing an already finalised session with the same reason
        returns the stored timing without writing.

        Raises:
            NotFoundError: unknown session.
            InvalidTransitionError: the session is already finalised with
                a different status.
        """
        reason = parse_reason(reason)
        row = await self._load_session(db, session_id)
        target = status_for_reason(reason)
        current = SessionStatus(row.status)
        transition(current, target)

        if current == SessionStatus.ACTIVE:
            completed_at = datetime.now(timezone.utc)
            started_at = row.started_at
            if started_at.tzinfo is None:
                started_at = started_at.replace(tzinfo=timezone.utc)
            total = max(int((completed_at - started_at).total_seconds()), 0)
            await self._repo.finalize_session(
                db,
                row,
                status=target,
                reason=reason.value,
                completed_at=completed_at,
                total_seconds=total,
                total_formatted=format_duration(total),
            )
            logger.info(
                "Session %s finished (%s) in %s",
                row.session_id, reason.value, row.total_time_formatted,
            )

        await self._release_session_slot(db, row)
        return CompletionResult(
            session_id=row.session_id,
            status=SessionStatus(row.status).value,
            completion_reason=row.completion_reason or reason.value,
            total_time_seconds=row.total_time_seconds or 0,
            total_time_formatted=row.total_time_formatted or format_duration(0),
            slot_released=row.slot_released,
        )

    async def release_slot(
        self, db: AsyncSession, *, region: str, session_id: str | None = None
    ) -> bool:
        """Give a region slot back, e.g. when a participant abandons.

        With a ``session_id`` the release happens at most once per session
        (later calls return False); without one it is a bare conditional
        decrement of the region counter.
        """
        region = normalize_region(region)
        if session_id is None:
            return await self._quotas.release(db, region)
        row = await self._load_session(db, session_id)
        if row.region != region:
            raise ValidationError(
                f"Session {session_id} belongs to region {row.region}, not {region}"
            )
        return await self._release_session_slot(db, row)

    # ==================================================================
    # Reporting
    # ==================================================================

    async def timing_stats(self, db: AsyncSession) -> TimingStats:
        """Duration statistics over finalised sessions."""
        rows = await self._repo.list_finished(db)
        by_reason: dict[str, list[int]] = {}
        by_region: dict[str, list[int]] = {}
        for r in rows:
            reason = r.completion_reason or CompletionReason.COMPLETED.value
            by_reason.setdefault(reason, []).append(r.total_time_seconds)
            by_region.setdefault(r.region, []).append(r.total_time_seconds)
        return TimingStats(
            overall=summarize_durations([r.total_time_seconds for r in rows]),
            by_reason={k: summarize_durations(v) for k, v in sorted(by_reason.items())},
            by_region={k: summarize_durations(v) for k, v in sorted(by_region.items())},
        )

    # ==================================================================
    # Internal helpers
    # ==================================================================

    async def _load_session(self, db: AsyncSession, session_id: str) -> SurveySession:
        """Load a session row or raise NotFoundError."""
        row = await self._repo.get_by_session_id(db, session_id)
        if row is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return row

    def _scheduler_for(self, row: SurveySession) -> AttentionCheckScheduler:
        return AttentionCheckScheduler(
            self._attention_interval,
            watermark=row.last_attention_check_at,
            rng=self._rng,
        )

    def _require_context(self, position: QuestionPosition) -> QuestionContext:
        context = self._tree.context_at(position)
        if context is None:
            raise ValidationError(f"Position {position.question_id} is not in the question tree")
        return context

    def _prepare(self, submission: ResponseSubmission) -> tuple[QuestionContext, str]:
        """Validate a submission; return its catalogue context and clean answer."""
        if is_attention_check_id(submission.question_id):
            raise ValidationError(
                "Attention-check answers are submitted to "
                f"/sessions/{submission.session_id}/attention-checks"
            )
        context = self._require_context(submission.position)
        if QuestionPosition.from_question_id(submission.question_id) != submission.position:
            raise ValidationError(
                f"Question id {submission.question_id} does not match position "
                f"{submission.position.question_id}"
            )
        return context, validate_answer(submission.answer)

    async def _guard_finished(
        self, db: AsyncSession, row: SurveySession, question_ids: Sequence[str]
    ) -> None:
        """A finished session only takes re-sends of answers it already has."""
        status = SessionStatus(row.status)
        if status == SessionStatus.ACTIVE:
            return
        for question_id in question_ids:
            if await self._response_repo.get(db, row.session_id, question_id) is None:
                raise InvalidTransitionError(
                    f"Session {row.session_id} is {status.value}; "
                    f"cannot add an answer to {question_id}"
                )

    async def _store(
        self, db: AsyncSession, row: SurveySession, submission: ResponseSubmission
    ) -> tuple[QualityScore, bool]:
        context, answer = self._prepare(submission)
        if submission.question and submission.question.strip() != context.question:
            logger.warning(
                "Question text drift for %s in session %s: client sent %r",
                submission.question_id, row.session_id, submission.question,
            )
        quality = self._quality.score_response(answer)

        _, inserted = await self._response_repo.upsert(
            db,
            self._response_values(
                row.session_id,
                submission.question_id,
                context,
                question=context.question,
                answer=answer,
                time_spent=submission.time_spent,
                quality_score=quality.score,
                is_attention_check=False,
                attention_check_kind=None,
                expected_answer=None,
            ),
        )
        return quality, inserted

    async def _maybe_issue_check(
        self,
        db: AsyncSession,
        row: SurveySession,
        position: QuestionPosition,
        completed: int,
    ) -> IssuedAttentionCheck | None:
        scheduler = self._scheduler_for(row)
        if not scheduler.should_inject(completed):
            return None
        context = self._tree.context_at(position)
        check = scheduler.generate(
            CheckContext(
                region=row.region,
                category=context.category if context else None,
                topic=context.topic if context else None,
            )
        )
        if not await self._repo.issue_attention_check(db, row, completed, check.model_dump()):
            return None
        logger.info(
            "Attention check (%s) issued to session %s at %d answers",
            check.kind, row.session_id, completed,
        )
        return IssuedAttentionCheck(
            answered_count=completed,
            kind=check.kind,
            question=check.question,
            category=check.category,
            topic=check.topic,
        )

    @staticmethod
    def _check_result(row: SurveySession, passed: bool, response_id: str) -> AttentionCheckResult:
        return AttentionCheckResult(
            passed=passed,
            response_id=response_id,
            status=SessionStatus(row.status).value,
            attention_checks_passed=row.attention_checks_passed,
            attention_checks_failed=row.attention_checks_failed,
        )

    @staticmethod
    def _response_values(
        session_id: str,
        question_id: str,
        context: QuestionContext,
        **fields: Any,
    ) -> dict[str, Any]:
        c, s, t, q = context.position.as_tuple()
        return {
            "session_id": session_id,
            "question_id": question_id,
            "category_index": c,
            "subcategory_index": s,
            "topic_index": t,
            "question_index": q,
            "category": context.category,
            "subcategory": context.subcategory,
            "topic": context.topic,
            **fields,
        }

    async def _refresh_progress(self, db: AsyncSession, row: SurveySession) -> int:
        """Recount regular answers and store them on the session row."""
        completed = await self._response_repo.count_actual(db, row.session_id)
        await self._repo.set_progress_counts(
            db,
            row,
            completed_questions=completed,
            total_questions=self._tree.total_question_count,
        )
        return completed

    async def _pattern_for(self, db: AsyncSession, session_id: str) -> PatternAnalysis:
        rows = await self._response_repo.list_for_session(db, session_id)
        return self._quality.analyze_pattern(
            [(r.answer, r.time_spent) for r in rows if not r.is_attention_check]
        )

    async def _save_draft(
        self,
        db: AsyncSession,
        row: SurveySession,
        submission: AttentionCheckSubmission,
        context: QuestionContext,
    ) -> None:
        if not submission.draft_answer:
            return
        try:
            answer = validate_answer(submission.draft_answer)
        except ValidationError as exc:
            logger.warning(
                "Draft for %s in session %s not saved: %s",
                submission.question_id, row.session_id, exc,
            )
            return
        await self._response_repo.upsert(
            db,
            self._response_values(
                row.session_id,
                submission.question_id,
                context,
                question=context.question,
                answer=answer,
                time_spent=submission.draft_time_spent,
                quality_score=self._quality.score_response(answer).score,
                is_attention_check=False,
                attention_check_kind=None,
                expected_answer=None,
            ),
        )
        await self._refresh_progress(db, row)

    async def _release_session_slot(self, db: AsyncSession, row: SurveySession) -> bool:
        if not await self._repo.claim_slot_release(db, row):
            return False
        return await self._quotas.release(db, row.region)

    def _to_session_info(self, row: SurveySession) -> SessionInfo:
        total = row.total_questions or self._tree.total_question_count
        return SessionInfo(
            session_id=row.session_id,
            participant_id=row.participant_id,
            region=row.region,
            status=SessionStatus(row.status).value,
            position=QuestionPosition(
                category_index=row.category_index,
                subcategory_index=row.subcategory_index,
                topic_index=row.topic_index,
                question_index=row.question_index,
            ),
            progress=SessionProgress(
                completed_questions=row.completed_questions,
                total_questions=total,
                percent_complete=(
                    round(min(row.completed_questions, total) * 100.0 / total, 1)
                    if total else 0.0
                ),
                attention_checks_passed=row.attention_checks_passed,
                attention_checks_failed=row.attention_checks_failed,
                last_attention_check_at=row.last_attention_check_at,
            ),
            started_at=row.started_at,
            completed_at=row.completed_at,
            completion_reason=row.completion_reason,
            total_time_seconds=row.total_time_seconds,
            total_time_formatted=row.total_time_formatted,
        )

    @staticmethod
    def _to_response_record(row: SurveyResponse) -> ResponseRecord:
        return ResponseRecord(
            question_id=row.question_id,
            position=QuestionPosition(
                category_index=row.category_index,
                subcategory_index=row.subcategory_index,
                topic_index=row.topic_index,
                question_index=row.question_index,
            ),
            category=row.category,
            subcategory=row.subcategory,
            topic=row.topic,
            question=row.question,
            answer=row.answer,
            time_spent=row.time_spent,
            is_attention_check=row.is_attention_check,
            attention_check_kind=row.attention_check_kind,
            expected_answer=row.expected_answer,
            quality_score=row.quality_score,
        )
