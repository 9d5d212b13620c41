"""SurveyForm — the participant-side survey flow as an explicit state machine.

One question is in flight at a time.  The draft answer and the time spent
on it live in memory and reach the server only on :meth:`save_and_next`
(or, for a failed attention check, just before the session ends).  Moving
to a question that already has a stored answer loads it as the draft.

Modes::

    answering --save--> answering            (next question)
    answering --save--> attention_check      (controller issued a check)
    answering --save--> finished             (last question answered)
    attention_check --pass--> answering      (stashed draft restored)
    attention_check --fail--> finished       (draft saved, session ends)

While a check is shown, the in-flight question's draft and elapsed time
are stashed and restored verbatim afterwards; the cursor does not move.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.models.enums import CompletionReason

from survey_engine.constants import TIMER_TICK_SECONDS
from survey_engine.controller import SessionController
from survey_engine.cursor import ProgressCursor, estimate_time_remaining
from survey_engine.errors import InvalidTransitionError
from survey_engine.models.attention import AttentionCheckSubmission, IssuedAttentionCheck
from survey_engine.models.quality import QualityScore
from survey_engine.models.session import CompletionResult, ResponseSubmission
from survey_engine.models.tree import QuestionPosition
from survey_engine.state import is_terminal
from survey_engine.validation import validate_answer

logger = logging.getLogger(__name__)


class FormMode(str, enum.Enum):
    ANSWERING = "answering"
    ATTENTION_CHECK = "attention_check"
    FINISHED = "finished"


@dataclass
class Draft:
    """Unsaved answer to the in-flight question."""

    answer: str = ""
    elapsed: int = 0


@dataclass
class SaveOutcome:
    """What happened on a save attempt.

    ``saved`` is False only when a quality warning was raised instead;
    calling :meth:`SurveyForm.save_and_next` again dismisses it and saves.
    """

    saved: bool
    quality_warning: QualityScore | None = None
    attention_check: IssuedAttentionCheck | None = None
    completion: CompletionResult | None = None


@dataclass
class SurveyForm:
    """Client-side survey flow for one session."""

    controller: SessionController
    db: AsyncSession
    session_id: str
    mode: FormMode = FormMode.ANSWERING
    position: QuestionPosition | None = None
    draft: Draft = field(default_factory=Draft)
    total_elapsed: int = 0
    attention_check: IssuedAttentionCheck | None = None
    completion: CompletionResult | None = None
    _stash: Draft | None = field(default=None, init=False, repr=False)
    _check_count: int = field(default=0, init=False, repr=False)
    _check_question_id: str | None = field(default=None, init=False, repr=False)
    _warned_for: str | None = field(default=None, init=False, repr=False)
    _finish_after_check: bool = field(default=False, init=False, repr=False)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> QuestionPosition | None:
        """Resume at the first unanswered question of the session."""
        info = await self.controller.get_session(self.db, self.session_id)
        if is_terminal(info.status):
            self.mode = FormMode.FINISHED
            return None
        self.position = await self.controller.resume_position(self.db, self.session_id)
        self.draft = await self._load_draft(self.position)
        if self.position is not None:
            await self.controller.update_position(self.db, self.session_id, self.position)
        return self.position

    def tick(self, seconds: int = TIMER_TICK_SECONDS) -> None:
        """Advance the elapsed-time counters; ignored once finished."""
        if self.mode == FormMode.FINISHED:
            return
        self.draft.elapsed += seconds
        self.total_elapsed += seconds

    def set_answer(self, text: str) -> None:
        if self.mode == FormMode.FINISHED:
            raise InvalidTransitionError("The survey is already finished")
        self.draft.answer = text

    @property
    def question(self) -> str | None:
        if self.mode == FormMode.ATTENTION_CHECK and self.attention_check:
            return self.attention_check.question
        if self.position is None:
            return None
        return self.controller.tree.question_at(self.position)

    def time_remaining(self, completed_questions: int) -> str:
        return estimate_time_remaining(
            self.controller.tree.total_question_count, completed_questions
        )

    # ------------------------------------------------------------------
    # Regular questions
    # ------------------------------------------------------------------

    async def save_and_next(self) -> SaveOutcome:
        """Save the draft and advance.

        The first attempt on a low-quality answer returns a warning without
        saving; a second attempt on the same question saves regardless.
        """
        self._require(FormMode.ANSWERING)
        if self.position is None:
            raise InvalidTransitionError("No question in flight")
        answer = validate_answer(self.draft.answer)
        question_id = self.position.question_id

        verdict = self.controller.quality.score_response(answer)
        if verdict.is_low_quality and self._warned_for != question_id:
            self._warned_for = question_id
            return SaveOutcome(saved=False, quality_warning=verdict)

        result = await self.controller.save_response(
            self.db,
            ResponseSubmission(
                session_id=self.session_id,
                question_id=question_id,
                position=self.position,
                answer=answer,
                time_spent=self.draft.elapsed,
                question=self.controller.tree.question_at(self.position),
            ),
        )
        self._warned_for = None

        next_position = ProgressCursor(self.controller.tree).next(self.position)
        if next_position is not None:
            self.position = next_position
            self.draft = await self._load_draft(next_position)
            await self.controller.update_position(self.db, self.session_id, next_position)

        if result.attention_check is not None:
            self._finish_after_check = next_position is None
            self._enter_check(result.attention_check)
            return SaveOutcome(saved=True, attention_check=result.attention_check)

        if next_position is None:
            completion = await self._finish(CompletionReason.COMPLETED)
            return SaveOutcome(saved=True, completion=completion)
        return SaveOutcome(saved=True)

    async def previous(self) -> QuestionPosition | None:
        """Step back one question; the unsaved draft is discarded."""
        self._require(FormMode.ANSWERING)
        if self.position is None:
            return None
        prev = ProgressCursor(self.controller.tree).previous(self.position)
        if prev is None:
            return self.position
        self.position = prev
        self.draft = await self._load_draft(prev)
        self._warned_for = None
        await self.controller.update_position(self.db, self.session_id, prev)
        return prev

    async def expire(self) -> CompletionResult:
        """Finish the session because the participant ran out of time."""
        if self.mode == FormMode.FINISHED and self.completion is not None:
            return self.completion
        return await self._finish(CompletionReason.TIME_EXPIRED)

    # ------------------------------------------------------------------
    # Attention checks
    # ------------------------------------------------------------------

    async def answer_attention_check(self, answer: str) -> bool:
        """Submit the check answer; returns whether it passed."""
        self._require(FormMode.ATTENTION_CHECK)
        stash = self._stash or Draft()
        result = await self.controller.submit_attention_check(
            self.db,
            AttentionCheckSubmission(
                session_id=self.session_id,
                answered_count=self._check_count,
                question_id=self._check_question_id,
                answer=answer,
                time_spent=self.draft.elapsed,
                draft_answer=stash.answer or None,
                draft_time_spent=stash.elapsed,
            ),
        )
        if result.passed:
            self.draft = stash
            self.mode = FormMode.ANSWERING
            if self._finish_after_check:
                await self._finish(CompletionReason.COMPLETED)
        else:
            self.mode = FormMode.FINISHED
            self.completion = await self.controller.complete_session(
                self.db, self.session_id, CompletionReason.ATTENTION_CHECK_FAILED
            )
        self._stash = None
        self.attention_check = None
        return result.passed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, mode: FormMode) -> None:
        if self.mode != mode:
            raise InvalidTransitionError(
                f"Action needs form mode {mode.value}, current mode is {self.mode.value}"
            )

    async def _load_draft(self, position: QuestionPosition | None) -> Draft:
        """Prefill from the stored answer so a re-visit edits it in place."""
        if position is None:
            return Draft()
        stored = await self.controller.get_response(
            self.db, self.session_id, position.question_id
        )
        if stored is None:
            return Draft()
        return Draft(answer=stored.answer, elapsed=stored.time_spent)

    def _enter_check(self, check: IssuedAttentionCheck) -> None:
        self._stash = Draft(answer=self.draft.answer, elapsed=self.draft.elapsed)
        self._check_count = check.answered_count
        self._check_question_id = self.position.question_id
        self.attention_check = check
        self.draft = Draft()
        self.mode = FormMode.ATTENTION_CHECK
        logger.debug("Attention check shown at %d answers", check.answered_count)

    async def _finish(self, reason: CompletionReason) -> CompletionResult:
        self.completion = await self.controller.complete_session(
            self.db, self.session_id, reason
        )
        self.mode = FormMode.FINISHED
        return self.completion
