"""Tests for SurveyForm — the participant-side flow state machine.

The form drives a real SessionController backed by the in-memory
repositories, over the 7-question test tree so that the attention check
(every 7th answer) lands on the very last question.  The mid-survey
check test uses the packaged 30-question catalogue instead.
"""

import random

import pytest

from helpers.mocks import participant_id, wire_controller
from survey_engine.controller import SessionController
from survey_engine.errors import InvalidTransitionError, ValidationError
from survey_engine.form import FormMode, SurveyForm
from survey_engine.models.session import ResponseSubmission
from survey_engine.quota import RegionQuotaManager

GOOD_ANSWER = "We cook rice with lentils for guests"
LOW_QUALITY = "asdkjfh asdkjfh asdkjfh asdkjfh"


@pytest.fixture
def small_controller(small_tree, store):
    ctl = SessionController(
        small_tree, RegionQuotaManager(), attention_interval=7, rng=random.Random(1),
    )
    return wire_controller(ctl, store)


async def open_form(controller, db, region="east"):
    await controller.quotas.initialize(db, {region: 3})
    created = await controller.create_session(
        db, participant_id=participant_id(1), region=region,
    )
    form = SurveyForm(controller, db, created.session_id)
    await form.start()
    return form


async def answer(form, text=GOOD_ANSWER, seconds=15):
    form.set_answer(text)
    form.tick(seconds)
    return await form.save_and_next()


class TestNavigation:

    @pytest.mark.asyncio
    async def test_start_at_first_question(self, small_controller, mock_db):
        form = await open_form(small_controller, mock_db)
        assert form.mode == FormMode.ANSWERING
        assert form.position.question_id == "0-0-0-0"
        assert form.question == "Q-a"

    @pytest.mark.asyncio
    async def test_save_moves_forward_and_stores_position(
        self, small_controller, store, mock_db,
    ):
        form = await open_form(small_controller, mock_db)
        outcome = await answer(form)
        assert outcome.saved
        assert form.position.question_id == "0-0-0-1"
        assert form.draft.answer == ""
        row = store.sessions.sessions[form.session_id]
        assert (row.question_index, row.completed_questions) == (1, 1)

    @pytest.mark.asyncio
    async def test_previous_loads_stored_answer(self, small_controller, mock_db):
        form = await open_form(small_controller, mock_db)
        await answer(form)
        form.set_answer("half typed")
        back = await form.previous()
        assert back.question_id == "0-0-0-0"
        # The unsaved text is dropped; the stored answer becomes the draft
        assert (form.draft.answer, form.draft.elapsed) == (GOOD_ANSWER, 15)

        # Already at the first question: stays put
        assert (await form.previous()).question_id == "0-0-0-0"

    @pytest.mark.asyncio
    async def test_restart_resumes_at_first_unanswered(self, small_controller, mock_db):
        form = await open_form(small_controller, mock_db)
        await answer(form)
        await answer(form)

        fresh = SurveyForm(small_controller, mock_db, form.session_id)
        assert (await fresh.start()).question_id == "0-0-2-0"

    @pytest.mark.asyncio
    async def test_invalid_draft_is_not_saved(self, small_controller, store, mock_db):
        form = await open_form(small_controller, mock_db)
        form.set_answer("ab")
        with pytest.raises(ValidationError):
            await form.save_and_next()
        assert store.responses.rows == {}


class TestQualityWarning:

    @pytest.mark.asyncio
    async def test_warning_shown_once_then_saved(self, small_controller, store, mock_db):
        form = await open_form(small_controller, mock_db)
        first = await answer(form, LOW_QUALITY)
        assert not first.saved
        assert first.quality_warning.is_low_quality
        assert form.position.question_id == "0-0-0-0"

        second = await form.save_and_next()
        assert second.saved
        assert form.position.question_id == "0-0-0-1"
        assert len(store.responses.rows) == 1


class TestAttentionFlow:

    @pytest.mark.asyncio
    async def test_check_on_last_question_then_completion(
        self, small_controller, store, mock_db,
    ):
        form = await open_form(small_controller, mock_db)
        for _ in range(6):
            await answer(form)
        outcome = await answer(form)

        assert outcome.attention_check is not None
        assert form.mode == FormMode.ATTENTION_CHECK
        assert form.question == outcome.attention_check.question
        with pytest.raises(InvalidTransitionError):
            await form.save_and_next()

        form.tick(4)
        expected = store.sessions.sessions[form.session_id].attention_check["accepted_answers"][0]
        passed = await form.answer_attention_check(expected)
        assert passed
        assert form.mode == FormMode.FINISHED
        assert form.completion.status == "completed"
        assert store.quotas.quotas["east"].current_count == 0

    @pytest.mark.asyncio
    async def test_failed_check_ends_session(self, small_controller, store, mock_db):
        form = await open_form(small_controller, mock_db)
        for _ in range(6):
            await answer(form)
        outcome = await answer(form)

        passed = await form.answer_attention_check("blue sky")
        assert not passed
        assert form.mode == FormMode.FINISHED
        assert form.completion.status == "attention_failed"
        assert form.completion.completion_reason == "attention_check_failed"

        row = store.sessions.sessions[form.session_id]
        assert row.attention_checks_failed == 1
        check_ids = [qid for (_, qid) in store.responses.rows if qid.startswith("ATTENTION_CHECK_")]
        assert check_ids == [f"ATTENTION_CHECK_7_{form.position.question_id}"]
        assert outcome.attention_check.kind in {
            "basic", "personal", "instruction", "comprehension", "context",
        }

    @pytest.mark.asyncio
    async def test_mid_survey_check_restores_draft_verbatim(
        self, controller, store, mock_db,
    ):
        form = await open_form(controller, mock_db)
        seventh = list(controller.tree.iter_positions())[6]
        # Answered ahead of time, so it is prefilled when the form reaches it
        await controller.save_batch(
            mock_db,
            form.session_id,
            [ResponseSubmission(
                session_id=form.session_id,
                question_id=seventh.question_id,
                position=seventh,
                answer="Elders are served before anyone else",
                time_spent=33,
            )],
        )
        for _ in range(5):
            await answer(form)
        outcome = await answer(form)

        # The 6th save makes 7 answers; the check interrupts the 7th question
        assert outcome.attention_check.answered_count == 7
        assert form.position == seventh
        issued = store.sessions.sessions[form.session_id].attention_check
        form.set_answer(issued["accepted_answers"][0])
        form.tick(5)
        assert await form.answer_attention_check(form.draft.answer)

        assert form.mode == FormMode.ANSWERING
        assert form.position == seventh
        assert form.draft.answer == "Elders are served before anyone else"
        assert form.draft.elapsed == 33
        assert (form.session_id, f"ATTENTION_CHECK_7_{seventh.question_id}") in store.responses.rows


class TestTimerAndExpiry:

    @pytest.mark.asyncio
    async def test_expire_finishes_once(self, small_controller, store, mock_db):
        form = await open_form(small_controller, mock_db)
        first = await form.expire()
        assert first.status == "expired"
        assert form.mode == FormMode.FINISHED
        assert await form.expire() == first
        assert store.quotas.quotas["east"].current_count == 0

    @pytest.mark.asyncio
    async def test_finished_form_ignores_ticks_and_edits(self, small_controller, mock_db):
        form = await open_form(small_controller, mock_db)
        form.tick(10)
        await form.expire()
        form.tick(10)
        assert form.total_elapsed == 10
        with pytest.raises(InvalidTransitionError):
            form.set_answer("more text")

    @pytest.mark.asyncio
    async def test_start_on_finished_session(self, small_controller, mock_db):
        form = await open_form(small_controller, mock_db)
        await form.expire()
        again = SurveyForm(small_controller, mock_db, form.session_id)
        assert await again.start() is None
        assert again.mode == FormMode.FINISHED

    @pytest.mark.asyncio
    async def test_time_remaining_hint(self, small_controller, mock_db):
        form = await open_form(small_controller, mock_db)
        assert form.time_remaining(5) == "~4 minutes remaining"
