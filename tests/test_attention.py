"""Tests for attention-check cadence, generation and answer validation."""

import random

import pytest

from survey_engine.attention import (
    AttentionCheckScheduler,
    attention_check_id,
    is_attention_check_id,
    normalize_answer,
)
from survey_engine.models.attention import CheckContext
from survey_engine.models.tree import QuestionPosition
from survey_engine.errors import ValidationError


class TestCadence:

    def test_fires_at_multiples_of_interval(self):
        scheduler = AttentionCheckScheduler(7)
        fired = [n for n in range(1, 30) if scheduler.should_inject(n)]
        assert fired == [7, 14, 21, 28]

    def test_watermark_blocks_second_check_at_same_count(self):
        scheduler = AttentionCheckScheduler(7)
        assert scheduler.should_inject(7)
        # Back-navigation and a re-save land on 7 again
        assert not scheduler.should_inject(7)
        assert scheduler.watermark == 7

    def test_restored_watermark_is_respected(self):
        scheduler = AttentionCheckScheduler(7, watermark=14)
        assert not scheduler.should_inject(7)
        assert not scheduler.should_inject(14)
        assert scheduler.should_inject(21)

    def test_is_due_ignores_watermark(self):
        scheduler = AttentionCheckScheduler(5, watermark=10)
        assert scheduler.is_due(10)
        assert not scheduler.is_due(0)
        assert not scheduler.is_due(11)

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            AttentionCheckScheduler(0)


class TestGeneration:

    def test_pool_adds_personal_and_context_checks(self):
        scheduler = AttentionCheckScheduler()
        pool = scheduler.pool(CheckContext(region="South", category="Daily Life", topic="Fasting"))
        kinds = {check.kind for check in pool}
        assert kinds == {"basic", "instruction", "comprehension", "personal", "context"}
        personal = next(c for c in pool if c.kind == "personal")
        assert personal.accepted_answers == ["south"]
        assert all(c.topic == "Fasting" for c in pool)

    def test_pool_without_context_has_only_static_checks(self):
        kinds = {c.kind for c in AttentionCheckScheduler().pool(CheckContext())}
        assert kinds == {"basic", "instruction", "comprehension"}

    def test_generate_is_deterministic_with_seeded_rng(self):
        context = CheckContext(region="north", topic="Weddings")
        first = AttentionCheckScheduler(rng=random.Random(3)).generate(context)
        second = AttentionCheckScheduler(rng=random.Random(3)).generate(context)
        assert first == second

    def test_expected_answer_is_first_accepted(self):
        pool = AttentionCheckScheduler().pool(CheckContext())
        basic = next(c for c in pool if c.kind == "basic")
        assert basic.expected_answer == "india"


class TestValidation:
    """Normalization, containment and synonyms."""

    @pytest.mark.parametrize(
        "raw, accepted",
        [
            ("India", ["india"]),
            ("  INDIA!!  ", ["india"]),
            ("It is India", ["india"]),
            ("Bharat", ["india", "bharat"]),
            ("Hindustan", ["india"]),
            ("golden", ["yellow"]),
            ("tue", ["tuesday"]),
            ("It's\nTuesday.", ["tuesday"]),
            ("South", ["south"]),
        ],
    )
    def test_accepted(self, raw, accepted):
        assert AttentionCheckScheduler.validate(raw, accepted)

    @pytest.mark.parametrize(
        "raw, accepted",
        [
            ("", ["india"]),
            ("   ", ["india"]),
            ("Pakistan", ["india"]),
            ("blue", ["yellow"]),
            ("goldfish", ["yellow"]),
            ("north", ["south"]),
        ],
    )
    def test_rejected(self, raw, accepted):
        assert not AttentionCheckScheduler.validate(raw, accepted)

    def test_normalize_answer(self):
        assert normalize_answer("  Hello,\r\n  World!  ") == "hello world"
        assert normalize_answer(None) == ""


class TestSyntheticIds:
    """Check ids never collide with tree question ids."""

    def test_id_format(self):
        assert attention_check_id(7, "0-0-1-2") == "ATTENTION_CHECK_7_0-0-1-2"

    def test_id_is_recognized(self):
        assert is_attention_check_id("ATTENTION_CHECK_14_1-0-0-0")
        assert not is_attention_check_id("1-0-0-0")

    def test_id_is_not_a_tree_position(self):
        with pytest.raises(ValidationError):
            QuestionPosition.from_question_id(attention_check_id(7, "0-0-1-2"))
