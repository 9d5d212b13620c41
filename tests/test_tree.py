"""Tests for QuestionTree loading, counting and positional lookup."""

import logging

import pytest

from survey_engine.errors import ValidationError
from survey_engine.models.tree import QuestionPosition
from survey_engine.tree import FALLBACK_CATALOGUE, QuestionTree, parse_catalogue


def pos(c, s, t, q):
    return QuestionPosition.from_tuple((c, s, t, q))


class TestPackagedCatalogue:
    """The catalogue shipped with the SDK."""

    def test_loads_thirty_questions(self, tree):
        assert not tree.is_fallback
        assert tree.total_question_count == 30

    def test_summary_counts_every_level(self, tree):
        assert tree.summary() == {
            "total_questions": 30,
            "total_categories": 3,
            "total_subcategories": 6,
            "total_topics": 11,
        }

    def test_total_matches_enumerated_positions(self, tree):
        assert len(list(tree.iter_positions())) == tree.total_question_count

    def test_first_topic_matches_fallback(self, tree):
        """The fallback is a prefix of the real catalogue, so ids stay meaningful."""
        fallback_questions = (
            FALLBACK_CATALOGUE[0]["subcategories"][0]["topics"][0]["questions"]
        )
        assert tree.topic_at(0, 0, 0).questions == fallback_questions

    def test_to_data_round_trips_through_parse(self, tree):
        rebuilt = QuestionTree.from_data(tree.to_data())
        assert rebuilt.summary() == tree.summary()


class TestLookup:

    def test_question_at_returns_text(self, small_tree):
        assert small_tree.question_at(pos(0, 0, 0, 1)) == "Q-b"
        assert small_tree.question_at(pos(1, 0, 0, 2)) == "Q-f"

    @pytest.mark.parametrize(
        "position",
        [pos(0, 0, 0, 2), pos(0, 0, 1, 0), pos(0, 1, 0, 0), pos(2, 0, 0, 0)],
    )
    def test_out_of_tree_positions_are_invalid(self, small_tree, position):
        assert small_tree.question_at(position) is None
        assert not small_tree.is_valid_position(position)
        assert small_tree.context_at(position) is None

    def test_context_snapshot(self, small_tree):
        ctx = small_tree.context_at(pos(1, 1, 0, 0))
        assert ctx.question_id == "1-1-0-0"
        assert (ctx.category, ctx.subcategory, ctx.topic, ctx.question) == (
            "Rituals", "Funerals", "Mourning", "Q-g",
        )

    def test_container_counts(self, small_tree):
        assert small_tree.subcategory_count(0) == 2
        assert small_tree.topic_count(0, 0) == 3
        assert small_tree.question_count(0, 0, 1) == 0
        assert small_tree.total_question_count == 7

    def test_first_and_last_position(self, small_tree):
        assert small_tree.first_position() == pos(0, 0, 0, 0)
        assert small_tree.last_position() == pos(1, 1, 0, 0)


class TestQuestionIds:

    def test_id_encoding(self):
        assert pos(2, 0, 11, 3).question_id == "2-0-11-3"

    def test_id_decoding(self):
        assert QuestionPosition.from_question_id("2-0-11-3") == pos(2, 0, 11, 3)

    @pytest.mark.parametrize(
        "raw", ["", "1-2-3", "1-2-3-x", "ATTENTION_CHECK_7_0-0-1-2", "-1-0-0-0"],
    )
    def test_malformed_ids_rejected(self, raw):
        with pytest.raises(ValidationError):
            QuestionPosition.from_question_id(raw)


class TestFallback:
    """A missing or broken catalogue serves the built-in tree."""

    def test_missing_file_falls_back_with_warning(self, tmp_path, caplog):
        t = QuestionTree(tmp_path / "missing.yaml")
        with caplog.at_level(logging.WARNING, logger="survey_engine.tree"):
            t.load()
        assert t.is_fallback
        assert t.total_question_count == 5
        assert "fallback" in caplog.text

    def test_malformed_yaml_falls_back(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("- category: [unclosed\n", encoding="utf-8")
        t = QuestionTree(path)
        t.load()
        assert t.is_fallback

    def test_wrong_shape_falls_back(self, tmp_path):
        path = tmp_path / "shape.yaml"
        path.write_text("category: not-a-list\n", encoding="utf-8")
        t = QuestionTree(path)
        t.load()
        assert t.is_fallback

    def test_reload_picks_up_appended_question(self, tmp_path):
        path = tmp_path / "cat.yaml"
        path.write_text(
            "- category: A\n"
            "  subcategories:\n"
            "    - subcategory: B\n"
            "      topics:\n"
            "        - topic: C\n"
            "          questions: [one]\n",
            encoding="utf-8",
        )
        t = QuestionTree(path)
        t.load()
        assert t.total_question_count == 1

        path.write_text(path.read_text(encoding="utf-8").replace("[one]", "[one, two]"))
        t.reload()
        assert t.total_question_count == 2
        assert t.question_at(pos(0, 0, 0, 0)) == "one"

    def test_parse_rejects_empty_catalogue(self):
        with pytest.raises(ValueError):
            parse_catalogue([])
