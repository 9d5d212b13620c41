"""ProgressCursor — position algebra over a QuestionTree.

``next`` increments the innermost index first (question, then topic, then
subcategory, then category); an overflow resets that index to zero and
carries into its parent.  ``previous`` walks the same order backwards and
lands on the *last* index of the sibling it enters.  Both return ``None``
at the ends of the tree instead of raising or wrapping.

Attention-check answers live in their own id namespace and are never tree
positions, so :meth:`ProgressCursor.resume_from` skips them.
"""

from __future__ import annotations

import math
from typing import Iterable

from survey_engine.constants import AVERAGE_SECONDS_PER_QUESTION
from survey_engine.models.tree import QuestionPosition
from survey_engine.tree import QuestionTree


class ProgressCursor:
    """Stateless navigation helper bound to one tree."""

    def __init__(self, tree: QuestionTree) -> None:
        self._tree = tree

    def next(self, position: QuestionPosition) -> QuestionPosition | None:
        """Return the following position, or None when the survey is complete."""
        tree = self._tree
        c, s, t, q = position.as_tuple()
        n_categories = len(tree.categories)

        q += 1
        while c < n_categories:
            subs = tree.categories[c].subcategories
            while s < len(subs):
                topics = subs[s].topics
                while t < len(topics):
                    if q < len(topics[t].questions):
                        return QuestionPosition.from_tuple((c, s, t, q))
                    t, q = t + 1, 0
                s, t, q = s + 1, 0, 0
            c, s, t, q = c + 1, 0, 0, 0
        return None

    def previous(self, position: QuestionPosition) -> QuestionPosition | None:
        """Return the preceding position, or None at the very first question."""
        c, s, t, q = position.as_tuple()
        if q > 0:
            return QuestionPosition.from_tuple((c, s, t, q - 1))

        # Walk earlier topics backwards; empty containers are skipped.
        categories = self._tree.categories
        for ci in range(min(c, len(categories) - 1), -1, -1):
            subs = categories[ci].subcategories
            s_start = min(s, len(subs) - 1) if ci == c else len(subs) - 1
            for si in range(s_start, -1, -1):
                topics = subs[si].topics
                if ci == c and si == s:
                    t_start = min(t, len(topics)) - 1
                else:
                    t_start = len(topics) - 1
                for ti in range(t_start, -1, -1):
                    n_questions = len(topics[ti].questions)
                    if n_questions:
                        return QuestionPosition.from_tuple((ci, si, ti, n_questions - 1))
        return None

    def resume_from(self, answered_ids: Iterable[str]) -> QuestionPosition | None:
        """First unanswered position in canonical order.

        If every question has an answer, the last position is returned.
        Ids outside the tree (attention checks, stale ids) are ignored.
        Returns None only for an empty tree.
        """
        answered = set(answered_ids)
        last = None
        for position in self._tree.iter_positions():
            if position.question_id not in answered:
                return position
            last = position
        return last

    def is_last(self, position: QuestionPosition) -> bool:
        return self.next(position) is None

    def completed_count(self, answered_ids: Iterable[str]) -> int:
        """Number of distinct tree questions in ``answered_ids``."""
        answered = set(answered_ids)
        return sum(
            1 for position in self._tree.iter_positions()
            if position.question_id in answered
        )

    def percent_complete(self, completed: int) -> float:
        total = self._tree.total_question_count
        if total <= 0:
            return 0.0
        return round(min(completed, total) * 100.0 / total, 1)


def estimate_time_remaining(
    total_questions: int,
    completed_questions: int,
    seconds_per_question: int = AVERAGE_SECONDS_PER_QUESTION,
) -> str:
    """Human-readable remaining-time hint, e.g. ``"~4 minutes remaining"``."""
    remaining = max(total_questions - completed_questions, 0)
    seconds = remaining * seconds_per_question
    if seconds < 3600:
        minutes = math.ceil(seconds / 60)
        return f"~{minutes} minute{'s' if minutes != 1 else ''} remaining"
    hours = math.ceil(seconds / 3600)
    return f"~{hours} hour{'s' if hours != 1 else ''} remaining"
