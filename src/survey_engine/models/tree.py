"""Question catalogue models.

The catalogue file keeps the original field names (``category``,
``subcategory``, ``topic``) as keys; the models expose them as ``name``.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

from survey_engine.errors import ValidationError

_QUESTION_ID_RE = re.compile(r"^(\d+)-(\d+)-(\d+)-(\d+)$")


class Topic(BaseModel):
    """Leaf container: an ordered list of question texts."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="topic")
    questions: list[str] = Field(default_factory=list)


class Subcategory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="subcategory")
    topics: list[Topic] = Field(default_factory=list)


class Category(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="category")
    subcategories: list[Subcategory] = Field(default_factory=list)


class QuestionPosition(BaseModel):
    """Zero-based coordinates of one question in the tree.

    Frozen so positions can be used as dict keys and compared by value.
    """

    model_config = ConfigDict(frozen=True)

    category_index: int = Field(0, ge=0)
    subcategory_index: int = Field(0, ge=0)
    topic_index: int = Field(0, ge=0)
    question_index: int = Field(0, ge=0)

    @property
    def question_id(self) -> str:
        """Canonical ``"{c}-{s}-{t}-{q}"`` encoding."""
        return (
            f"{self.category_index}-{self.subcategory_index}-"
            f"{self.topic_index}-{self.question_index}"
        )

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (
            self.category_index,
            self.subcategory_index,
            self.topic_index,
            self.question_index,
        )

    @classmethod
    def from_tuple(cls, values: tuple[int, int, int, int]) -> QuestionPosition:
        c, s, t, q = values
        return cls(
            category_index=c,
            subcategory_index=s,
            topic_index=t,
            question_index=q,
        )

    @classmethod
    def from_question_id(cls, question_id: str) -> QuestionPosition:
        """Decode a tree question id.

        Raises:
            ValidationError: for anything that is not exactly four
                dash-separated non-negative integers (including
                attention-check ids).
        """
        match = _QUESTION_ID_RE.match(question_id or "")
        if match is None:
            raise ValidationError(f"Not a tree question id: {question_id!r}")
        return cls.from_tuple(tuple(int(part) for part in match.groups()))


class QuestionContext(BaseModel):
    """Text snapshot of a question and its ancestors."""

    question_id: str
    position: QuestionPosition
    category: str
    subcategory: str
    topic: str
    question: str
