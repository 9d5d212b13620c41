"""Attention-check models."""

from typing import Literal

from pydantic import BaseModel, Field

AttentionCheckKind = Literal["basic", "personal", "instruction", "comprehension", "context"]


class CheckContext(BaseModel):
    """What the generator may draw on when building a check."""

    region: str | None = None
    category: str | None = None
    topic: str | None = None


class AttentionCheck(BaseModel):
    """A single injected check with its accepted answers.

    ``accepted_answers[0]`` is the primary answer stored as
    ``expected_answer`` alongside the participant's response.
    """

    kind: AttentionCheckKind
    question: str
    accepted_answers: list[str] = Field(min_length=1)
    category: str | None = None
    topic: str | None = None

    @property
    def expected_answer(self) -> str:
        return self.accepted_answers[0]


class IssuedAttentionCheck(BaseModel):
    """The client's view of an issued check: no accepted answers.

    ``answered_count`` is the key the answer must be submitted under.
    """

    answered_count: int
    kind: AttentionCheckKind
    question: str
    category: str | None = None
    topic: str | None = None


class AttentionCheckSubmission(BaseModel):
    """The participant's answer to an issued check.

    ``answered_count`` selects the check the server issued at that many
    regular answers; ``question_id`` is the question that was in flight.
    ``draft_answer`` is the unsaved text of that question; it is persisted
    only if the check fails.
    """

    session_id: str
    answered_count: int = Field(ge=1)
    question_id: str
    answer: str = Field(max_length=5000)
    time_spent: int = Field(0, ge=0)
    draft_answer: str | None = None
    draft_time_spent: int = Field(0, ge=0)


class AttentionCheckResult(BaseModel):
    passed: bool
    response_id: str
    status: str
    attention_checks_passed: int
    attention_checks_failed: int
