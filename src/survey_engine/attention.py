"""AttentionCheckScheduler — cadence and validation of injected checks.

A check is due after every K-th *regular* answer (K defaults to
:data:`~survey_engine.constants.ATTENTION_CHECK_INTERVAL`).  A watermark
records the highest count at which a check was already shown, so moving
back to an earlier question and forward again never shows a second check
at the same count.

Check answers are stored under a synthetic id
(``ATTENTION_CHECK_{count}_{question_id}``) that can never be parsed as a
tree position.
"""

from __future__ import annotations

import logging
import random
import re

from survey_engine.constants import ATTENTION_CHECK_INTERVAL, ATTENTION_CHECK_PREFIX
from survey_engine.models.attention import AttentionCheck, CheckContext

logger = logging.getLogger(__name__)

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")

# Extra spellings accepted for a given canonical answer, matched as whole
# words of the normalized response.
SYNONYMS: dict[str, tuple[str, ...]] = {
    "yellow": ("gold", "golden"),
    "tuesday": ("tue", "tues"),
    "india": ("hindustan",),
}

# (kind, question, accepted answers); the personal check is built per
# participant in :meth:`AttentionCheckScheduler.generate`.
_CHECK_POOL: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    (
        "basic",
        "This survey is about cultural practices in which country? "
        "Please type the country name.",
        ("india", "bharat"),
    ),
    (
        "instruction",
        "To show you are reading carefully, please type the colour of the sun "
        "as it is usually drawn by children.",
        ("yellow",),
    ),
    (
        "comprehension",
        "Which day of the week comes right after Monday? Please type the day.",
        ("tuesday",),
    ),
)


def normalize_answer(text: str | None) -> str:
    """Lower-case, drop punctuation and collapse line breaks and whitespace."""
    if not text:
        return ""
    cleaned = _LINE_BREAK_RE.sub(" ", text.lower()).strip()
    cleaned = _PUNCTUATION_RE.sub("", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def attention_check_id(answered_count: int, question_id: str) -> str:
    """Synthetic id of the check shown after ``answered_count`` answers."""
    return f"{ATTENTION_CHECK_PREFIX}{answered_count}_{question_id}"


def is_attention_check_id(question_id: str) -> bool:
    return question_id.startswith(ATTENTION_CHECK_PREFIX)


class AttentionCheckScheduler:
    """Decides when to inject a check and validates the answer.

    Args:
        interval: the cadence K; must be positive
        watermark: highest count a check was already injected at
        rng: random source for picking from the pool (seedable in tests)
    """

    def __init__(
        self,
        interval: int = ATTENTION_CHECK_INTERVAL,
        watermark: int = 0,
        rng: random.Random | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Attention-check interval must be positive, got {interval}")
        self.interval = interval
        self.watermark = watermark
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Cadence
    # ------------------------------------------------------------------

    def is_due(self, answered_count: int) -> bool:
        """Pure cadence test, ignoring the watermark."""
        return answered_count > 0 and answered_count % self.interval == 0

    def should_inject(self, answered_count: int) -> bool:
        """True exactly once per multiple of K.

        Advances the watermark when it fires.
        """
        if not self.is_due(answered_count) or answered_count <= self.watermark:
            return False
        self.watermark = answered_count
        logger.debug("Attention check due at answered count %d", answered_count)
        return True

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def pool(self, context: CheckContext) -> list[AttentionCheck]:
        """All checks available for this context."""
        checks = [
            AttentionCheck(
                kind=kind,
                question=question,
                accepted_answers=list(answers),
                category=context.category,
                topic=context.topic,
            )
            for kind, question, answers in _CHECK_POOL
        ]
        if context.region:
            checks.append(
                AttentionCheck(
                    kind="personal",
                    question=(
                        "What region of India did you specify at the beginning of "
                        "this survey? Please write the name of the region (North, "
                        "South, East, West, or Central)."
                    ),
                    accepted_answers=[context.region.lower()],
                    category=context.category,
                    topic=context.topic,
                )
            )
        if context.topic:
            checks.append(
                AttentionCheck(
                    kind="context",
                    question=(
                        "Please type the word 'culture' to confirm you are still "
                        f"answering questions about {context.topic}."
                    ),
                    accepted_answers=["culture"],
                    category=context.category,
                    topic=context.topic,
                )
            )
        return checks

    def generate(self, context: CheckContext) -> AttentionCheck:
        return self._rng.choice(self.pool(context))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate(raw_answer: str | None, accepted_answers: list[str]) -> bool:
        """Accept on exact match, containment, or a documented synonym."""
        answer = normalize_answer(raw_answer)
        if not answer:
            return False
        words = set(answer.split(" "))
        for accepted in accepted_answers:
            expected = normalize_answer(accepted)
            if not expected:
                continue
            if answer == expected or expected in answer:
                return True
            if words.intersection(SYNONYMS.get(expected, ())):
                return True
        return False
