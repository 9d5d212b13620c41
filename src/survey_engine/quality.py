"""Heuristic response-quality scoring.

Scores start at 100.  Penalties are applied for lazy "none"-style
answers, gibberish (or, if no gibberish was found, keyboard mashing),
heavy word repetition and vague filler; specificity markers earn back a
capped bonus.  The result is clamped to [0, 100].

The thresholds here are tuning, not contract: swap in another
:class:`~survey_engine.interfaces.ResponseQualityPolicy` to change them.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Sequence

from survey_engine.interfaces import ResponseQualityPolicy
from survey_engine.models.quality import PatternAnalysis, PatternIssue, QualityScore

# --- penalties / bonus ---
NONE_PENALTY = 25
GIBBERISH_PENALTY = 60
MASHING_PENALTY = 50
REPETITION_PENALTY = 30
VAGUE_PENALTY = 15
POSITIVE_BONUS = 8
POSITIVE_BONUS_CAP = 20

# Only very short "none"-like answers are penalised.
NONE_MAX_LENGTH = 8

# --- pattern thresholds (percent of answers) ---
MIN_PATTERN_RESPONSES = 3
NONE_RATE_THRESHOLD = 30.0
GIBBERISH_RATE_THRESHOLD = 40.0
FAST_RATE_THRESHOLD = 30.0
FAST_RESPONSE_SECONDS = 5

_NONE_PATTERNS = (
    re.compile(r"^(none|n/a|na|nothing|no|idk|dk)$"),
    re.compile(r"^(same|normal|usual|regular|typical)$"),
)
_LEGITIMATE_NONE_PATTERNS = (
    re.compile(r"^(none that i know|nothing that i know|not in my region|not applicable here)"),
    re.compile(r"^(we don't have|not common here|not practiced in)"),
)

# Whole-text gibberish shapes.
_GIBBERISH_PATTERNS = (
    re.compile(r"^[bcdfghjklmnpqrstvwxz]{6,}$"),   # all consonants
    re.compile(r"^[aeiou]{6,}$"),                  # all vowels
    re.compile(r"(.{3,})\1{2,}"),                  # repeated n-gram
    re.compile(r"^[^a-z]*$"),                      # no letters at all
    re.compile(r"^[a-z]{20,}$"),                   # long unspaced string
)

_CONSONANT_RUN_RE = re.compile(r"[bcdfghjklmnpqrstvwxz]{5,}")
_VOWEL_RUN_RE = re.compile(r"[aeiou]{5,}")
_ANY_VOWEL_RE = re.compile(r"[aeiouy]")
_LETTERS_RE = re.compile(r"[^a-z]")

# Share of word tokens that must look random for the text to count as gibberish.
GIBBERISH_TOKEN_SHARE = 0.5

_MASHING_RE = re.compile(r"qwert|asdf|zxcv|hjkl|yuiop")
_MASHING_TOKENS = frozenset({"test", "abcd", "1234", "xxx", "yyy", "zzz"})
_REPEATED_CHAR_RE = re.compile(r"(.)\1{4,}")

_VAGUE_WORDS = ("something", "things", "stuff", "anything", "everything")
_VAGUE_RE = re.compile(r"\b(" + "|".join(_VAGUE_WORDS) + r")\b")

_POSITIVE_PATTERNS = (
    re.compile(r"\b(example|for instance|specifically|traditionally|commonly|usually|typically)\b"),
    re.compile(r"\b(in my region|in our area|locally|here we|we usually|in our culture|in our village|in our state)\b"),
    re.compile(r"\b(such as|like|including|consists of|involves|includes)\b"),
)


def _looks_random(token: str) -> bool:
    """Word-level gibberish test on a letters-only token."""
    if len(token) >= 4 and not _ANY_VOWEL_RE.search(token):
        return True
    return bool(_CONSONANT_RUN_RE.search(token) or _VOWEL_RUN_RE.search(token))


def is_gibberish(text: str) -> bool:
    """``text`` must already be lower-cased and trimmed."""
    if any(pattern.search(text) for pattern in _GIBBERISH_PATTERNS):
        return True
    tokens = [t for t in (_LETTERS_RE.sub("", raw) for raw in text.split()) if t]
    if not tokens:
        return False
    random_like = sum(1 for token in tokens if _looks_random(token))
    return random_like / len(tokens) >= GIBBERISH_TOKEN_SHARE


def is_keyboard_mashing(text: str) -> bool:
    if _MASHING_RE.search(text) or _REPEATED_CHAR_RE.search(text):
        return True
    return any(token in _MASHING_TOKENS for token in text.split())


class HeuristicQualityAnalyzer(ResponseQualityPolicy):
    """Default regex/counting implementation of the quality policy."""

    def score_response(self, text: str) -> QualityScore:
        issues: list[str] = []
        score = 100
        none_response = False
        gibberish = False

        normalized = (text or "").lower().strip()

        if (
            len(normalized) < NONE_MAX_LENGTH
            and any(p.search(normalized) for p in _NONE_PATTERNS)
            and not any(p.search(normalized) for p in _LEGITIMATE_NONE_PATTERNS)
        ):
            none_response = True
            issues.append("Very brief response - consider adding more detail if possible")
            score -= NONE_PENALTY

        if is_gibberish(normalized):
            gibberish = True
            issues.append("Appears to be random characters or gibberish")
            score -= GIBBERISH_PENALTY
        elif is_keyboard_mashing(normalized):
            gibberish = True
            issues.append("Keyboard mashing or test input detected")
            score -= MASHING_PENALTY

        counts = Counter(word for word in normalized.split() if len(word) > 2)
        if any(count > 3 for count in counts.values()):
            issues.append("Excessive word repetition")
            score -= REPETITION_PENALTY

        if len(_VAGUE_RE.findall(normalized)) > 3:
            issues.append("Response lacks specific details")
            score -= VAGUE_PENALTY

        positives = sum(1 for p in _POSITIVE_PATTERNS if p.search(normalized))
        if positives:
            score += min(positives * POSITIVE_BONUS, POSITIVE_BONUS_CAP)

        return QualityScore(
            score=max(0, min(100, score)),
            issues=issues,
            is_none_response=none_response,
            is_gibberish=gibberish,
        )

    def analyze_pattern(
        self, responses: Sequence[tuple[str, int]]
    ) -> PatternAnalysis:
        if len(responses) < MIN_PATTERN_RESPONSES:
            return PatternAnalysis()

        none_count = gibberish_count = fast_count = 0
        for answer, time_spent in responses:
            verdict = self.score_response(answer)
            none_count += verdict.is_none_response
            gibberish_count += verdict.is_gibberish
            fast_count += time_spent < FAST_RESPONSE_SECONDS

        total = len(responses)
        none_rate = none_count * 100.0 / total
        gibberish_rate = gibberish_count * 100.0 / total
        fast_rate = fast_count * 100.0 / total

        warnings: list[str] = []
        issue: PatternIssue | None = None
        if none_rate >= NONE_RATE_THRESHOLD:
            warnings.append(f'High rate of "none" responses ({none_rate:.1f}%)')
            issue = "none"
        if gibberish_rate >= GIBBERISH_RATE_THRESHOLD:
            warnings.append(f"High rate of gibberish responses ({gibberish_rate:.1f}%)")
            issue = issue or "gibberish"
        if fast_rate >= FAST_RATE_THRESHOLD:
            warnings.append(f"High rate of very quick responses ({fast_rate:.1f}%)")
            issue = issue or "speed"

        return PatternAnalysis(
            suspicious_pattern=bool(warnings),
            warnings=warnings,
            none_response_rate=none_rate,
            gibberish_response_rate=gibberish_rate,
            fast_response_rate=fast_rate,
            issue_type=issue,
        )
