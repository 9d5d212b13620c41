"""Input validators shared by the controller and the HTTP layer.

Each validator returns the cleaned value or raises
:class:`~survey_engine.errors.ValidationError` before anything is written.
"""

import re

from survey_engine.constants import (
    ANSWER_MAX_LENGTH,
    ANSWER_MIN_LENGTH,
    DEFAULT_REGION_QUOTAS,
    PARTICIPANT_ID_PATTERN,
)
from survey_engine.errors import ValidationError

_PARTICIPANT_ID_RE = re.compile(PARTICIPANT_ID_PATTERN)

REGIONS: tuple[str, ...] = tuple(DEFAULT_REGION_QUOTAS)


def validate_answer(answer: str | None) -> str:
    """Return the trimmed answer if its length is within bounds.

    The minimum applies to the trimmed text; the maximum to the raw text,
    so padding cannot smuggle an oversize answer through.
    """
    if answer is None or not answer.strip():
        raise ValidationError(
            'Please provide an answer or specify "none" if no answer exists'
        )
    if len(answer) > ANSWER_MAX_LENGTH:
        raise ValidationError(
            f"Answer is too long (maximum {ANSWER_MAX_LENGTH} characters)"
        )
    trimmed = answer.strip()
    if len(trimmed) < ANSWER_MIN_LENGTH:
        raise ValidationError(
            f"Please provide a more detailed answer (at least {ANSWER_MIN_LENGTH} "
            'characters) or specify "none"'
        )
    return trimmed


def is_valid_participant_id(participant_id: str | None) -> bool:
    return bool(participant_id) and _PARTICIPANT_ID_RE.match(participant_id) is not None


def validate_participant_id(participant_id: str | None) -> str:
    """Participant identities are exactly 24 alphanumeric characters."""
    if not is_valid_participant_id(participant_id):
        raise ValidationError(
            "Invalid participant ID format: expected 24 alphanumeric characters"
        )
    return participant_id


def normalize_region(region: str | None, regions: tuple[str, ...] = REGIONS) -> str:
    """Lower-case and check a region name against the known set."""
    value = (region or "").strip().lower()
    if value not in regions:
        raise ValidationError(
            f"Unknown region {region!r}; expected one of {', '.join(regions)}"
        )
    return value
