"""Survey constants shared across the SDK.

Several values can be overridden via environment variables so a
deployment can retune cadence or bounds without code changes.
"""

import os

# An attention check is injected after every K-th answered tree question.
ATTENTION_CHECK_INTERVAL = int(os.getenv("ATTENTION_CHECK_INTERVAL", "7"))

# Synthetic question-id namespace for attention-check responses:
# ATTENTION_CHECK_{answered_count}_{question_id}
ATTENTION_CHECK_PREFIX = "ATTENTION_CHECK_"

# Stored answer length bounds (characters, after trimming).
ANSWER_MIN_LENGTH = int(os.getenv("ANSWER_MIN_LENGTH", "4"))
ANSWER_MAX_LENGTH = int(os.getenv("ANSWER_MAX_LENGTH", "5000"))

# Participant identities are 24 alphanumeric characters.
PARTICIPANT_ID_PATTERN = r"^[A-Za-z0-9]{24}$"

# Age bounds accepted at intake.
MIN_PARTICIPANT_AGE = 18
MAX_PARTICIPANT_AGE = 100

# Per-region participant ceilings used when REGION_QUOTAS is not set.
DEFAULT_REGION_QUOTAS: dict[str, int] = {
    "north": 12,
    "south": 10,
    "east": 10,
    "west": 10,
    "central": 8,
}

# Interval of the client-side elapsed-time tick, in seconds.
TIMER_TICK_SECONDS = 1

# Default per-question pace used for the remaining-time estimate.
AVERAGE_SECONDS_PER_QUESTION = 120

# States and union territories per region.  Some states appear under two
# regions (e.g. Rajasthan in North and West); that overlap is reported at
# startup and left for product owners to resolve.
REGION_STATES: dict[str, tuple[str, ...]] = {
    "north": (
        "Delhi", "Punjab", "Haryana", "Himachal Pradesh", "Jammu and Kashmir",
        "Ladakh", "Uttarakhand", "Uttar Pradesh", "Rajasthan", "Chandigarh",
    ),
    "south": (
        "Andhra Pradesh", "Karnataka", "Kerala", "Tamil Nadu", "Telangana",
        "Puducherry", "Lakshadweep", "Andaman and Nicobar Islands",
    ),
    "east": (
        "West Bengal", "Odisha", "Jharkhand", "Bihar", "Sikkim", "Assam",
        "Arunachal Pradesh", "Manipur", "Meghalaya", "Mizoram", "Nagaland",
        "Tripura",
    ),
    "west": (
        "Maharashtra", "Gujarat", "Rajasthan", "Goa", "Madhya Pradesh",
        "Chhattisgarh", "Dadra and Nagar Haveli and Daman and Diu",
    ),
    "central": ("Madhya Pradesh", "Chhattisgarh"),
}


def overlapping_states() -> dict[str, list[str]]:
    """Return states listed under more than one region, with those regions."""
    seen: dict[str, list[str]] = {}
    for region, states in REGION_STATES.items():
        for state in states:
            seen.setdefault(state, []).append(region)
    return {state: regions for state, regions in seen.items() if len(regions) > 1}
