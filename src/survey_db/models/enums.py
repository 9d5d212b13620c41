"""Database-level enumerations for survey sessions and admissions."""

import enum


class SessionStatus(str, enum.Enum):
    """Lifecycle states for a survey session.

    Transitions (one-way, every non-active state is terminal):
        active -> completed         (all questions answered)
        active -> attention_failed  (an injected attention check was failed)
        active -> expired           (completed with reason time_expired)
        active -> quota_full        (admission revoked for lack of a slot)
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    QUOTA_FULL = "quota_full"
    EXPIRED = "expired"
    ATTENTION_FAILED = "attention_failed"


class CompletionReason(str, enum.Enum):
    """Why a session was finalised."""

    COMPLETED = "completed"
    ATTENTION_CHECK_FAILED = "attention_check_failed"
    TIME_EXPIRED = "time_expired"


class AdmissionStatus(str, enum.Enum):
    """Outcome recorded for a participant identity at the admission gate.

    Only the two terminal outcomes of the admission state machine are
    persisted; duplicate identities are rejected without writing anything.
    """

    ADMITTED = "admitted"
    REJECTED_QUOTA_FULL = "rejected_quota_full"


class Region(str, enum.Enum):
    """Geographic buckets that carry an independent participant quota."""

    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"
    CENTRAL = "central"
