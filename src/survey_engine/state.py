"""Session status state machine.

``active`` is the only non-terminal state; every transition out of it is
one-way.  Completion reasons map onto terminal statuses through
:data:`REASON_TO_STATUS`.
"""

from survey_db.models.enums import CompletionReason, SessionStatus

from survey_engine.errors import InvalidTransitionError, ValidationError

TERMINAL_STATUSES: frozenset[SessionStatus] = frozenset(
    {
        SessionStatus.COMPLETED,
        SessionStatus.QUOTA_FULL,
        SessionStatus.EXPIRED,
        SessionStatus.ATTENTION_FAILED,
    }
)

REASON_TO_STATUS: dict[CompletionReason, SessionStatus] = {
    CompletionReason.COMPLETED: SessionStatus.COMPLETED,
    CompletionReason.ATTENTION_CHECK_FAILED: SessionStatus.ATTENTION_FAILED,
    CompletionReason.TIME_EXPIRED: SessionStatus.EXPIRED,
}


def is_terminal(status: SessionStatus | str) -> bool:
    return SessionStatus(status) in TERMINAL_STATUSES


def transition(current: SessionStatus | str, target: SessionStatus | str) -> SessionStatus:
    """Return ``target`` if ``current -> target`` is allowed.

    Re-entering the same terminal state is accepted so that a retried
    completion request is a no-op rather than an error.

    Raises:
        InvalidTransitionError: leaving a terminal state, or going back to
            ``active``.
    """
    current = SessionStatus(current)
    target = SessionStatus(target)
    if current == target and current in TERMINAL_STATUSES:
        return target
    if current != SessionStatus.ACTIVE or target == SessionStatus.ACTIVE:
        raise InvalidTransitionError(
            f"Cannot move session from {current.value} to {target.value}"
        )
    return target


def parse_reason(reason: CompletionReason | str) -> CompletionReason:
    try:
        return CompletionReason(reason)
    except ValueError:
        allowed = ", ".join(r.value for r in CompletionReason)
        raise ValidationError(
            f"Unknown completion reason {reason!r}; expected one of {allowed}"
        ) from None


def status_for_reason(reason: CompletionReason | str) -> SessionStatus:
    return REASON_TO_STATUS[parse_reason(reason)]
