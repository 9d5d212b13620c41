"""Domain exceptions raised by the survey SDK.

Every class derives from ``ValueError`` so callers that only know the
standard library can still catch them.  The HTTP layer maps each class to
a status code in ``survey_server.errors``.
"""


class SurveyError(ValueError):
    """Base class for all survey domain errors."""


class ValidationError(SurveyError):
    """Malformed input: bad position, answer length, identity format.

    Always raised before anything is written.
    """


class ConflictError(SurveyError):
    """A normal rejection outcome (duplicate identity, quota full)."""


class DuplicateIdentityError(ConflictError):
    """The participant identity has already been used."""


class QuotaFullError(ConflictError):
    """The participant's region has no free slot."""


class NotFoundError(SurveyError):
    """Unknown session token."""


class InvalidTransitionError(SurveyError):
    """A status transition out of a terminal state was requested."""


class TransientStoreError(SurveyError):
    """The backing store is unavailable; the caller is expected to retry."""
