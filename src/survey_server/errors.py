"""Global exception handlers — map SDK exceptions to HTTP status codes.

The SDK raises subclasses of ``SurveyError`` (itself a ``ValueError``).
Rather than catching these in every route, global handlers pick the status
code from the exception class.  Subclasses are listed before their bases;
the first ``isinstance`` match wins.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from survey_engine.errors import (
    ConflictError,
    DuplicateIdentityError,
    InvalidTransitionError,
    NotFoundError,
    QuotaFullError,
    TransientStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_CLASS: list[tuple[type[Exception], int]] = [
    # A reused identity is a client error, not a conflict to retry
    (DuplicateIdentityError, 400),
    (QuotaFullError, 409),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (ConflictError, 409),
    (TransientStoreError, 500),
    (ValidationError, 400),
]


def status_for(exc: Exception) -> int:
    for cls, status in _STATUS_BY_CLASS:
        if isinstance(exc, cls):
            return status
    return 400


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map SDK errors (and stray ``ValueError``) to an HTTP error response.

    Domain messages are written for participants and carry no internals,
    so they are returned as-is.  Quota rejections also carry a
    ``quota_full`` flag for clients that switch on it.
    """
    status = status_for(exc)
    logger.warning("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc)
    content: dict = {"detail": str(exc)}
    if isinstance(exc, QuotaFullError):
        content["quota_full"] = True
    return JSONResponse(status_code=status, content=content)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are 400, matching the SDK's ValidationError."""
    logger.warning("Request validation failed at %s: %s", request.url, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


async def store_unavailable_handler(
    request: Request, exc: OperationalError
) -> JSONResponse:
    """Database unreachable — 500 with a retry hint; counters stay consistent."""
    logger.error("Store unavailable at %s: %s", request.url, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Storage temporarily unavailable, please retry", "retry": True},
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
