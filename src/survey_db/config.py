"""Survey database location, read from the environment.

``SURVEY_DATABASE_URL`` names the whole database when set.  Otherwise the
URL is assembled from ``SURVEY_DB_HOST``, ``SURVEY_DB_PORT``,
``SURVEY_DB_USER``, ``SURVEY_DB_PASSWORD`` and ``SURVEY_DB_NAME``, which
default to a local ``cultural_survey`` database.

Migrations run through psycopg2 and need :func:`get_sync_url`; the
service talks to PostgreSQL through asyncpg via :func:`get_async_url`.
Either accepts a URL written for the other driver, and the bare
``postgres://`` scheme some hosting platforms hand out.
"""

import os

DEFAULT_DB_NAME = "cultural_survey"

_SYNC_SCHEME = "postgresql://"
_ASYNC_SCHEME = "postgresql+asyncpg://"
_KNOWN_SCHEMES = (
    "postgresql+asyncpg://",
    "postgresql+psycopg2://",
    "postgresql://",
    "postgres://",
)


def _with_scheme(url: str, scheme: str) -> str:
    for known in _KNOWN_SCHEMES:
        if url.startswith(known):
            return scheme + url[len(known):]
    raise ValueError(f"Not a PostgreSQL URL: {url.split('://', 1)[0]}://…")


def _configured_url() -> str:
    url = os.getenv("SURVEY_DATABASE_URL")
    if url:
        return url
    host = os.getenv("SURVEY_DB_HOST", "localhost")
    port = os.getenv("SURVEY_DB_PORT", "5432")
    user = os.getenv("SURVEY_DB_USER", "survey")
    password = os.getenv("SURVEY_DB_PASSWORD", "survey")
    name = os.getenv("SURVEY_DB_NAME", DEFAULT_DB_NAME)
    return f"{_SYNC_SCHEME}{user}:{password}@{host}:{port}/{name}"


def get_sync_url() -> str:
    """psycopg2 URL of the survey database, for Alembic."""
    return _with_scheme(_configured_url(), _SYNC_SCHEME)


def get_async_url() -> str:
    """asyncpg URL of the survey database, for the service engine."""
    return _with_scheme(_configured_url(), _ASYNC_SCHEME)
