"""Process-wide async engine for the survey database.

Every request of the survey service runs in one ``AsyncSession`` from
:func:`get_session_factory`; admission bursts at launch are the peak
load, so the pool is sized from ``SURVEY_DB_POOL_SIZE`` and
``SURVEY_DB_MAX_OVERFLOW``.  Connections identify themselves to
PostgreSQL as ``survey-server`` so quota-counter locks can be traced in
``pg_stat_activity``.  The lifespan calls :func:`dispose_engine` on
shutdown.
"""

import os
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from survey_db.config import get_async_url

APPLICATION_NAME = "survey-server"

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def engine_options() -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine``, read from the environment."""
    return {
        "echo": os.getenv("SURVEY_DB_ECHO", "").lower() in ("1", "true", "yes"),
        "pool_size": int(os.getenv("SURVEY_DB_POOL_SIZE", "10")),
        "max_overflow": int(os.getenv("SURVEY_DB_MAX_OVERFLOW", "20")),
        "pool_recycle": int(os.getenv("SURVEY_DB_POOL_RECYCLE", "1800")),
        "pool_pre_ping": True,
        "connect_args": {"server_settings": {"application_name": APPLICATION_NAME}},
    }


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(get_async_url(), **engine_options())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows usable after commit."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
