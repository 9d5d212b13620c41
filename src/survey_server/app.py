"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads the question catalogue, initialises the
    region quotas and builds the session controller once
  - CORS middleware
  - Global exception handlers (SDK errors → 400/404/409, store → 500)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``survey-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from survey_db.engine import dispose_engine, get_engine, get_session_factory
from survey_engine.constants import overlapping_states
from survey_engine.controller import SessionController
from survey_engine.quality import HeuristicQualityAnalyzer
from survey_engine.quota import RegionQuotaManager
from survey_engine.tree import QuestionTree

from survey_server.config import ServerSettings, load_settings
from survey_server.errors import (
    generic_error_handler,
    request_validation_handler,
    store_unavailable_handler,
    value_error_handler,
)
from survey_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan: runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Load the question catalogue into a ``QuestionTree``
      2. Report states listed under more than one region
      3. Upsert region quota limits (live counts are never reset)
      4. Build the ``SessionController`` and stash it on ``app.state``

    Shutdown:
      1. Dispose the database engine's connection pool
    """
    settings: ServerSettings = app.state.settings

    # --- Load catalogue ---
    tree = QuestionTree(settings.catalogue_path)
    tree.load()

    for state, regions in sorted(overlapping_states().items()):
        logger.warning(
            "Region taxonomy: %s is listed under %s", state, ", ".join(regions)
        )

    # --- Quotas ---
    quotas = RegionQuotaManager()
    factory = get_session_factory()
    async with factory() as db:
        await quotas.initialize(db, settings.region_quotas)
        await db.commit()

    # --- Controller ---
    app.state.tree = tree
    app.state.controller = SessionController(
        tree,
        quotas,
        HeuristicQualityAnalyzer(),
        attention_interval=settings.attention_interval,
    )

    yield

    # --- Shutdown ---
    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Cultural Survey API Server",
        description="REST API for the regional cultural-knowledge survey",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings so the lifespan handler can read them
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(OperationalError, store_unavailable_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies DB connectivity."""
        try:
            engine = get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": str(exc)}

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn survey_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``survey-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "survey_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
