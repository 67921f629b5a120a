"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - A shared ``FunnelEngine`` on ``app.state`` (per-session locks live there)
  - Lifespan handler that disposes the DB pool on shutdown
  - CORS middleware
  - Global exception handlers (SDK errors → 422/404/409/400/500)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``offer-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from offer_db.engine import dispose_engine, get_engine
from offer_funnel.engine import FunnelEngine
from offer_funnel.errors import (
    OfferNotFoundError,
    SessionClosedError,
    SessionNotFoundError,
    StepValidationError,
)

from offer_server.config import ServerSettings, load_settings
from offer_server.errors import (
    generic_error_handler,
    not_found_handler,
    session_closed_handler,
    validation_error_handler,
    value_error_handler,
)
from offer_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan: runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log startup; dispose the database engine's connection pool on shutdown."""
    settings: ServerSettings = app.state.settings
    logger.info(
        "Offer API starting (cors=%s, idle_minutes=%d)",
        settings.cors_origins, settings.session_idle_minutes,
    )

    yield

    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Offer Funnel API",
        description="REST API for multi-step lead-gen offer funnels",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.funnel_engine = FunnelEngine()

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers (most specific class wins) ---
    app.add_exception_handler(StepValidationError, validation_error_handler)
    app.add_exception_handler(SessionNotFoundError, not_found_handler)
    app.add_exception_handler(OfferNotFoundError, not_found_handler)
    app.add_exception_handler(SessionClosedError, session_closed_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies DB connectivity."""
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": str(exc)}

    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn offer_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``offer-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "offer_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
