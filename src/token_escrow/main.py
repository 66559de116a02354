"""FastAPI application entry point for the token escrow ledger.

Lifecycle:
    1. Startup: Initialize logging, database, create tables (dev mode),
       deploy the programs into a runtime.
    2. Running: Serve the transaction and query API on a single Uvicorn process.
    3. Shutdown: Dispose of the database engine.

Run with:
    uv run uvicorn token_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from token_escrow.config import get_settings
from token_escrow.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
    )

    # 2. Initialize database
    from token_escrow.infrastructure.database.engine import (
        _get_session_factory,
        close_db,
        init_db,
    )

    await init_db()

    # 3. Deploy programs
    from token_escrow.runtime.processor import build_runtime

    app.state.runtime = build_runtime(_get_session_factory(), settings)

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Token Escrow",
        description=(
            "Two-party token escrow ledger. Makers lock an asset in a "
            "program-controlled vault; takers swap atomically."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from token_escrow.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from token_escrow.api.routes.accounts import router as accounts_router
    from token_escrow.api.routes.health import router as health_router
    from token_escrow.api.routes.offers import router as offers_router
    from token_escrow.api.routes.transactions import router as transactions_router

    app.include_router(health_router)
    app.include_router(transactions_router)
    app.include_router(offers_router)
    app.include_router(accounts_router)

    return app


# The app instance used by Uvicorn
app = create_app()
