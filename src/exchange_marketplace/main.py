"""FastAPI application entry point for the Exchange Marketplace.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, create tables (dev mode).
    2. Running: Serve the REST API + MCP read tools on a single Uvicorn process.
    3. Shutdown: Close database and Redis connections gracefully.

The MCP server is mounted at /mcp so agents can query negotiations and
ecosystems alongside the REST API at /v1/*.

Run with:
    uv run uvicorn exchange_marketplace.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from exchange_marketplace.config import get_settings
from exchange_marketplace.logging_config import get_logger, setup_logging

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
        contract_gateway=settings.contract_gateway_mode,
    )

    # 2. Initialize database
    from exchange_marketplace.infrastructure.database.engine import close_db, init_db

    await init_db()

    # 3. Initialize Redis (idempotency keys only; the API runs without it)
    from exchange_marketplace.infrastructure.redis_client import close_redis, init_redis

    try:
        await init_redis()
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app(with_lifespan: bool = True) -> FastAPI:
    """Application factory — creates and configures the FastAPI app.

    Tests build the app without the lifespan and override the session and
    gateway dependencies instead.
    """
    settings = get_settings()

    app = FastAPI(
        title="Exchange Marketplace",
        description=(
            "Lifecycle engine for bilateral data-exchange negotiations and "
            "multi-party data ecosystems."
        ),
        version="0.1.0",
        lifespan=lifespan if with_lifespan else None,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from exchange_marketplace.api.middleware import setup_exception_handlers, setup_middleware

    setup_middleware(app)
    setup_exception_handlers(app)

    # --- REST API Routes ---
    from exchange_marketplace.api.routes.ecosystems import router as ecosystems_router
    from exchange_marketplace.api.routes.health import router as health_router
    from exchange_marketplace.api.routes.negotiation import router as negotiation_router

    app.include_router(health_router)
    app.include_router(negotiation_router, prefix=settings.api_prefix)
    app.include_router(ecosystems_router, prefix=settings.api_prefix)

    # --- MCP Server (mounted as sub-application) ---
    if with_lifespan:
        from exchange_marketplace.mcp_server.tools import mcp

        app.mount("/mcp", mcp.sse_app())

    return app


# The app instance used by Uvicorn
app = create_app()
