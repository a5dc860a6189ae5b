"""
FastAPI application factory for the Linewatch API service.

Creates the app with:
- REST routes (odds, scores, history)
- Middleware stack
- Health and status endpoints
- Lifespan management (provider clients, cache context)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import Depends, FastAPI

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.assembler import ResponseAssembler, build_assembler
from api.dependencies import get_assembler, init_dependencies, reset_dependencies
from api.middleware import setup_middleware
from api.routes.history import router as history_router
from api.routes.odds import router as odds_router
from api.routes.scores import debug_router as scores_debug_router
from api.routes.scores import router as scores_router

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for tests that install their own assembler."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Starts the provider HTTP clients on startup and closes them on shutdown.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server(settings.metrics_port)

    if not settings.odds_api_key:
        logger.warning("odds_api_key_missing", odds=settings.odds_url_safe_log)

    assembler = build_assembler(settings)
    await assembler.start()
    init_dependencies(assembler)

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        sport_key=settings.sport_key,
        cache_ttl_s=settings.cache_ttl_s,
        window_s=settings.window_s,
    )

    yield

    await assembler.close()
    reset_dependencies()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    settings = get_settings()

    app = FastAPI(
        title="Linewatch API",
        description="Throttled odds, normalized live scores and intraday total history",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(odds_router)
    app.include_router(scores_router)
    app.include_router(history_router)
    if settings.debug:
        app.include_router(scores_debug_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/api/status", tags=["system"])
    async def system_status(
        assembler: ResponseAssembler = Depends(get_assembler),
    ) -> dict[str, Any]:
        """Throttle windows, cache ages and upstream quota."""
        return {"status": "ok", **assembler.status()}

    return app


# For running with uvicorn directly
app = create_app()
