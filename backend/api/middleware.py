"""
API middleware stack.

- Request ID injection (X-Request-ID header)
- Structured request/response logging
- Error mapping (upstream failures -> 422, anything else -> 500)
- CORS configuration
"""
from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import get_settings
from shared.errors import UpstreamError, redact, truncate
from shared.utils.logging import get_logger

logger = get_logger(__name__)

UPSTREAM_ERROR_STATUS = 422


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Injects a unique X-Request-ID header into every request/response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs structured request/response information."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.monotonic()

        path = request.url.path
        if path in ("/health", "/metrics"):
            return await call_next(request)

        try:
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 2)
            request_id = getattr(request.state, "request_id", "unknown")

            logger.info(
                "http_request",
                method=request.method,
                path=path,
                status=response.status_code,
                duration_ms=duration_ms,
                request_id=request_id,
                client=request.client.host if request.client else "unknown",
            )

            return response

        except Exception as exc:
            duration_ms = round((time.monotonic() - start) * 1000, 2)
            request_id = getattr(request.state, "request_id", "unknown")
            logger.error(
                "http_request_error",
                method=request.method,
                path=path,
                duration_ms=duration_ms,
                request_id=request_id,
                error=str(exc),
                exc_info=True,
            )
            raise


def setup_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
        logger.warning(
            "upstream_error_response",
            path=request.url.path,
            provider=exc.provider,
            upstream_status=exc.status,
            request_id=getattr(request.state, "request_id", "unknown"),
        )
        return JSONResponse(
            status_code=UPSTREAM_ERROR_STATUS,
            content={
                "error": "Upstream error",
                "status": UPSTREAM_ERROR_STATUS,
                "detail": exc.detail,
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        settings = get_settings()
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            request_id=request_id,
            exc_info=True,
        )
        detail = truncate(redact(str(exc), settings.odds_api_key), settings.error_detail_max_len)
        return JSONResponse(
            status_code=500,
            content={"error": "Server error", "detail": detail},
        )


def setup_cors(app: FastAPI) -> None:
    """Configure CORS middleware."""
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def setup_middleware(app: FastAPI) -> None:
    """Apply all middleware to the FastAPI app in the correct order."""
    # 1. CORS (must be outermost for preflight)
    setup_cors(app)
    # 2. Request ID
    app.add_middleware(RequestIDMiddleware)
    # 3. Request logging
    app.add_middleware(RequestLoggingMiddleware)
    # 4. Exception handlers
    setup_exception_handlers(app)
