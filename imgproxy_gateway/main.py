"""imgproxy gateway FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app(): testable application factory
  - lifespan    : @asynccontextmanager startup/shutdown sequence
  - exception handlers mapping framework errors to the gateway's JSON errors

Startup sequence:
  1. config (given to create_app(), else load_config()) → app.state.config
     load_config() raises SystemExit(1) on bad config, so the server never
     starts accepting connections with it.
  2. create_http_client(config)                         → app.state.http_client
  3. app.state.ready = True

Shutdown: app.state.ready = False → close the shared HTTP client.

The gateway owns every path (``/{path:path}``), so FastAPI's docs and OpenAPI
routes are disabled.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from imgproxy_gateway.config import GatewayConfig, load_config
from imgproxy_gateway.proxy.engine import (
    create_http_client,
    log_request_received,
    router as engine_router,
)
from imgproxy_gateway.responses import make_error_response
from imgproxy_gateway.utils.logger import get_logger

logger = get_logger(__name__)


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(config: Optional[GatewayConfig] = None) -> FastAPI:
    """Create and configure the gateway FastAPI application.

    Args:
        config: Preloaded configuration. When omitted, the lifespan calls
                load_config() at startup.

    Returns:
        Configured FastAPI application with lifespan, router and handlers.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("imgproxy gateway starting up...")

        effective_config: GatewayConfig = config if config is not None else load_config()
        app.state.config = effective_config

        # Single shared client with connection pooling; never per-request.
        http_client: httpx.AsyncClient = create_http_client(effective_config)
        app.state.http_client = http_client
        logger.info(
            "HTTP client created",
            imgproxy_url=effective_config.imgproxy_url,
            timeout_s=effective_config.upstream_timeout_s,
        )

        app.state.ready = True
        logger.info("imgproxy gateway ready")

        yield

        logger.info("imgproxy gateway shutting down...")
        app.state.ready = False
        try:
            await http_client.aclose()
            logger.info("HTTP client closed")
        except Exception as exc:
            logger.warning("HTTP client close error (non-fatal)", error=str(exc))
        logger.info("imgproxy gateway shutdown complete")

    application = FastAPI(
        title="imgproxy gateway",
        description="Redirects full-size images to object storage and streams signed imgproxy thumbnails",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.state.ready = False

    application.include_router(engine_router)

    # Global exception handlers
    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        if exc.status_code == 405:
            # Methods outside the routed set never reach gateway_handler.
            log_request_received(request)
            return make_error_response(f"Invalid request method {request.method}", 405)
        return make_error_response(str(exc.detail), exc.status_code)

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal server error"}
        )

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────
#   uvicorn imgproxy_gateway.main:app --port 5558
# Config is loaded by the lifespan. `imgproxy-gateway` (run.py) is preferred:
# it loads config before uvicorn is even started.

app = create_app()
