"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from starlette.responses import Response

from schrodrive.infrastructure.config import AppConfig
from schrodrive.interfaces.app_state import AppState
from schrodrive.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app; configuration only.

    Resources (HTTP client, gateway, adapters, background loops) are
    created in lifespan().
    """
    app = FastAPI(
        title="SchroDrive",
        description="Overseerr -> indexer -> debrid acquisition pipeline",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from schrodrive.interfaces.api.system.router import router as system_router
    from schrodrive.interfaces.api.webhook.router import router as webhook_router

    app.include_router(system_router, prefix="/api")
    if config.services.run_webhook:
        app.include_router(webhook_router, prefix="/webhook")

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
