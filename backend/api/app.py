"""
FastAPI application factory for the MatchScout API service.

Creates the app with:
- Prediction and accuracy routes
- Middleware stack and domain error mapping
- Health check endpoint
- Lifespan management (build services, connect, graceful shutdown)
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import build_services, init_dependencies
from api.middleware import setup_middleware
from api.routes.accuracy import router as accuracy_router
from api.routes.predictions import router as predictions_router

logger = get_logger(__name__)

_CONNECT_RETRY_ATTEMPTS = 5
_CONNECT_RETRY_BASE_DELAY_S = 1.0


async def _connect_with_retry(connect_fn, name: str) -> None:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, _CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await connect_fn()
            return
        except Exception as exc:
            if attempt == _CONNECT_RETRY_ATTEMPTS:
                raise
            delay = _CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=_CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without Redis or a browser."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the service graph on startup; release browser, HTTP and Redis on shutdown."""
    setup_logging("api")
    start_metrics_server()

    services = build_services()
    await _connect_with_retry(services.redis.connect, "Redis")
    await services.start()
    init_dependencies(services)
    logger.info("api_service_started")

    yield

    await services.stop()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    app = FastAPI(
        title="MatchScout API",
        description="Match facts aggregation and accuracy-ranked predictions",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
    )

    setup_middleware(app)
    app.include_router(predictions_router)
    app.include_router(accuracy_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    return app


# For running with uvicorn directly
app = create_app()
