"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) to
improve testability.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from quota_gate.api.routes import health_router, quota_router
from quota_gate.core.config import settings
from quota_gate.core.exception_handlers import setup_exception_handlers
from quota_gate.core.logging import configure_logging
from quota_gate.core.middleware import request_id_middleware
from quota_gate.core.openapi import apply_openapi_customizations
from quota_gate.core.rate_limit import close_quota_guard, get_quota_guard

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Build the guard eagerly so invalid configuration fails before serving
    if settings.quota.enabled:
        guard = await get_quota_guard()
        logger.info(
            "quota_guard.ready",
            extra={
                "limit": guard.gate.config.restriction_count,
                "window_s": guard.gate.config.window_seconds,
                "backend": settings.quota.store_backend,
            },
        )
    try:
        yield
    finally:
        await close_quota_guard()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Quota Gate",
        description=(
            "Fixed-window request quotas per caller, backed by a shared "
            "key-value store. Every counted response carries X-RateLimit-Limit, "
            "X-RateLimit-Remaining and X-RateLimit-Reset headers."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(quota_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
