"""Application factory for FastAPI app.

Centralizes app construction (metadata, lifecycle, middleware, handlers,
routers) so tests and the ASGI entrypoint build the same app.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from app.api.routes import admin_router, health_router, protected_router, rate_limit_router
from app.core.config import settings
from app.core.errors import StorageUnavailableError
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import close_rate_limiter, get_rate_limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Check storage connectivity on startup and release it on shutdown.

    An unreachable store only logs a warning: requests fail open until it
    comes back.
    """
    limiter = get_rate_limiter()
    try:
        await run_in_threadpool(limiter.storage.ping)
        logger.info("rate_limit.storage_connected", extra={"storage": settings.rate_limit.storage})
    except StorageUnavailableError:
        logger.warning("rate_limit.storage_unreachable_at_startup")

    yield

    await run_in_threadpool(close_rate_limiter)
    logger.info("app.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Rate Limiter API",
        description=(
            "Admission control by client IP or access token. Each identity gets "
            "a request allowance per idle window; exceeding it blocks the identity "
            "for a configurable cooldown. State lives in Redis so limits hold "
            "across workers."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(rate_limit_router)
    app.include_router(protected_router, prefix="/api")
    app.include_router(admin_router, prefix="/admin")

    apply_openapi_customizations(app)

    return app
