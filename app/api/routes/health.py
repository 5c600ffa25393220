from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.rate_limit import get_rate_limiter
from app.services.rate_limiter import RateLimiter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Not rate limited and does not touch the counter store, so load balancers
    can poll it freely.
    """

    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
def readiness_check(limiter: Annotated[RateLimiter, Depends(get_rate_limiter)]) -> dict:
    """Readiness check: verifies the counter store answers a ping.

    A failing store surfaces as StorageUnavailableError, which the global
    handler turns into 503.
    """

    limiter.storage.ping()
    return {"status": "ready"}
