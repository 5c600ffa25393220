"""Operator endpoints for inspecting and clearing rate limit state.

Keys use the canonical ``ip:<address>`` / ``token:<value>`` form. Both
endpoints require an X-Admin-Key header unless APP_ADMIN_API_KEY_REQUIRED is
false.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.auth import verify_admin_key
from app.core.rate_limit import get_rate_limiter
from app.schemas.rate_limit import RateLimitInfoResponse, ResetResponse
from app.services.rate_limiter import RateLimiter

router = APIRouter(tags=["Admin"], dependencies=[Depends(verify_admin_key)])


@router.post("/reset/{key}", response_model=ResetResponse)
def reset_rate_limit(
    key: str,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> ResetResponse:
    """Clear the counter and any active block for a key."""

    limiter.reset_rate_limit(key)
    return ResetResponse(key=key)


@router.get("/info/{key}", response_model=RateLimitInfoResponse)
def get_rate_limit_info(
    key: str,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> RateLimitInfoResponse:
    """Read any key's counter and block state without counting a request."""

    return RateLimitInfoResponse.from_record(key, limiter.get_info(key))
