"""Rate limiting dependencies for FastAPI routes.

This module wires the rate decision engine into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on dependency functions only.
- Swap-friendly: storage backend is chosen by configuration behind an
  abstract interface.
- Fail-open: if the counter store is unreachable the request proceeds and
  the response carries an X-RateLimit-Error header.

Identity extraction:
- Client IP is the first X-Forwarded-For entry, then X-Real-IP, then the
  socket peer (proxy headers only when APP_TRUST_PROXY_HEADERS is enabled).
- The access token is read from the header named by APP_TOKEN_HEADER
  (``API_KEY`` by default). An empty header means "no token".

Dependencies here are plain ``def`` so FastAPI runs the blocking storage
round trips in its threadpool.
"""

from __future__ import annotations

import hashlib
import logging
import math
import threading
from typing import Annotated

from fastapi import Depends, Request, Response

from app.adapters.rate_limit.base import CounterRecord
from app.adapters.rate_limit.factory import create_rate_limit_storage
from app.adapters.rate_limit.keys import Scope, key_for
from app.core.config import settings
from app.core.errors import RateLimitExceededError, StorageUnavailableError
from app.services.policy import PolicyConfig
from app.services.rate_limiter import CheckResult, RateLimiter

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = (
    "you have reached the maximum number of requests or actions allowed "
    "within a certain time frame"
)

_limiter: RateLimiter | None = None
_limiter_lock = threading.Lock()


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter instance.

    The instance is built lazily on first use so the policy is read once and
    counter state persists across requests.

    Returns:
        RateLimiter: Configured limiter instance.
    """

    global _limiter

    if _limiter is None:
        with _limiter_lock:
            if _limiter is None:
                policy = PolicyConfig.from_settings(settings.rate_limit)
                _limiter = RateLimiter(create_rate_limit_storage(), policy)
                logger.info(
                    "rate_limit.initialized",
                    extra={
                        "storage": settings.rate_limit.storage,
                        "ip_limit": policy.ip.limit,
                        "ip_block_s": policy.ip.block_duration.total_seconds(),
                        "window_s": policy.window.total_seconds(),
                        "configured_tokens": len(policy.tokens),
                    },
                )
    return _limiter


def close_rate_limiter() -> None:
    """Close the storage behind the process-wide limiter, if one was built."""

    global _limiter

    with _limiter_lock:
        limiter, _limiter = _limiter, None
    if limiter is not None:
        limiter.storage.close()


def get_client_ip(request: Request) -> str:
    """Extract the client IP for rate limiting.

    Args:
        request: FastAPI request.

    Returns:
        str: Client IP address, or "unknown" when no peer is available.
    """

    if settings.app.trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            first = forwarded_for.split(",", 1)[0].strip()
            if first:
                return first

        real_ip = request.headers.get("X-Real-IP", "").strip()
        if real_ip:
            return real_ip

    return request.client.host if request.client else "unknown"


def get_request_token(request: Request) -> str:
    """Read the access token header; empty string when absent."""
    return request.headers.get(settings.app.token_header, "").strip()


def _hash_identity(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:16]


def _block_seconds(result: CheckResult) -> int:
    return max(0, math.ceil(result.block_time.total_seconds()))


def _result_headers(result: CheckResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": result.reset_time.isoformat(timespec="seconds"),
    }
    if result.block_time.total_seconds() > 0:
        headers["X-RateLimit-Block-Time"] = str(_block_seconds(result))
        headers["Retry-After"] = str(_block_seconds(result))
    return headers


def enforce_rate_limit(
    request: Request,
    response: Response,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """FastAPI dependency enforcing rate limits.

    Counts the request against its token (when configured) or its IP. If the
    requester is over the limit or cooling down, raises HTTP 429.

    Raises:
        RateLimitExceededError: Rendered as 429 Too Many Requests when denied.
    """

    if not settings.rate_limit.enabled:
        return

    ip = get_client_ip(request)
    token = get_request_token(request)
    key_type = Scope.TOKEN.value if token else Scope.IP.value
    identity_hash = _hash_identity(token or ip)

    try:
        result = limiter.check_rate_limit(ip, token)
    except StorageUnavailableError as exc:
        logger.warning(
            "rate_limit.storage_unavailable",
            extra={
                "key_type": key_type,
                "identity_hash": identity_hash,
                "error_code": exc.code,
            },
        )
        response.headers["X-RateLimit-Error"] = "Rate limit check failed"
        return

    headers = _result_headers(result) if settings.rate_limit.include_headers else {}

    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "identity_hash": identity_hash,
                "remaining": result.remaining,
            },
        )
        response.headers.update(headers)
        return

    logger.warning(
        "rate_limit.denied",
        extra={
            "key_type": key_type,
            "identity_hash": identity_hash,
            "reason": result.reason,
            "block_s": _block_seconds(result),
        },
    )

    raise RateLimitExceededError(
        code="rate_limit_exceeded",
        message=RATE_LIMIT_MESSAGE,
        details={
            "reason": result.reason or "",
            "reset_time": result.reset_time.isoformat(timespec="seconds"),
            "block_time": _block_seconds(result),
        },
        headers=headers,
    )


def rate_limit_info(
    request: Request,
    response: Response,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> CounterRecord:
    """FastAPI dependency reporting the requester's counter without counting.

    Uses the token key when an access token header is present, the IP key
    otherwise, and mirrors the record into X-RateLimit-* response headers.
    """

    token = get_request_token(request)
    key = key_for(Scope.TOKEN, token) if token else key_for(Scope.IP, get_client_ip(request))

    record = limiter.get_info(key)

    response.headers["X-RateLimit-Count"] = str(record.count)
    response.headers["X-RateLimit-Reset"] = record.window_expiry.isoformat(timespec="seconds")
    response.headers["X-RateLimit-Blocked"] = "true" if record.blocked else "false"
    return record
