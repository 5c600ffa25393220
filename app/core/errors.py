"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    backend: str
    operation: str
    key_hash: str
    request_id: str
    reason: str
    reset_time: str
    block_time: int
    context: dict[str, Any]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class StorageUnavailableError(AppError):
    """Raised when the rate limit store cannot be reached or fails mid-command."""


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a request is denied by the rate limiter.

    ``headers`` carries the X-RateLimit-* and Retry-After values for the 429.
    """

    headers: dict[str, str] = field(default_factory=dict)
