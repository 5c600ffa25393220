"""Rate decision engine.

Decides whether a request may proceed based on how many requests its identity
made within the trailing window, blocking the identity for a cooldown once its
limit is exceeded.

Precedence:
- A request carrying a configured token is judged only against that token's
  counter and policy; its IP counter is not consulted.
- A request with no token, or with a token that has no policy, is judged
  against its IP.

State machine per key:
- Blocked while a block marker exists; the counter is left untouched.
- Otherwise the counter is incremented first and the post-increment value is
  compared with the limit. Crossing the limit writes the block marker.
- The block lifts on its own when the marker's TTL elapses.

The engine holds no locks and never retries; concurrent requests for the same
key are serialized by the storage's atomic increment, and storage failures
propagate as ``StorageUnavailableError``.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimitStorage, CounterRecord
from app.adapters.rate_limit.keys import Scope, key_for
from app.services.policy import PolicyConfig, PolicyEntry, PolicyFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one admission check.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Requests left in the current window (0 when denied).
        reset_time: When the window (or the block) ends.
        block_time: Remaining cooldown; zero when not blocked.
        reason: Why the request was denied, None when allowed.
    """

    allowed: bool
    remaining: int
    reset_time: datetime
    block_time: timedelta = timedelta(0)
    reason: str | None = None


def _hash_key(key: str) -> str:
    """Hash a rate limit key for logging without exposing IPs or tokens."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class RateLimiter:
    """Admission control against a shared counter store."""

    def __init__(
        self,
        storage: AbstractRateLimitStorage,
        policy: PolicyConfig,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._policy = policy
        self._clock = clock

    @property
    def storage(self) -> AbstractRateLimitStorage:
        return self._storage

    @property
    def policy(self) -> PolicyConfig:
        return self._policy

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def check_rate_limit(self, ip: str, token: str | None = None) -> CheckResult:
        """Run the admission check for a request.

        Args:
            ip: Client IP address (must be non-empty).
            token: Access token from the request, empty or None when absent.

        Returns:
            CheckResult for the token when it is configured, otherwise for the IP.

        Raises:
            StorageUnavailableError: If the store cannot be reached.
        """
        if token:
            lookup = self._policy.lookup(token)
            if isinstance(lookup, PolicyFound):
                return self.check_scope(Scope.TOKEN, token, lookup.entry)
            logger.debug(
                "rate_limit.token_not_configured",
                extra={"key_hash": _hash_key(key_for(Scope.TOKEN, token))},
            )

        return self.check_scope(Scope.IP, ip, self._policy.ip)

    def check_scope(self, scope: Scope, identifier: str, entry: PolicyEntry) -> CheckResult:
        """Apply the count-and-block state machine to one identity."""
        key = key_for(scope, identifier)

        blocked, block_until = self._storage.is_blocked(key)
        if blocked and block_until is not None:
            now = self._now()
            logger.info(
                "rate_limit.blocked",
                extra={
                    "scope": scope.value,
                    "key_hash": _hash_key(key),
                    "block_remaining_s": max(0.0, (block_until - now).total_seconds()),
                },
            )
            return CheckResult(
                allowed=False,
                remaining=0,
                reset_time=block_until,
                block_time=max(block_until - now, timedelta(0)),
                reason=f"{scope.label} is currently blocked",
            )

        new_count = self._storage.increment(key, self._policy.window)
        now = self._now()

        if new_count > entry.limit:
            block_until = now + entry.block_duration
            self._storage.set_blocked(key, block_until)
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "scope": scope.value,
                    "key_hash": _hash_key(key),
                    "count": new_count,
                    "limit": entry.limit,
                    "block_s": entry.block_duration.total_seconds(),
                },
            )
            return CheckResult(
                allowed=False,
                remaining=0,
                reset_time=block_until,
                block_time=entry.block_duration,
                reason=f"{scope.label} rate limit exceeded",
            )

        return CheckResult(
            allowed=True,
            remaining=max(0, entry.limit - new_count),
            reset_time=now + self._policy.window,
        )

    def reset_rate_limit(self, key: str) -> None:
        """Clear the counter and block marker for a canonical key."""
        self._storage.delete(key)
        logger.info("rate_limit.reset", extra={"key_hash": _hash_key(key)})

    def get_info(self, key: str) -> CounterRecord:
        """Read the counter for a canonical key without counting a request."""
        return self._storage.get(key)
