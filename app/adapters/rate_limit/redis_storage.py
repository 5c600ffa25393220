"""Redis-backed rate limit storage.

Counters are plain integer keys driven by INCR; block markers are ``"1"``
values stored with a millisecond TTL. State is shared by every process that
points at the same Redis database, so limits hold across workers.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import redis
from redis.exceptions import RedisError

from app.adapters.rate_limit.base import AbstractRateLimitStorage, CounterRecord
from app.adapters.rate_limit.keys import block_key_for
from app.core.config import RedisSettings
from app.core.errors import StorageUnavailableError

logger = logging.getLogger(__name__)


def _millis(delta: timedelta) -> int:
    """Whole milliseconds, rounded up so a positive TTL never becomes zero."""
    return math.ceil(delta / timedelta(milliseconds=1))


class RedisRateLimitStorage(AbstractRateLimitStorage):
    """Rate limit store on top of a synchronous ``redis.Redis`` client."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        default_window: timedelta = timedelta(seconds=1),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._default_window = default_window
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        redis_settings: RedisSettings,
        *,
        default_window: timedelta = timedelta(seconds=1),
    ) -> "RedisRateLimitStorage":
        """Build a store with a pooled client from configuration.

        ``REDIS_URL`` wins over the host/port/db triple when it is set.
        """
        timeout = redis_settings.socket_timeout_seconds
        if redis_settings.url:
            client = redis.Redis.from_url(
                redis_settings.url,
                decode_responses=True,
                socket_connect_timeout=timeout,
                socket_timeout=timeout,
            )
        else:
            client = redis.Redis(
                host=redis_settings.host,
                port=redis_settings.port,
                password=redis_settings.password or None,
                db=redis_settings.db,
                decode_responses=True,
                socket_connect_timeout=timeout,
                socket_timeout=timeout,
            )
        return cls(client, default_window=default_window)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    @contextmanager
    def _translate_errors(self, operation: str, key: str | None = None) -> Iterator[None]:
        """Convert redis client failures into StorageUnavailableError."""
        try:
            yield
        except RedisError as exc:
            key_hash = hashlib.sha256(key.encode()).hexdigest()[:16] if key else None
            logger.error(
                "rate_limit_storage.redis_error",
                extra={
                    "operation": operation,
                    "key_hash": key_hash,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StorageUnavailableError(
                code="storage_unavailable",
                message="Rate limit storage is unavailable",
                details={"backend": "redis", "operation": operation},
            ) from exc

    def increment(self, key: str, window: timedelta) -> int:
        # MULTI/EXEC so the increment and the renewed expiry apply as one step.
        with self._translate_errors("increment", key):
            with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.pexpire(key, _millis(window))
                count, _ = pipe.execute()
        return int(count)

    def is_blocked(self, key: str) -> tuple[bool, datetime | None]:
        with self._translate_errors("is_blocked", key):
            ttl_ms = self._client.pttl(block_key_for(key))

        # -2: no marker, -1: marker without expiry (never written by us)
        if ttl_ms is None or ttl_ms <= 0:
            return False, None
        return True, self._now() + timedelta(milliseconds=ttl_ms)

    def set_blocked(self, key: str, block_until: datetime) -> None:
        ttl_ms = _millis(block_until - self._now())
        if ttl_ms <= 0:
            return
        with self._translate_errors("set_blocked", key):
            self._client.set(block_key_for(key), "1", px=ttl_ms)

    def get(self, key: str) -> CounterRecord:
        with self._translate_errors("get", key):
            with self._client.pipeline(transaction=False) as pipe:
                pipe.get(key)
                pipe.pttl(key)
                pipe.pttl(block_key_for(key))
                raw_count, counter_ttl_ms, block_ttl_ms = pipe.execute()

        now = self._now()
        if raw_count is None:
            count = 0
            window_expiry = now + self._default_window
        else:
            count = int(raw_count)
            ttl = counter_ttl_ms if counter_ttl_ms and counter_ttl_ms > 0 else 0
            window_expiry = now + timedelta(milliseconds=ttl)

        blocked = bool(block_ttl_ms and block_ttl_ms > 0)
        return CounterRecord(
            count=count,
            window_expiry=window_expiry,
            blocked=blocked,
            block_until=now + timedelta(milliseconds=block_ttl_ms) if blocked else None,
        )

    def delete(self, key: str) -> None:
        with self._translate_errors("delete", key):
            self._client.delete(key, block_key_for(key))

    def ping(self) -> bool:
        with self._translate_errors("ping"):
            return bool(self._client.ping())

    def close(self) -> None:
        with self._translate_errors("close"):
            self._client.close()
        logger.debug("rate_limit_storage.redis_closed")
