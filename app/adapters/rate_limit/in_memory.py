"""In-memory rate limit storage.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expiry is evaluated lazily against the injected clock, so tests can drive
  time deterministically. Every `sweep_every` increments a full pass drops
  expired entries so keys that never return do not accumulate.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimitStorage, CounterRecord
from app.adapters.rate_limit.keys import block_key_for


@dataclass
class _Entry:
    value: int
    expires_at: float


def _to_datetime(epoch_seconds: float) -> datetime:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)


class InMemoryRateLimitStorage(AbstractRateLimitStorage):
    """Rate limit store backed by a process-local dictionary.

    Counters and block markers are held as entries with an absolute expiry
    timestamp; an entry whose expiry has passed is treated as absent and
    dropped on next access.
    """

    def __init__(
        self,
        *,
        default_window: timedelta = timedelta(seconds=1),
        clock: Callable[[], float] = time.time,
        sweep_every: int = 1000,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            default_window: Window reported for keys that have no counter yet.
            clock: Time source function returning UNIX time in seconds.
            sweep_every: Number of increments between full passes that drop
                expired counters and markers of keys never seen again.
        """
        self._default_window = default_window
        self._clock = clock
        self._sweep_every = max(1, sweep_every)
        self._ops_since_sweep = 0
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def _live_entry(self, key: str, now: float) -> _Entry | None:
        """Return the entry for key, evicting it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]

    def increment(self, key: str, window: timedelta) -> int:
        now = self._clock()
        with self._lock:
            self._ops_since_sweep += 1
            if self._ops_since_sweep >= self._sweep_every:
                self._sweep(now)
                self._ops_since_sweep = 0
            entry = self._live_entry(key, now)
            if entry is None:
                entry = _Entry(value=0, expires_at=now)
                self._entries[key] = entry
            entry.value += 1
            entry.expires_at = now + window.total_seconds()
            return entry.value

    def is_blocked(self, key: str) -> tuple[bool, datetime | None]:
        now = self._clock()
        with self._lock:
            marker = self._live_entry(block_key_for(key), now)
        if marker is None:
            return False, None
        return True, _to_datetime(marker.expires_at)

    def set_blocked(self, key: str, block_until: datetime) -> None:
        now = self._clock()
        expires_at = block_until.timestamp()
        if expires_at <= now:
            return
        with self._lock:
            self._entries[block_key_for(key)] = _Entry(value=1, expires_at=expires_at)

    def get(self, key: str) -> CounterRecord:
        now = self._clock()
        with self._lock:
            entry = self._live_entry(key, now)
            marker = self._live_entry(block_key_for(key), now)

        if entry is None:
            count = 0
            window_expiry = _to_datetime(now + self._default_window.total_seconds())
        else:
            count = entry.value
            window_expiry = _to_datetime(entry.expires_at)

        return CounterRecord(
            count=count,
            window_expiry=window_expiry,
            blocked=marker is not None,
            block_until=_to_datetime(marker.expires_at) if marker else None,
        )

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries.pop(block_key_for(key), None)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        with self._lock:
            self._entries.clear()
