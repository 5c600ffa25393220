"""Rate limit storage interfaces.

The decision engine depends on this abstraction (not a concrete store) so the
in-memory backend used in tests and single-process deployments and the Redis
backend used in production are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class CounterRecord:
    """Snapshot of a key's counter as held by the store.

    Attributes:
        count: Requests counted in the current window (0 when absent).
        window_expiry: When the counter disappears if no further requests arrive.
        blocked: Whether a block marker currently exists for the key.
        block_until: When the block marker expires (None when not blocked).
    """

    count: int
    window_expiry: datetime
    blocked: bool = False
    block_until: datetime | None = None


class AbstractRateLimitStorage(ABC):
    """Capability interface required by the rate decision engine.

    Every operation may raise ``StorageUnavailableError`` when the backing
    store cannot be reached.
    """

    @abstractmethod
    def increment(self, key: str, window: timedelta) -> int:
        """Atomically increment the counter and reset its expiry to ``window``.

        Args:
            key: Counter key (``scope:identifier``).
            window: Idle expiry applied to the counter on every increment.

        Returns:
            The post-increment count.
        """
        raise NotImplementedError

    @abstractmethod
    def is_blocked(self, key: str) -> tuple[bool, datetime | None]:
        """Report whether the key's block marker exists.

        Returns:
            ``(True, block_until)`` while the marker is live,
            ``(False, None)`` otherwise.
        """
        raise NotImplementedError

    @abstractmethod
    def set_blocked(self, key: str, block_until: datetime) -> None:
        """Create or refresh the block marker until ``block_until``.

        Does nothing if ``block_until`` is not in the future.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> CounterRecord:
        """Return the counter record for key, or a zero record when absent."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove both the counter and the block marker for key."""
        raise NotImplementedError

    @abstractmethod
    def ping(self) -> bool:
        """Check that the store is reachable."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release underlying connection resources."""
        raise NotImplementedError
