"""Unit tests for the in-memory rate limit storage adapter."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from app.adapters.rate_limit.in_memory import InMemoryRateLimitStorage

WINDOW = timedelta(seconds=10)


def _at(epoch: float) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


def test_increment_returns_post_increment_count() -> None:
    storage = InMemoryRateLimitStorage(clock=Mock(return_value=1000.0))

    assert storage.increment("ip:1.2.3.4", WINDOW) == 1
    assert storage.increment("ip:1.2.3.4", WINDOW) == 2
    assert storage.increment("ip:1.2.3.4", WINDOW) == 3


def test_increment_renews_expiry() -> None:
    clock = Mock(return_value=1000.0)
    storage = InMemoryRateLimitStorage(clock=clock)

    storage.increment("k", WINDOW)
    clock.return_value = 1009.0
    storage.increment("k", WINDOW)

    record = storage.get("k")
    assert record.count == 2
    assert record.window_expiry == _at(1019.0)


def test_counter_expires_after_idle_window() -> None:
    clock = Mock(return_value=1000.0)
    storage = InMemoryRateLimitStorage(clock=clock)

    storage.increment("k", WINDOW)
    clock.return_value = 1010.0

    assert storage.increment("k", WINDOW) == 1


def test_get_absent_key_returns_zero_record() -> None:
    storage = InMemoryRateLimitStorage(
        default_window=timedelta(seconds=1), clock=Mock(return_value=1000.0)
    )

    record = storage.get("ip:absent")

    assert record.count == 0
    assert record.window_expiry == _at(1001.0)
    assert record.blocked is False
    assert record.block_until is None


def test_block_marker_lifecycle() -> None:
    clock = Mock(return_value=1000.0)
    storage = InMemoryRateLimitStorage(clock=clock)

    assert storage.is_blocked("k") == (False, None)

    storage.set_blocked("k", _at(1060.0))
    assert storage.is_blocked("k") == (True, _at(1060.0))

    clock.return_value = 1060.0
    assert storage.is_blocked("k") == (False, None)


def test_set_blocked_in_the_past_is_noop() -> None:
    storage = InMemoryRateLimitStorage(clock=Mock(return_value=1000.0))

    storage.set_blocked("k", _at(1000.0))
    storage.set_blocked("k", _at(900.0))

    assert storage.is_blocked("k") == (False, None)


def test_block_marker_does_not_collide_with_counter() -> None:
    storage = InMemoryRateLimitStorage(clock=Mock(return_value=1000.0))

    storage.set_blocked("ip:1.2.3.4", _at(1060.0))

    assert storage.get("ip:1.2.3.4").count == 0
    assert storage.increment("ip:1.2.3.4", WINDOW) == 1


def test_delete_removes_counter_and_marker() -> None:
    storage = InMemoryRateLimitStorage(clock=Mock(return_value=1000.0))
    storage.increment("k", WINDOW)
    storage.set_blocked("k", _at(1060.0))

    storage.delete("k")

    assert storage.get("k").count == 0
    assert storage.is_blocked("k") == (False, None)


def test_isolated_by_key() -> None:
    storage = InMemoryRateLimitStorage(clock=Mock(return_value=1000.0))

    storage.increment("k1", WINDOW)
    storage.increment("k1", WINDOW)

    assert storage.increment("k2", WINDOW) == 1


def test_close_drops_state() -> None:
    storage = InMemoryRateLimitStorage(clock=Mock(return_value=1000.0))
    storage.increment("k", WINDOW)

    assert storage.ping() is True
    storage.close()

    assert storage.get("k").count == 0


def test_periodic_sweep_drops_keys_never_seen_again() -> None:
    clock = Mock(return_value=1000.0)
    storage = InMemoryRateLimitStorage(clock=clock, sweep_every=3)
    storage.increment("ip:gone-1", WINDOW)
    storage.set_blocked("ip:gone-2", _at(1005.0))
    storage.increment("ip:returning", WINDOW)

    clock.return_value = 1015.0
    storage.increment("ip:returning", WINDOW)
    assert set(storage._entries) == {"ip:returning"}

    clock.return_value = 1030.0
    storage.increment("ip:new", WINDOW)
    storage.increment("ip:new", WINDOW)
    assert set(storage._entries) == {"ip:returning", "ip:new"}

    storage.increment("ip:new", WINDOW)

    assert set(storage._entries) == {"ip:new"}
    assert storage.get("ip:new").count == 3
