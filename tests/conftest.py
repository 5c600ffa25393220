"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment before app settings are imported so tests never
need a Redis server or a local .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("RATE_LIMIT_STORAGE", "memory")
os.environ.setdefault("RATE_LIMIT_IP_LIMIT", "10")
os.environ.setdefault("RATE_LIMIT_IP_BLOCK_TIME", "1m")
os.environ.setdefault("RATE_LIMIT_WINDOW", "1s")
os.environ.setdefault("APP_ADMIN_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_ADMIN_API_KEYS", "test-admin-key-123,test-admin-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta  # noqa: E402
from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402

from app.adapters.rate_limit.in_memory import InMemoryRateLimitStorage  # noqa: E402
from app.services.policy import PolicyConfig, PolicyEntry  # noqa: E402
from app.services.rate_limiter import RateLimiter  # noqa: E402


@pytest.fixture
def clock() -> Mock:
    """Deterministic UNIX clock shared by storage and engine."""
    return Mock(return_value=1_000.0)


@pytest.fixture
def policy() -> PolicyConfig:
    """IP limit 10 / 60s block; token abc123 limit 100 / 300s block; 1s window."""
    return PolicyConfig(
        ip=PolicyEntry(limit=10, block_duration=timedelta(seconds=60)),
        tokens={"abc123": PolicyEntry(limit=100, block_duration=timedelta(seconds=300))},
        window=timedelta(seconds=1),
    )


@pytest.fixture
def storage(clock: Mock) -> InMemoryRateLimitStorage:
    return InMemoryRateLimitStorage(default_window=timedelta(seconds=1), clock=clock)


@pytest.fixture
def limiter(storage: InMemoryRateLimitStorage, policy: PolicyConfig, clock: Mock) -> RateLimiter:
    return RateLimiter(storage, policy, clock=clock)
