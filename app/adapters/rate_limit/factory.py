"""Factory for creating rate limit storage instances."""

from app.adapters.rate_limit.base import AbstractRateLimitStorage
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStorage
from app.adapters.rate_limit.redis_storage import RedisRateLimitStorage
from app.core.config import settings
from app.core.errors import ValidationAppError


def create_rate_limit_storage() -> AbstractRateLimitStorage:
    """Instantiate the storage backend selected by RATE_LIMIT_STORAGE.

    Returns:
        AbstractRateLimitStorage: Configured storage instance.

    Raises:
        ValidationAppError: If the configured backend is unknown.
    """
    backend = settings.rate_limit.storage.lower()
    window = settings.rate_limit.window

    if backend == "redis":
        return RedisRateLimitStorage.from_settings(settings.redis, default_window=window)

    if backend == "memory":
        return InMemoryRateLimitStorage(default_window=window)

    raise ValidationAppError(
        code="rate_limit_unknown_storage",
        message=(
            f"Unknown rate limit storage: '{backend}'. Supported backends: redis, memory"
        ),
    )
