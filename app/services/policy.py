"""Rate limit policy: default IP limits plus per-token overrides.

A ``PolicyConfig`` is built once at startup and shared read-only by every
request. Token lookups return a tagged result instead of raising, so an
unknown token simply routes the check to the IP policy.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping

from app.core.config import RateLimitSettings
from app.utils.durations import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_BLOCK_TIME = timedelta(minutes=1)

_TOKEN_LIMIT_ENV_RE = re.compile(r"^RATE_LIMIT_TOKEN_(?P<name>.+)_LIMIT$", re.IGNORECASE)


@dataclass(frozen=True)
class PolicyEntry:
    """Request limit and cooldown for one identity."""

    limit: int
    block_duration: timedelta

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.block_duration <= timedelta(0):
            raise ValueError("block_duration must be positive")


@dataclass(frozen=True)
class PolicyFound:
    entry: PolicyEntry


@dataclass(frozen=True)
class PolicyNotConfigured:
    pass


PolicyLookup = PolicyFound | PolicyNotConfigured


@dataclass(frozen=True)
class PolicyConfig:
    """Immutable rate limit policy.

    Attributes:
        ip: Policy applied to every client IP.
        tokens: Per-token policies keyed by token value.
        window: Idle window after which an inactive counter resets.
    """

    ip: PolicyEntry
    tokens: Mapping[str, PolicyEntry] = field(default_factory=dict)
    window: timedelta = timedelta(seconds=1)

    def __post_init__(self) -> None:
        # Freeze the mapping so the config can be shared across threads.
        object.__setattr__(self, "tokens", MappingProxyType(dict(self.tokens)))

    def lookup(self, token: str) -> PolicyLookup:
        entry = self.tokens.get(token)
        if entry is None:
            return PolicyNotConfigured()
        return PolicyFound(entry)

    @classmethod
    def from_settings(
        cls,
        rate_limit: RateLimitSettings,
        environ: Mapping[str, str] | None = None,
    ) -> "PolicyConfig":
        """Build the policy from settings and per-token environment variables.

        Tokens from ``RATE_LIMIT_TOKEN_LIMITS`` are merged with tokens declared
        as ``RATE_LIMIT_TOKEN_<NAME>_LIMIT`` / ``RATE_LIMIT_TOKEN_<NAME>_BLOCK_TIME``;
        the latter win on conflict.
        """
        tokens = {
            name: PolicyEntry(limit=cfg.limit, block_duration=cfg.block_time)
            for name, cfg in rate_limit.token_limits.items()
        }
        tokens.update(load_token_policies_from_env(os.environ if environ is None else environ))

        return cls(
            ip=PolicyEntry(limit=rate_limit.ip_limit, block_duration=rate_limit.ip_block_time),
            tokens=tokens,
            window=rate_limit.window,
        )


def load_token_policies_from_env(environ: Mapping[str, str]) -> dict[str, PolicyEntry]:
    """Collect token policies from ``RATE_LIMIT_TOKEN_<NAME>_LIMIT`` variables.

    The token value is ``<NAME>`` exactly as it appears in the variable name.
    A missing or unparseable ``_BLOCK_TIME`` falls back to one minute; a
    non-positive or non-numeric limit skips the token.

    Args:
        environ: Environment mapping to scan.

    Returns:
        Mapping of token value to its policy entry.
    """
    policies: dict[str, PolicyEntry] = {}

    for var_name, raw_limit in environ.items():
        match = _TOKEN_LIMIT_ENV_RE.match(var_name)
        if not match:
            continue
        token = match.group("name")

        try:
            limit = int(raw_limit)
        except ValueError:
            limit = 0
        if limit < 1:
            logger.warning(
                "rate_limit.token_policy_invalid_limit",
                extra={"env_var": var_name},
            )
            continue

        block_time = DEFAULT_TOKEN_BLOCK_TIME
        raw_block_time = environ.get(var_name[: -len("_LIMIT")] + "_BLOCK_TIME")
        if raw_block_time:
            try:
                block_time = parse_duration(raw_block_time)
            except ValueError:
                logger.warning(
                    "rate_limit.token_policy_invalid_block_time",
                    extra={"env_var": var_name, "fallback_s": block_time.total_seconds()},
                )
            if block_time <= timedelta(0):
                block_time = DEFAULT_TOKEN_BLOCK_TIME

        policies[token] = PolicyEntry(limit=limit, block_duration=block_time)

    return policies

