"""Storage key namespace for rate limit state.

Counters live at ``"<scope>:<identifier>"`` (e.g. ``ip:203.0.113.7``,
``token:abc123``); block markers live at ``"blocked:<counter key>"``.
``blocked`` is reserved and is never used as a scope prefix, so marker keys
cannot collide with counter keys.
"""

from __future__ import annotations

from enum import Enum

BLOCK_PREFIX = "blocked"


class Scope(str, Enum):
    """Identity axis a rate limit applies to."""

    IP = "ip"
    TOKEN = "token"

    @property
    def label(self) -> str:
        """Human-facing name used in decision reasons."""
        return "IP" if self is Scope.IP else "Token"


def key_for(scope: Scope, identifier: str) -> str:
    """Build the canonical counter key for an identity.

    Examples:
        >>> key_for(Scope.IP, "10.0.0.1")
        'ip:10.0.0.1'
        >>> key_for(Scope.TOKEN, "abc123")
        'token:abc123'
    """
    return f"{scope.value}:{identifier}"


def block_key_for(key: str) -> str:
    """Build the block marker key for a counter key."""
    return f"{BLOCK_PREFIX}:{key}"
