"""Pydantic schemas for rate limit endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field

from app.adapters.rate_limit.base import CounterRecord


class RateLimitInfoResponse(BaseModel):
    """Current counter state for one key."""

    key: str = Field(..., description="Canonical key, e.g. 'ip:203.0.113.7' or 'token:abc123'.")
    count: int = Field(..., description="Requests counted in the current window.")
    reset_time: datetime = Field(
        ..., description="When the counter expires if no further requests arrive."
    )
    blocked: bool = Field(..., description="Whether the key is cooling down after exceeding its limit.")
    block_until: datetime | None = Field(
        default=None, description="When the cooldown ends (only when blocked)."
    )

    @classmethod
    def from_record(cls, key: str, record: CounterRecord) -> "RateLimitInfoResponse":
        return cls(
            key=key,
            count=record.count,
            reset_time=record.window_expiry,
            blocked=record.blocked,
            block_until=record.block_until,
        )


class ResetResponse(BaseModel):
    message: str = Field("Rate limit reset successfully")
    key: str


class ProtectedResponse(BaseModel):
    """Echo payload returned by the rate limited demo endpoints."""

    message: str
    ip: str
    token: str | None = Field(default=None, description="Access token header, if any.")
    time: datetime
    data: Dict[str, Any] | None = None
