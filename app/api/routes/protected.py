from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, Response

from app.core.rate_limit import enforce_rate_limit, get_client_ip, get_request_token
from app.schemas.rate_limit import ProtectedResponse

router = APIRouter(tags=["API"], dependencies=[Depends(enforce_rate_limit)])


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.get("/test", response_model=ProtectedResponse)
def protected_test(request: Request) -> ProtectedResponse:
    """Rate limited endpoint echoing the identity it was counted against."""

    return ProtectedResponse(
        message="This is a protected endpoint",
        ip=get_client_ip(request),
        token=get_request_token(request) or None,
        time=_now(),
    )


@router.post("/data", response_model=ProtectedResponse)
def protected_data(
    request: Request,
    payload: Dict[str, Any] = Body(..., description="Arbitrary JSON object"),
) -> ProtectedResponse:
    """Rate limited POST endpoint echoing the submitted JSON."""

    return ProtectedResponse(
        message="Data received successfully",
        ip=get_client_ip(request),
        token=get_request_token(request) or None,
        time=_now(),
        data=payload,
    )


@router.get("/status")
def protected_status(response: Response) -> dict:
    """Report the rate limit headers computed for this very request."""

    return {
        "status": "API is working",
        "rate_limit": {
            "remaining": response.headers.get("X-RateLimit-Remaining"),
            "reset": response.headers.get("X-RateLimit-Reset"),
        },
    }
