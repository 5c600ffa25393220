from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.adapters.rate_limit.base import CounterRecord
from app.adapters.rate_limit.keys import Scope, key_for
from app.core.rate_limit import get_client_ip, get_request_token, rate_limit_info
from app.schemas.rate_limit import RateLimitInfoResponse

router = APIRouter(tags=["Rate limit"])


@router.get("/rate-limit/info", response_model=RateLimitInfoResponse)
def get_own_rate_limit_info(
    request: Request,
    record: Annotated[CounterRecord, Depends(rate_limit_info)],
) -> RateLimitInfoResponse:
    """Report the caller's counter without counting the request.

    The token key is reported when the request carries an access token,
    the IP key otherwise. The same values are mirrored in X-RateLimit-Count,
    X-RateLimit-Reset and X-RateLimit-Blocked headers.
    """

    token = get_request_token(request)
    key = key_for(Scope.TOKEN, token) if token else key_for(Scope.IP, get_client_ip(request))
    return RateLimitInfoResponse.from_record(key, record)
