"""
Per-IP rate limiting for public endpoints, backed by slowapi.

Usage on a route (the endpoint must take a `request: Request` argument):

    @router.post("/contact")
    @limit("forms")
    async def contact(request: Request, ...): ...

Routes sharing a name share one budget. `RATE_LIMIT_<NAME>_MAX` and
`RATE_LIMIT_<NAME>_WINDOW_S` are read per request, so limits can be tuned
without a restart. The default storage is process memory; point
`RATE_LIMIT_STORAGE_URI` at redis to share counters across workers.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from .request_info import client_ip
from .settings import env_int, env_str

logger = logging.getLogger(__name__)


def client_key(request: Request) -> str:
    return client_ip(request) or "unknown"


limiter = Limiter(
    key_func=client_key,
    storage_uri=env_str("RATE_LIMIT_STORAGE_URI", "memory://"),
)


def limit_value(name: str) -> Callable[[], str]:
    prefix = f"RATE_LIMIT_{name.upper()}"

    def provider() -> str:
        max_requests = env_int(f"{prefix}_MAX", 100)
        window_s = env_int(f"{prefix}_WINDOW_S", 60)
        return f"{max_requests} per {window_s} second"

    return provider


def limit(name: str) -> Callable:
    """
    Route decorator: `@limit("forms")`.
    """
    return limiter.shared_limit(limit_value(name), scope=name)


def retry_after_seconds(request: Request) -> int:
    current = getattr(request.state, "view_rate_limit", None)
    if current is None:
        return 1
    item, identifiers = current
    reset_at, _ = limiter.limiter.get_window_stats(item, *identifiers)
    return max(1, math.ceil(reset_at - time.time()))


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = retry_after_seconds(request)
    logger.warning(
        "rate_limited path=%s key=%s limit=%s retry_after=%s",
        request.url.path,
        client_key(request),
        exc.detail,
        retry_after,
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": "Too many requests, please try again later."},
        headers={"Retry-After": str(retry_after)},
    )


def install(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def reset_all() -> None:
    limiter.reset()
