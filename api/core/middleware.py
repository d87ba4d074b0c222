"""
HTTP middleware and the catch-all exception handler.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .settings import env_bool, is_production

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds baseline security headers to every response.
    HSTS is only sent in production, where TLS terminates in front of us.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if is_production():
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    body: dict = {"error": "Internal server error"}
    if env_bool("EXPOSE_ERROR_DETAILS", False) and not is_production():
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


def install(app: FastAPI) -> None:
    if env_bool("SECURITY_HEADERS_ENABLED", True):
        app.add_middleware(SecurityHeadersMiddleware)
    app.add_exception_handler(Exception, unhandled_exception_handler)
