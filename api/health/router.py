"""
Health check and service banner.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from core import db
from core.settings import app_env

logger = logging.getLogger(__name__)

SERVICE_NAME = "zencap-api"
STARTED_AT = time.monotonic()

router = APIRouter()


async def check_database() -> dict:
    started = time.perf_counter()
    try:
        await db.ping()
    except Exception as exc:
        logger.warning("health_db_failed error=%s", exc)
        return {"status": "unhealthy", "error": type(exc).__name__}
    return {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}


@router.get("/health")
async def health() -> JSONResponse:
    services = {"database": await check_database()}
    healthy = all(item["status"] == "healthy" for item in services.values())
    body = {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime_s": round(time.monotonic() - STARTED_AT, 1),
        "environment": app_env(),
        "services": services,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@router.get("/")
def root() -> dict:
    return {"message": f"{SERVICE_NAME} api"}
