"""
Monitoring API endpoints.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from auth import dependencies as auth_dependencies
from core import ratelimit, request_info

from . import schemas, service

router = APIRouter(prefix="/monitoring")


@router.post("/alert")
@ratelimit.limit("monitoring")
async def create_alert(
    payload: schemas.AlertRequest,
    request: Request,
    background_tasks: BackgroundTasks,
) -> dict:
    return await service.create_alert(
        payload,
        source=request_info.client_ip(request),
        background_tasks=background_tasks,
    )


@router.post("/metrics")
@ratelimit.limit("monitoring")
async def ingest_metrics(payload: schemas.MetricsBatchRequest, request: Request) -> dict:
    return await service.ingest_metrics(payload)


@router.get("/metrics")
async def get_metrics(
    type: str = Query("summary"),
    time_range: str = Query("24h"),
    category: str | None = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=500),
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.get_metrics(
        metric_type=type,
        time_range=time_range,
        category=category,
        limit=limit,
    )


@router.get("/alerts")
async def list_alerts(
    limit: int = Query(50, ge=1, le=500),
    type: str | None = Query(None, max_length=50),
    min_severity: str | None = Query(None),
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.list_alerts(limit=limit, alert_type=type, min_severity=min_severity)


@router.get("/error-patterns")
async def error_patterns(
    time_range: str = Query("24h"),
    limit: int = Query(20, ge=1),
    min_occurrences: int = Query(2, ge=1),
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.error_patterns(time_range=time_range, limit=limit, min_occurrences=min_occurrences)
